"""Tests for core data models."""

from __future__ import annotations

import dataclasses

import pytest

from codehost.models import Directory, Package, User


class TestPackage:
    """Test Package dataclass."""

    def test_is_command(self) -> None:
        """Should report main packages as commands."""
        assert Package(name="main").is_command()
        assert not Package(name="kebabcase").is_command()

    def test_defaults(self) -> None:
        package = Package(name="jpeg")

        assert package.synopsis == ""
        assert package.doc_html == ""


class TestDirectory:
    """Test Directory dataclass."""

    def test_repo_root(self) -> None:
        """Should distinguish repository roots from directories within them."""
        root = Directory(import_path="example.com/repo", repo_root="example.com/repo")
        sub = Directory(import_path="example.com/repo/sub", repo_root="example.com/repo")

        assert root.is_repo_root() and root.within_repo()
        assert not sub.is_repo_root() and sub.within_repo()

    def test_outside_repo(self) -> None:
        """Should not treat an empty repo root as a repository."""
        d = Directory(import_path="example.com")

        assert not d.within_repo()
        assert not d.is_repo_root()

    def test_license_file(self) -> None:
        d = Directory(
            import_path="example.com/repo/image",
            repo_root="example.com/repo",
            license_root="example.com/repo/image",
        )
        child = dataclasses.replace(d, import_path="example.com/repo/image/jpeg")

        assert d.has_license_file()
        assert not child.has_license_file()

    def test_equality(self) -> None:
        """Should compare directories by value."""
        a = Directory(import_path="example.com/a", package=Package(name="a"))
        b = Directory(import_path="example.com/a", package=Package(name="a"))

        assert a == b


class TestUser:
    """Test User dataclass."""

    def test_defaults(self) -> None:
        user = User(id=1, login="gopher")

        assert not user.site_admin
        assert user.avatar_url == ""

    def test_frozen(self) -> None:
        """Should not allow changing an authenticated user."""
        user = User(id=1, login="gopher")

        with pytest.raises(dataclasses.FrozenInstanceError):
            user.site_admin = True  # type: ignore[misc]
