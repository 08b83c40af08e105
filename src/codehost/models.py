"""Core codehost data models."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class Package:
    """A Go package found inside a repository store."""

    name: str
    synopsis: str = ""  # Package documentation synopsis.
    doc_html: str = ""  # Package documentation HTML.

    def is_command(self) -> bool:
        return self.name == "main"


@dataclass(slots=True)
class Directory:
    """A directory inside a repository store, keyed by import path."""

    import_path: str
    repo_root: str = ""  # Empty if the directory is not in a repository.
    repo_packages: int = 0

    # Import path of this or the nearest parent directory that
    # contains a LICENSE file, or empty if there isn't one.
    license_root: str = ""

    package: Package | None = None

    def within_repo(self) -> bool:
        """Report whether the directory is contained by a repository."""
        return self.repo_root != ""

    def is_repo_root(self) -> bool:
        """Report whether the directory corresponds to a repository root."""
        return self.repo_root == self.import_path

    def has_license_file(self) -> bool:
        return self.license_root == self.import_path


@dataclass(slots=True, frozen=True)
class User:
    """An authenticated principal as provided by the users service."""

    id: int
    login: str
    name: str = ""
    email: str = ""
    avatar_url: str = ""
    site_admin: bool = False
