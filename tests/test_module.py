"""Tests for module path and version escaping."""

from __future__ import annotations

import pytest

from codehost.mod.module import (
    ModulePathError,
    auto_quote,
    check_path,
    escape_path,
    escape_version,
    go_quote,
    must_quote,
    unescape_path,
    unescape_version,
)


class TestCheckPath:
    """Test module path validation."""

    @pytest.mark.parametrize(
        "path",
        [
            "dmitri.shuralyov.com/kebabcase",
            "github.com/Foo/bar",
            "example.com/a-b_c~d.e",
            "gopkg.in/yaml.v2",
        ],
    )
    def test_valid(self, path: str) -> None:
        check_path(path)

    @pytest.mark.parametrize(
        "path",
        [
            "",
            "kebabcase",
            "-example.com/x",
            "example.com//x",
            "example.com/x/",
            "/example.com",
            "Example.com/x",
            "example.com/a b",
            "example.com/.x",
            "example.com/x.",
            "example.com/con",
            "example.com/x~1",
        ],
    )
    def test_invalid(self, path: str) -> None:
        with pytest.raises(ModulePathError):
            check_path(path)


class TestEscaping:
    """Test the ! lower-case escaping scheme."""

    def test_escape_path(self) -> None:
        """Upper-case letters become ! followed by the lower-case letter."""
        assert escape_path("github.com/Azure/azure-sdk") == "github.com/!azure/azure-sdk"
        assert escape_path("dmitri.shuralyov.com/kebabcase") == "dmitri.shuralyov.com/kebabcase"

    def test_unescape_path(self) -> None:
        assert unescape_path("github.com/!azure/azure-sdk") == "github.com/Azure/azure-sdk"

    @pytest.mark.parametrize(
        "escaped",
        [
            "github.com/Azure/azure-sdk",  # Unescaped upper case.
            "github.com/!!azure",
            "github.com/!1",
            "github.com/azure!",
            "github.com/a b",
        ],
    )
    def test_unescape_path_invalid(self, escaped: str) -> None:
        with pytest.raises(ModulePathError):
            unescape_path(escaped)

    def test_escape_path_invalid(self) -> None:
        """Escaping validates the module path first."""
        with pytest.raises(ModulePathError):
            escape_path("github.com/a b")

    def test_versions(self) -> None:
        assert escape_version("v1.0.0-RC1") == "v1.0.0-!r!c1"
        assert unescape_version("v1.0.0-!r!c1") == "v1.0.0-RC1"
        assert escape_version("v0.0.0-20170912031248-800475187fb4") == (
            "v0.0.0-20170912031248-800475187fb4"
        )

    def test_version_invalid(self) -> None:
        with pytest.raises(ModulePathError):
            escape_version("v1!")
        with pytest.raises(ModulePathError):
            unescape_version("v1.0.0-RC1")


class TestQuoting:
    """Test go.mod token quoting."""

    def test_plain_path_needs_no_quotes(self) -> None:
        assert not must_quote("dmitri.shuralyov.com/kebabcase")
        assert auto_quote("dmitri.shuralyov.com/kebabcase") == "dmitri.shuralyov.com/kebabcase"

    @pytest.mark.parametrize("s", ["", "a b", 'a"b', "a//b", "a/*b", "(a)"])
    def test_must_quote(self, s: str) -> None:
        assert must_quote(s)

    def test_go_quote(self) -> None:
        assert go_quote('a "b"\n') == '"a \\"b\\"\\n"'
        assert auto_quote("a b") == '"a b"'
