"""Tests for the pseudo-version codec."""

from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from codehost.mod.pseudo import (
    PseudoVersionError,
    RevInfo,
    all_hex,
    is_pseudo_version,
    parse_pseudo_version,
    pseudo_version,
)


class TestPseudoVersion:
    """Test building pseudo-versions."""

    def test_v0_format(self) -> None:
        """Builds v0.0.0-<timestamp>-<rev> from a UTC time."""
        t = datetime(2017, 9, 12, 3, 12, 48, tzinfo=timezone.utc)
        assert pseudo_version(t, "800475187fb4") == "v0.0.0-20170912031248-800475187fb4"

    def test_converts_to_utc(self) -> None:
        """Times in other zones are converted to UTC first."""
        t = datetime.fromisoformat("2017-09-14T18:21:31+02:00")
        assert pseudo_version(t, "903935f983ff") == "v0.0.0-20170914162131-903935f983ff"

    @pytest.mark.parametrize(
        "t",
        [
            datetime(2000, 1, 1, tzinfo=timezone.utc),
            datetime(2017, 9, 14, 16, 21, 31, tzinfo=timezone.utc),
            datetime(2099, 12, 31, 23, 59, 59, tzinfo=timezone.utc),
        ],
    )
    def test_round_trip(self, t: datetime) -> None:
        """Parsing a built pseudo-version returns its time and revision."""
        commit = "41c08798902c3294633de038725553a6bb6afe3c"
        assert parse_pseudo_version(pseudo_version(t, commit[:12])) == (t, commit[:12])


class TestParsePseudoVersion:
    """Test parsing pseudo-versions."""

    def test_other_shapes(self) -> None:
        """Pseudo-versions based on a release or pre-release also parse."""
        t = datetime(2018, 1, 21, 20, 29, 58, tzinfo=timezone.utc)
        assert parse_pseudo_version("v1.2.4-0.20180121202958-399dd058d2d5") == (t, "399dd058d2d5")
        assert parse_pseudo_version("v1.2.3-pre.0.20180121202958-399dd058d2d5") == (
            t,
            "399dd058d2d5",
        )
        assert parse_pseudo_version("v2.0.0-20180121202958-399dd058d2d5+incompatible") == (
            t,
            "399dd058d2d5",
        )

    @pytest.mark.parametrize(
        "version",
        [
            "",
            "v0.0.0",
            "v1.2.3",
            "v0.0.0-2017091203124-800475187fb4",
            "v0.0.0-20170912031248",
            "v00.0.0-20170912031248-800475187fb4",
            "0.0.0-20170912031248-800475187fb4",
            "v0.0.0-20170912031248-",
        ],
    )
    def test_malformed(self, version: str) -> None:
        """Strings that aren't pseudo-versions are rejected."""
        assert not is_pseudo_version(version)
        with pytest.raises(PseudoVersionError):
            parse_pseudo_version(version)

    def test_malformed_time(self) -> None:
        """A timestamp that isn't a valid date is rejected."""
        with pytest.raises(PseudoVersionError, match="malformed time"):
            parse_pseudo_version("v0.0.0-20171312031248-800475187fb4")

    def test_error_is_value_error(self) -> None:
        """PseudoVersionError is a ValueError."""
        assert issubclass(PseudoVersionError, ValueError)


class TestAllHex:
    """Test the revision digit check."""

    def test_lower_hex(self) -> None:
        assert all_hex("0123456789abcdef")

    def test_rejects_upper_and_other(self) -> None:
        assert not all_hex("800475187FB4")
        assert not all_hex("80047518xfb4")


class TestRevInfo:
    """Test the .info response model."""

    def test_serializes_rfc3339_utc(self) -> None:
        """Time is written as RFC 3339 in UTC with a Z suffix."""
        info = RevInfo(
            Version="v0.0.0-20170912031248-800475187fb4",
            Time=datetime(2017, 9, 12, 3, 12, 48, tzinfo=timezone.utc),
        )
        assert json.loads(info.model_dump_json()) == {
            "Version": "v0.0.0-20170912031248-800475187fb4",
            "Time": "2017-09-12T03:12:48Z",
        }
