"""Pseudo-version codec for untagged commits.

Only the v0 scheme is produced: ``v0.0.0-<yyyymmddhhmmss>-<rev>``, where the
time stamp is the UTC committer date and ``rev`` a 12 hex digit commit hash
prefix. Parsing accepts every pseudo-version shape the go command produces so
callers can tell "not a pseudo-version" apart from "not one we serve".
"""

from __future__ import annotations

import re
from datetime import datetime, timezone

from pydantic import BaseModel, field_serializer

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
REV_LENGTH = 12

_PSEUDO_VERSION_RE = re.compile(
    r"^v[0-9]+\.(0\.0-|\d+\.\d+-([^+]*\.)?0\.)\d{14}-[A-Za-z0-9]+(\+incompatible)?$"
)
_SEMVER_NUM_RE = re.compile(r"^(0|[1-9][0-9]*)$")


class PseudoVersionError(ValueError):
    """Raised when a string is not a well-formed pseudo-version."""


class RevInfo(BaseModel):
    """A single revision in a module repository."""

    Version: str
    Time: datetime

    @field_serializer("Time")
    def _serialize_time(self, value: datetime) -> str:
        return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def pseudo_version(t: datetime, rev: str) -> str:
    """Return the v0 pseudo-version for revision time t and identifier rev."""
    if t.tzinfo is not None:
        t = t.astimezone(timezone.utc)
    return f"v0.0.0-{t.strftime(TIMESTAMP_FORMAT)}-{rev}"


def is_pseudo_version(v: str) -> bool:
    """Report whether v has the shape of a pseudo-version."""
    if v.count("-") < 2 or not _PSEUDO_VERSION_RE.match(v):
        return False
    # The regular expression allows leading zeros that semver rejects.
    core = v[1:].split("-", 1)[0]
    return all(_SEMVER_NUM_RE.match(part) for part in core.split("."))


def parse_pseudo_version(v: str) -> tuple[datetime, str]:
    """Return the UTC time stamp and revision identifier of pseudo-version v."""
    if not is_pseudo_version(v):
        raise PseudoVersionError(f"malformed pseudo-version {v!r}")
    v = v.removesuffix("+incompatible")
    head, rev = v.rsplit("-", 1)
    i = head.rfind("-")
    j = head.rfind(".")
    timestamp = head[j + 1 :] if j > i else head[i + 1 :]
    try:
        t = datetime(
            int(timestamp[0:4]),
            int(timestamp[4:6]),
            int(timestamp[6:8]),
            int(timestamp[8:10]),
            int(timestamp[10:12]),
            int(timestamp[12:14]),
            tzinfo=timezone.utc,
        )
    except ValueError:
        raise PseudoVersionError(
            f"pseudo-version with malformed time {timestamp}: {v!r}"
        ) from None
    return t, rev


def all_hex(rev: str) -> bool:
    """Report whether rev is entirely lower-case hexadecimal digits."""
    return all(c in "0123456789abcdef" for c in rev)
