"""pkt-line framing used by git's smart HTTP protocol."""

from __future__ import annotations

import enum
from dataclasses import dataclass

FLUSH = b"0000"


class PktLineError(ValueError):
    """Raised for malformed pkt-line data."""


def encode(data: bytes) -> bytes:
    """Frame data as a single pkt-line."""
    return b"%04x" % (len(data) + 4) + data


def service_announcement(service: str) -> bytes:
    """Return the ``# service=<name>`` preamble of a ref advertisement."""
    return encode(f"# service={service}\n".encode()) + FLUSH


def read_lines(data: bytes) -> tuple[list[bytes], int]:
    """Read pkt-lines up to the first flush packet.

    Returns the payloads and the offset just past the flush packet.
    """
    lines = []
    pos = 0
    while True:
        header = data[pos : pos + 4]
        if len(header) < 4:
            raise PktLineError("unexpected end of pkt-line stream")
        try:
            size = int(header, 16)
        except ValueError:
            raise PktLineError(f"invalid pkt-line length {header!r}") from None
        pos += 4
        if size == 0:
            return lines, pos
        if size < 4 or pos + size - 4 > len(data):
            raise PktLineError(f"invalid pkt-line length {size}")
        lines.append(data[pos : pos + size - 4])
        pos += size - 4


class RefKind(enum.Enum):
    PUSH = "push"  # Update of a branch under refs/heads/.
    TAG = "tag"
    OTHER = "other"


@dataclass(slots=True, frozen=True)
class RefUpdate:
    """One ref update command sent by a git push."""

    kind: RefKind
    ref: str
    old: str
    new: str

    @property
    def name(self) -> str:
        """Branch or tag name without its refs/heads/ or refs/tags/ prefix."""
        for prefix in ("refs/heads/", "refs/tags/"):
            if self.ref.startswith(prefix):
                return self.ref[len(prefix) :]
        return self.ref


def parse_ref_updates(body: bytes) -> list[RefUpdate]:
    """Parse the command list at the start of a receive-pack request."""
    lines, _ = read_lines(body)
    updates = []
    for line in lines:
        line = line.split(b"\x00", 1)[0].rstrip(b"\n")
        fields = line.split(b" ")
        # Skip shallow and push-cert lines.
        if len(fields) != 3:
            continue
        old, new, ref = (f.decode("utf-8", errors="replace") for f in fields)
        if ref.startswith("refs/heads/"):
            kind = RefKind.PUSH
        elif ref.startswith("refs/tags/"):
            kind = RefKind.TAG
        else:
            kind = RefKind.OTHER
        updates.append(RefUpdate(kind=kind, ref=ref, old=old, new=new))
    return updates
