"""Module path and version mechanics of the module proxy protocol.

Upper-case letters in module paths and versions are written as ``!`` followed
by the lower-case letter, so that proxies can be served from case-insensitive
file systems. Internal code always works with unescaped values.
"""

from __future__ import annotations

import unicodedata

_MODULE_PATH_PUNCT = "-._~"
_FILE_PATH_PUNCT = "!#$%&()+,-.=@[]^_{}~ "
_BAD_WINDOWS_NAMES = {
    "CON", "PRN", "AUX", "NUL",
    "COM1", "COM2", "COM3", "COM4", "COM5", "COM6", "COM7", "COM8", "COM9",
    "LPT1", "LPT2", "LPT3", "LPT4", "LPT5", "LPT6", "LPT7", "LPT8", "LPT9",
}


class ModulePathError(ValueError):
    """Raised for invalid or malformed module paths and versions."""


def _is_ascii_alnum(c: str) -> bool:
    return c.isascii() and c.isalnum()


def _check_elem(elem: str, *, file_path: bool) -> None:
    if elem == "":
        raise ModulePathError("empty path element")
    if elem.strip(".") == "":
        raise ModulePathError(f"invalid path element {elem!r}")
    if elem.startswith(".") and not file_path:
        raise ModulePathError("leading dot in path element")
    if elem.endswith("."):
        raise ModulePathError("trailing dot in path element")
    allowed = _FILE_PATH_PUNCT if file_path else _MODULE_PATH_PUNCT
    for c in elem:
        if not (_is_ascii_alnum(c) or c in allowed):
            raise ModulePathError(f"invalid char {c!r}")
    short = elem.split(".", 1)[0]
    if short.upper() in _BAD_WINDOWS_NAMES:
        raise ModulePathError(f"{short} disallowed as path element component on Windows")
    tilde = short.rfind("~")
    if tilde >= 0 and tilde < len(short) - 1 and short[tilde + 1 :].isdigit():
        raise ModulePathError("trailing tilde and digits in path element")


def check_path(path: str) -> None:
    """Check that path is a valid module path."""
    if path == "":
        raise ModulePathError("empty string")
    if path.startswith("-"):
        raise ModulePathError(f"malformed module path {path!r}: leading dash")
    if "//" in path:
        raise ModulePathError(f"malformed module path {path!r}: double slash")
    if path.endswith("/"):
        raise ModulePathError(f"malformed module path {path!r}: trailing slash")
    first = path.split("/", 1)[0]
    if first == "":
        raise ModulePathError(f"malformed module path {path!r}: leading slash")
    if "." not in first:
        raise ModulePathError(f"malformed module path {path!r}: missing dot in first path element")
    if first.startswith("-"):
        raise ModulePathError(f"malformed module path {path!r}: leading dash in first path element")
    for c in first:
        if not (c in "-." or (c.isascii() and (c.isdigit() or c.islower()))):
            raise ModulePathError(f"malformed module path {path!r}: invalid char {c!r} in first path element")
    for elem in path.split("/"):
        try:
            _check_elem(elem, file_path=False)
        except ModulePathError as exc:
            raise ModulePathError(f"malformed module path {path!r}: {exc}") from None


def _escape_string(s: str) -> str:
    for c in s:
        if c == "!" or not c.isascii():
            raise ModulePathError("internal error: inconsistency in escape")
    return "".join("!" + c.lower() if "A" <= c <= "Z" else c for c in s)


def _unescape_string(escaped: str) -> str | None:
    out = []
    bang = False
    for c in escaped:
        if not c.isascii():
            return None
        if bang:
            bang = False
            if not "a" <= c <= "z":
                return None
            out.append(c.upper())
            continue
        if c == "!":
            bang = True
            continue
        if "A" <= c <= "Z":
            return None
        out.append(c)
    if bang:
        return None
    return "".join(out)


def escape_path(path: str) -> str:
    """Return the safe encoding of the given module path."""
    check_path(path)
    return _escape_string(path)


def unescape_path(escaped: str) -> str:
    """Return the module path for the given safe encoding."""
    path = _unescape_string(escaped)
    if path is None:
        raise ModulePathError(f"invalid escaped module path {escaped!r}")
    try:
        check_path(path)
    except ModulePathError as exc:
        raise ModulePathError(f"invalid escaped module path {escaped!r}: {exc}") from None
    return path


def escape_version(v: str) -> str:
    """Return the safe encoding of the given module version."""
    if "!" in v:
        raise ModulePathError(f"disallowed version string {v!r}")
    try:
        _check_elem(v, file_path=True)
    except ModulePathError as exc:
        raise ModulePathError(f"disallowed version string {v!r}: {exc}") from None
    return _escape_string(v)


def unescape_version(escaped: str) -> str:
    """Return the version string for the given safe encoding."""
    v = _unescape_string(escaped)
    if v is None:
        raise ModulePathError(f"invalid escaped version {escaped!r}")
    try:
        _check_elem(v, file_path=True)
    except ModulePathError as exc:
        raise ModulePathError(f"invalid escaped version {escaped!r}: {exc}") from None
    return v


def _is_print(c: str) -> bool:
    if c == " ":
        return True
    return unicodedata.category(c)[0] in "LMNPS"


def must_quote(s: str) -> bool:
    """Report whether s must be quoted to be a single go.mod token."""
    for c in s:
        if c in " \"'`":
            return True
        if c in "()[]{},":
            if len(s) > 1:
                return True
        elif not _is_print(c):
            return True
    return s == "" or "//" in s or "/*" in s


_GO_ESCAPES = {
    "\a": r"\a", "\b": r"\b", "\f": r"\f", "\n": r"\n",
    "\r": r"\r", "\t": r"\t", "\v": r"\v", "\\": r"\\", '"': r"\"",
}


def go_quote(s: str) -> str:
    """Return s as a double-quoted Go string literal."""
    out = ['"']
    for c in s:
        if c in _GO_ESCAPES:
            out.append(_GO_ESCAPES[c])
        elif _is_print(c):
            out.append(c)
        elif ord(c) < 0x80:
            out.append(f"\\x{ord(c):02x}")
        elif ord(c) <= 0xFFFF:
            out.append(f"\\u{ord(c):04x}")
        else:
            out.append(f"\\U{ord(c):08x}")
    out.append('"')
    return "".join(out)


def auto_quote(s: str) -> str:
    """Return s, quoted as a Go string literal only when go.mod syntax requires it."""
    return go_quote(s) if must_quote(s) else s
