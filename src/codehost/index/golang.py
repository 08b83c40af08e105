"""Go package loading for directories read out of a git tree.

This mirrors the parts of go/build that decide which ``.go`` files belong to
a build (file name GOOS/GOARCH suffixes, ``//go:build`` and ``// +build``
constraints) and reads the package clause and package documentation from
each file header. Bodies are never parsed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Sequence

from codehost.index.godoc import comment_text, synopsis, to_html
from codehost.models import Package

KNOWN_OS = frozenset(
    "aix android darwin dragonfly freebsd hurd illumos ios js linux nacl netbsd "
    "openbsd plan9 solaris wasip1 windows zos".split()
)
KNOWN_ARCH = frozenset(
    "386 amd64 amd64p32 arm armbe arm64 arm64be loong64 mips mipsle mips64 "
    "mips64le mips64p32 mips64p32le ppc ppc64 ppc64le riscv riscv64 s390 s390x "
    "sparc sparc64 wasm".split()
)
UNIX_OS = frozenset(
    "aix android darwin dragonfly freebsd hurd illumos ios linux netbsd openbsd solaris".split()
)


class PackageLoadError(Exception):
    """Raised when a directory's Go files cannot be loaded as a package."""


class MultiplePackageError(PackageLoadError):
    """Raised when a directory holds files from more than one package."""

    def __init__(self, names: Sequence[str], files: Sequence[str]) -> None:
        self.names = list(names)
        self.files = list(files)
        super().__init__(
            f"found packages {self.names[0]} ({self.files[0]}) and "
            f"{self.names[1]} ({self.files[1]})"
        )


@dataclass(slots=True)
class BuildContext:
    """Target configuration used to select files for a build."""

    goos: str = "linux"
    goarch: str = "amd64"
    cgo_enabled: bool = True
    compiler: str = "gc"
    build_tags: frozenset[str] = field(default_factory=frozenset)

    def match_tag(self, tag: str) -> bool:
        if tag in (self.goos, self.goarch, self.compiler):
            return True
        if tag == "unix" and self.goos in UNIX_OS:
            return True
        if tag == "cgo" and self.cgo_enabled:
            return True
        if re.fullmatch(r"go1(\.[1-9][0-9]*)?", tag):
            return True
        return tag in self.build_tags

    def good_os_arch_file(self, name: str) -> bool:
        """Report whether the file name's GOOS/GOARCH suffixes match the context."""
        name = name.split(".", 1)[0]
        i = name.find("_")
        if i < 0:
            return True
        parts = name[i:].split("_")
        if parts and parts[-1] == "test":
            parts = parts[:-1]
        n = len(parts)
        if n >= 2 and parts[n - 2] in KNOWN_OS and parts[n - 1] in KNOWN_ARCH:
            return self._match_os(parts[n - 2]) and parts[n - 1] == self.goarch
        if n >= 1 and parts[n - 1] in KNOWN_OS:
            return self._match_os(parts[n - 1])
        if n >= 1 and parts[n - 1] in KNOWN_ARCH:
            return parts[n - 1] == self.goarch
        return True

    def _match_os(self, goos: str) -> bool:
        if goos == self.goos:
            return True
        if goos == "linux" and self.goos == "android":
            return True
        return goos == "solaris" and self.goos == "illumos"


DEFAULT_CONTEXT = BuildContext()


# Build constraint expressions.

_TOKEN_RE = re.compile(r"\s*(\(|\)|!|&&|\|\||[A-Za-z0-9_.]+)")


class _ExprParser:
    """Recursive-descent evaluator for //go:build expressions."""

    def __init__(self, text: str, ctx: BuildContext) -> None:
        self.tokens: list[str] = []
        pos = 0
        text = text.rstrip()
        while pos < len(text):
            m = _TOKEN_RE.match(text, pos)
            if m is None:
                raise PackageLoadError(f"invalid //go:build expression: {text!r}")
            self.tokens.append(m.group(1))
            pos = m.end()
        self.pos = 0
        self.ctx = ctx

    def parse(self) -> bool:
        value = self._or()
        if self.pos != len(self.tokens):
            raise PackageLoadError("invalid //go:build expression: unexpected token")
        return value

    def _peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _or(self) -> bool:
        value = self._and()
        while self._peek() == "||":
            self.pos += 1
            rhs = self._and()
            value = value or rhs
        return value

    def _and(self) -> bool:
        value = self._not()
        while self._peek() == "&&":
            self.pos += 1
            rhs = self._not()
            value = value and rhs
        return value

    def _not(self) -> bool:
        if self._peek() == "!":
            self.pos += 1
            return not self._not()
        return self._atom()

    def _atom(self) -> bool:
        tok = self._peek()
        if tok is None:
            raise PackageLoadError("invalid //go:build expression: unexpected end")
        self.pos += 1
        if tok == "(":
            value = self._or()
            if self._peek() != ")":
                raise PackageLoadError("invalid //go:build expression: missing )")
            self.pos += 1
            return value
        if tok in (")", "&&", "||"):
            raise PackageLoadError(f"invalid //go:build expression: unexpected {tok}")
        return self.ctx.match_tag(tok)


def eval_go_build(expr: str, ctx: BuildContext = DEFAULT_CONTEXT) -> bool:
    return _ExprParser(expr, ctx).parse()


def eval_plus_build(line: str, ctx: BuildContext = DEFAULT_CONTEXT) -> bool:
    """Evaluate the option list of a ``// +build`` line (OR of AND terms)."""
    for option in line.split():
        ok = True
        for term in option.split(","):
            negate = term.startswith("!")
            name = term[1:] if negate else term
            if not name or name.startswith("!"):
                ok = False
                break
            if ctx.match_tag(name) == negate:
                ok = False
                break
        if ok:
            return True
    return False


def _header_lines(src: str) -> list[str]:
    """Return the leading lines made up only of blank lines and // comments."""
    lines = []
    in_block = False
    for line in src.splitlines():
        stripped = line.strip()
        if in_block:
            lines.append("/*")
            if "*/" in stripped:
                in_block = False
                if stripped.split("*/", 1)[1].strip():
                    break
            continue
        if stripped.startswith("/*"):
            lines.append("/*")
            if "*/" not in stripped[2:]:
                in_block = True
            elif stripped[2:].split("*/", 1)[1].strip():
                break
            continue
        if stripped == "" or stripped.startswith("//"):
            lines.append(stripped)
            continue
        break
    return lines


def should_build(src: str, ctx: BuildContext = DEFAULT_CONTEXT) -> bool:
    """Report whether the file's build constraints are satisfied by ctx."""
    header = _header_lines(src)
    # +build lines only count when followed by a blank line.
    end = 0
    for i, line in enumerate(header):
        if line == "":
            end = i
    go_build = None
    plus_build = []
    for i, line in enumerate(header):
        if line.startswith("//go:build"):
            rest = line[len("//go:build"):]
            if rest == "" or rest[0] in " \t":
                if go_build is not None:
                    raise PackageLoadError("multiple //go:build comments")
                go_build = rest.strip()
        elif i < end and line.startswith("//"):
            text = line[2:].strip()
            if text.startswith("+build") and (text == "+build" or text[6] in " \t"):
                plus_build.append(text[len("+build"):].strip())
    if go_build is not None:
        return eval_go_build(go_build, ctx)
    return all(eval_plus_build(line, ctx) for line in plus_build)


# Package clause and documentation.

_IDENT_RE = re.compile(r"[^\W\d]\w*")


@dataclass(slots=True)
class FileHeader:
    package: str
    doc: str  # Package doc comment text, "" when absent.


def parse_header(src: str) -> FileHeader:
    """Read the package clause and the doc comment attached to it."""
    pos = 0
    line = 1
    # Comment groups as (start line, end line, raw comments).
    groups: list[tuple[int, int, list[str]]] = []
    n = len(src)
    if src.startswith("\ufeff"):
        pos = 1
    while pos < n:
        c = src[pos]
        if c == "\n":
            line += 1
            pos += 1
        elif c in " \t\r":
            pos += 1
        elif src.startswith("//", pos):
            end = src.find("\n", pos)
            end = n if end < 0 else end
            _add_comment(groups, src[pos:end].rstrip("\r"), line, line)
            pos = end
        elif src.startswith("/*", pos):
            end = src.find("*/", pos + 2)
            if end < 0:
                raise PackageLoadError("comment not terminated")
            text = src[pos : end + 2]
            end_line = line + text.count("\n")
            _add_comment(groups, text, line, end_line)
            line = end_line
            pos = end + 2
        else:
            break
    if not src.startswith("package", pos) or not src[pos + 7 : pos + 8].isspace():
        raise PackageLoadError("expected 'package', found something else")
    pos += len("package")
    while pos < n and src[pos] in " \t":
        pos += 1
    m = _IDENT_RE.match(src, pos)
    if m is None or m.group(0) == "_":
        raise PackageLoadError("invalid package name")
    doc = ""
    if groups and groups[-1][1] >= line - 1:
        doc = comment_text(groups[-1][2])
    return FileHeader(package=m.group(0), doc=doc)


def _add_comment(
    groups: list[tuple[int, int, list[str]]], text: str, start: int, end: int
) -> None:
    # Comments separated by at most one newline belong to the same group.
    if groups and start - groups[-1][1] <= 1:
        first, _, comments = groups[-1]
        comments.append(text)
        groups[-1] = (first, end, comments)
    else:
        groups.append((start, end, [text]))


def load_package(
    files: Sequence[tuple[str, bytes]], ctx: BuildContext = DEFAULT_CONTEXT
) -> Package | None:
    """Load the Go package made of the given (file name, content) pairs.

    Returns None when no buildable Go files exist, which is not an error.
    Test files take part in naming the package, as with go/build, but only
    non-test files contribute documentation.
    """
    name = ""
    name_file = ""
    docs = []
    for file_name, content in sorted(files):
        if not file_name.endswith(".go") or file_name.startswith(("_", ".")):
            continue
        if not ctx.good_os_arch_file(file_name):
            continue
        src = content.decode("utf-8", errors="replace")
        try:
            if not should_build(src, ctx):
                continue
            header = parse_header(src)
        except PackageLoadError as exc:
            raise PackageLoadError(f"{file_name}: {exc}") from None
        package = header.package
        if package == "documentation":
            continue
        is_test = file_name.endswith("_test.go")
        if is_test and package.endswith("_test") and package != name:
            # External test package.
            package = package[: -len("_test")]
        if name == "":
            name, name_file = package, file_name
        elif package != name:
            raise MultiplePackageError([name, package], [name_file, file_name])
        if header.doc and not is_test:
            docs.append(header.doc)
    if name == "":
        return None
    # By convention there is only one package comment, but collect them all.
    doc = "\n".join(docs)
    return Package(name=name, synopsis=synopsis(doc), doc_html=to_html(doc))
