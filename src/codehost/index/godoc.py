"""Package documentation: comment text, synopsis and HTML rendering.

The output follows the classic godoc formatting so that rendered package
pages stay byte-for-byte stable: paragraphs, headings and preformatted
blocks, with URLs turned into links.
"""

from __future__ import annotations

import re
import unicodedata

_DIRECTIVE_RE = re.compile(r"^[a-z0-9]+:[a-z0-9]")
_ILLEGAL_PREFIXES = ("copyright", "all rights", "author")

_URL_RE = re.compile(
    r"(https?|ftp|file|gopher|mailto|news|nntp|telnet|wais|prospero)://"
    r"[a-zA-Z0-9_@\-.\[\]:]+"
    r"(?:[.,:;?!]*[a-zA-Z0-9$'()*+&#=@~_/\-\[\]%])*"
)


def _is_directive(c: str) -> bool:
    if c.startswith(("line ", "extern ", "export ")):
        return True
    return _DIRECTIVE_RE.match(c) is not None


def comment_text(comments: list[str]) -> str:
    """Return the text of a comment group with comment markers removed.

    Directive comments (``//go:build`` and friends) are dropped, leading and
    trailing blank lines removed and runs of blank lines collapsed to one.
    """
    lines: list[str] = []
    for c in comments:
        if c.startswith("//"):
            c = c[2:]
            if c.startswith(" "):
                c = c[1:]
            elif c and _is_directive(c):
                continue
        elif c.startswith("/*"):
            c = c[2:-2]
        lines.extend(line.rstrip() for line in c.split("\n"))

    out: list[str] = []
    for line in lines:
        if line != "" or (out and out[-1] != ""):
            out.append(line)
    while out and out[-1] == "":
        out.pop()
    if not out:
        return ""
    return "\n".join(out) + "\n"


def _first_sentence_len(s: str) -> int:
    ppp = pp = p = ""
    prev = ""
    for i, q in enumerate(s):
        # A blank line ends the first paragraph.
        if q == "\n" and prev == "\n":
            return i
        prev = q
        if q in "\n\r\t":
            q = " "
        if q == " " and p == "." and (not pp.isupper() or ppp.isupper()):
            return i
        if p in ("。", "．"):
            return i
        ppp, pp, p = pp, p, q
    return len(s)


def synopsis(text: str) -> str:
    """Return the first sentence of a package comment, whitespace collapsed."""
    s = " ".join(text[: _first_sentence_len(text)].split())
    if s.lower().startswith(_ILLEGAL_PREFIXES):
        return ""
    return s.replace("``", "“").replace("''", "”")


def html_escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("'", "&#39;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&#34;")
        .replace("\x00", "\ufffd")
    )


def _comment_escape(s: str, nice: bool) -> str:
    if not nice:
        return html_escape(s)
    s = html_escape(s.replace("``", "“").replace("''", "”"))
    return s.replace("“", "&ldquo;").replace("”", "&rdquo;")


def _emphasize(line: str, nice: bool) -> str:
    out = []
    pos = 0
    for m in _URL_RE.finditer(line):
        url = m.group(0)
        # Drop trailing parens that aren't balanced by opening ones.
        while url.endswith(")") and url.count(")") > url.count("("):
            url = url[:-1]
        start, end = m.start(), m.start() + len(url)
        out.append(_comment_escape(line[pos:start], nice))
        out.append(f'<a href="{html_escape(url)}">{_comment_escape(url, nice)}</a>')
        pos = end
    out.append(_comment_escape(line[pos:], nice))
    return "".join(out)


def _is_blank(line: str) -> bool:
    return line.strip(" \t\n") == ""


def _indent_len(line: str) -> int:
    return len(line) - len(line.lstrip(" \t"))


def _unindent(block: list[str]) -> None:
    prefix = None
    for line in block:
        if _is_blank(line):
            continue
        indent = line[: _indent_len(line)]
        if prefix is None:
            prefix = indent
        else:
            while not indent.startswith(prefix):
                prefix = prefix[:-1]
    if prefix:
        for i, line in enumerate(block):
            if not _is_blank(line):
                block[i] = line[len(prefix) :]


def heading(line: str) -> str:
    """Return line if it qualifies as a section heading, otherwise ""."""
    line = line.strip()
    if not line:
        return ""
    first, last = line[0], line[-1]
    if not (first.isalpha() and first.isupper()):
        return ""
    if not (last.isalpha() or last.isdigit()):
        return ""
    if any(c in line for c in ";:!?+*/=[]{}_^°&§~%#@<\">\\"):
        return ""
    b = line
    while (i := b.find("'")) >= 0:
        if i + 1 >= len(b) or b[i + 1] != "s" or (i + 2 < len(b) and b[i + 2] != " "):
            return ""
        b = b[i + 2 :]
    b = line
    while (i := b.find(".")) >= 0:
        if i + 1 >= len(b) or b[i + 1] == " ":
            return ""
        b = b[i + 1 :]
    return line


def _anchor_id(line: str) -> str:
    chars = []
    for c in line:
        if c.isalpha() or unicodedata.category(c) == "Nd":
            chars.append(c)
        else:
            chars.append("_")
    return "hdr-" + "".join(chars)


def _blocks(text: str) -> list[tuple[str, list[str]]]:
    out: list[tuple[str, list[str]]] = []
    para: list[str] = []
    last_was_blank = False
    last_was_heading = False

    def close() -> None:
        nonlocal para
        if para:
            out.append(("para", para))
            para = []

    lines = text.splitlines(keepends=True)
    _unindent(lines)
    i = 0
    while i < len(lines):
        line = lines[i]
        if _is_blank(line):
            close()
            i += 1
            last_was_blank = True
            continue
        if _indent_len(line) > 0:
            close()
            j = i + 1
            while j < len(lines) and (_is_blank(lines[j]) or _indent_len(lines[j]) > 0):
                j += 1
            while j > i and _is_blank(lines[j - 1]):
                j -= 1
            pre = lines[i:j]
            i = j
            _unindent(pre)
            out.append(("pre", pre))
            last_was_heading = False
            continue
        if (
            last_was_blank
            and not last_was_heading
            and i + 2 < len(lines)
            and _is_blank(lines[i + 1])
            and not _is_blank(lines[i + 2])
            and _indent_len(lines[i + 2]) == 0
        ):
            head = heading(line)
            if head:
                close()
                out.append(("head", [head]))
                i += 2
                last_was_heading = True
                continue
        last_was_blank = False
        last_was_heading = False
        para.append(line)
        i += 1
    close()
    return out


def to_html(text: str) -> str:
    """Render comment text as HTML paragraphs, headings and <pre> blocks."""
    out = []
    for op, lines in _blocks(text):
        if op == "para":
            out.append("<p>\n")
            out.extend(_emphasize(line, True) for line in lines)
            out.append("</p>\n")
        elif op == "head":
            out.append(f'<h3 id="{_anchor_id(lines[0])}">')
            out.append(_comment_escape(lines[0], True))
            out.append("</h3>\n")
        else:
            out.append("<pre>")
            out.extend(_emphasize(line, False) for line in lines)
            out.append("</pre>\n")
    return "".join(out)
