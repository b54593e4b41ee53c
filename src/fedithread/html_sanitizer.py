"""Allowlist based cleaning of HTML fragments received from remote servers.

Remote posts carry their body as HTML written by whoever controls the remote
instance. :func:`sanitize` accepts only a narrow grammar of that HTML and
rejects everything else: it never strips or escapes its way out of a bad
fragment, so a post either comes back safe or raises a
:class:`~fedithread.errors.SanitizeError`.

The scan is a single left-to-right pass. Plain text is copied, except that a
bare ``>`` is written as ``&gt;``. ``&`` starts an entity, which must be short
and syntactically valid. ``<`` starts a tag; opening tags are checked against
:data:`SAFE_TAGS` and their attributes against :data:`SAFE_ATTRIBUTES`.

Example:
    >>> sanitize("<p>1 > 0</p>")
    '<p>1 &gt; 0</p>'
"""

from __future__ import annotations

import html
import string
from typing import List, Optional

from .errors import (
    BadEntity,
    InvalidAttributeValue,
    InvalidClosingTag,
    InvalidOpeningTag,
    MissingAttributeValue,
    UnsafeAttribute,
    UnsafeTag,
    UnterminatedEntity,
)

SAFE_TAGS = frozenset(
    {
        "P", "BR", "CODE", "BLOCKQUOTE", "PRE",
        "SUB", "SUP", "CAPTION",
        "A", "H1", "H2", "H3", "H4", "H5",
        "STRONG", "EM", "B", "U", "Q", "DEL",
        "UL", "OL", "LI", "DL", "DT", "DD",
        "TABLE", "THEAD", "TBODY", "TR", "TH", "TD",
        "COLGROUP", "COL",
    }
)

SAFE_ATTRIBUTES = frozenset(
    {
        "href", "title", "class", "rel", "target", "lang", "dir", "cite",
        "colspan", "rowspan", "span", "start", "translate",
    }
)

URL_ATTRIBUTES = frozenset({"href", "cite"})
SAFE_SCHEMES = frozenset({"http", "https", "mailto"})

# Longest accepted entity, counting the body and the closing ``;``.
ENTITY_BUDGET = 8


class _Scanner:
    """Cursor over the input plus the output being built."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self.out: List[str] = []

    def peek(self) -> Optional[str]:
        if self.pos < len(self.text):
            return self.text[self.pos]
        return None

    def advance(self) -> Optional[str]:
        char = self.peek()
        if char is not None:
            self.pos += 1
        return char

    def emit(self, chunk: str) -> None:
        self.out.append(chunk)

    def copy(self) -> str:
        char = self.text[self.pos]
        self.pos += 1
        self.out.append(char)
        return char

    def result(self) -> str:
        return "".join(self.out)


def _is_alnum(char: Optional[str]) -> bool:
    return char is not None and char.isascii() and char.isalnum()


def _whitespace(scanner: _Scanner) -> None:
    while True:
        char = scanner.peek()
        if char is None or not char.isspace():
            return
        scanner.copy()


def _identifier(scanner: _Scanner) -> str:
    start = scanner.pos
    while _is_alnum(scanner.peek()):
        scanner.copy()
    return scanner.text[start : scanner.pos]


def _number(scanner: _Scanner) -> None:
    while True:
        char = scanner.peek()
        if char is None or char not in string.digits:
            return
        scanner.copy()


def _quoted_string(scanner: _Scanner) -> str:
    """Copy a double quoted value and return its contents."""
    scanner.copy()
    start = scanner.pos
    while True:
        char = scanner.advance()
        if char is None:
            return scanner.text[start : scanner.pos]
        scanner.emit(char)
        if char == '"':
            return scanner.text[start : scanner.pos - 1]


def _entity_char_ok(body: str, char: str) -> bool:
    if not body:
        return char == "#" or _is_alnum(char)
    if body[0] != "#":
        return _is_alnum(char)
    if len(body) == 1:
        return char in string.digits or char in "xX"
    if body[1] in "xX":
        return char in string.hexdigits
    return char in string.digits


def _entity_body_ok(body: str) -> bool:
    return bool(body) and body not in ("#", "#x", "#X")


def _entity(scanner: _Scanner) -> None:
    start = scanner.pos - 1
    body = ""
    for _ in range(ENTITY_BUDGET):
        char = scanner.advance()
        if char is None:
            break
        if char == ";":
            if not _entity_body_ok(body):
                raise BadEntity(start)
            scanner.emit("&" + body + ";")
            return
        if not _entity_char_ok(body, char):
            raise BadEntity(start)
        body += char
    raise UnterminatedEntity(start)


def is_safe_url(value: str) -> bool:
    """Return ``True`` unless ``value`` uses a scheme outside :data:`SAFE_SCHEMES`."""
    decoded = html.unescape(value)
    cleaned = "".join(
        ch for ch in decoded if not (ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7F)
    )
    scheme, sep, _ = cleaned.partition(":")
    if not sep or any(ch in scheme for ch in "/?#"):
        return True
    return scheme.lower() in SAFE_SCHEMES


def _attribute(scanner: _Scanner) -> None:
    start = scanner.pos
    name = _identifier(scanner).lower()
    if not name:
        raise InvalidOpeningTag(start)
    if name not in SAFE_ATTRIBUTES:
        raise UnsafeAttribute(start)
    _whitespace(scanner)
    if scanner.peek() != "=":
        return
    scanner.copy()
    _whitespace(scanner)
    char = scanner.peek()
    if char is None or char == ">":
        raise MissingAttributeValue(scanner.pos)
    if char in string.digits:
        _number(scanner)
    elif char == '"':
        value = _quoted_string(scanner)
        if name in URL_ATTRIBUTES and not is_safe_url(value):
            raise UnsafeAttribute(start)
    else:
        raise InvalidAttributeValue(scanner.pos)


def _tag(scanner: _Scanner) -> None:
    start = scanner.pos - 1
    scanner.emit("<")
    _whitespace(scanner)

    if scanner.peek() == "/":
        scanner.copy()
        _whitespace(scanner)
        if not _identifier(scanner):
            raise InvalidClosingTag(start)
        _whitespace(scanner)
        if scanner.advance() != ">":
            raise InvalidClosingTag(start)
        scanner.emit(">")
        return

    name = _identifier(scanner)
    if name.upper() not in SAFE_TAGS:
        raise UnsafeTag(start)
    _whitespace(scanner)
    while scanner.peek() not in (None, ">", "/"):
        _attribute(scanner)
        _whitespace(scanner)
    # <br /> style void tags
    if scanner.peek() == "/":
        scanner.copy()
    if scanner.advance() != ">":
        raise InvalidOpeningTag(start)
    scanner.emit(">")


def sanitize(text: str) -> str:
    """Return ``text`` restricted to the safe HTML subset.

    Raises a :class:`~fedithread.errors.SanitizeError` subclass on the first
    construct outside the accepted grammar; nothing is returned for a
    partially valid fragment.
    """

    scanner = _Scanner(text)
    while True:
        char = scanner.advance()
        if char is None:
            break
        if char == ">":
            scanner.emit("&gt;")
        elif char == "&":
            _entity(scanner)
        elif char == "<":
            _tag(scanner)
        else:
            scanner.emit(char)
    return scanner.result()


__all__ = ["sanitize", "is_safe_url", "SAFE_TAGS", "SAFE_ATTRIBUTES"]
