"""Host-source tokens and string-literal decoding.

Literal scanners never fail: an unterminated regular string is closed at the
end of its line, verbatim and raw strings at the end of input, and the token
is flagged so callers can treat it as in-progress text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

IDENTIFIER = re.compile(r"@?[^\W\d]\w*")

_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_HEX_ESCAPE_WIDTHS = {"x": 4, "u": 4, "U": 8}
_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "0": "\0",
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "e": "\x1b",
    "\\": "\\",
    '"': '"',
    "'": "'",
}


class TokenKind(str, Enum):
    IDENT = "ident"
    NUMBER = "number"
    STRING = "string"
    VERBATIM_STRING = "verbatim_string"
    RAW_STRING = "raw_string"
    INTERPOLATED_STRING = "interpolated_string"
    CHAR = "char"
    PUNCT = "punct"


@dataclass(frozen=True)
class Token:
    """One source token.

    For string literals ``value`` is the decoded text and ``offsets`` holds the
    source offset of each decoded character plus one trailing entry for the
    closing quote (or the end of an unterminated literal).
    """

    kind: TokenKind
    text: str
    start: int
    end: int
    value: str = ""
    offsets: tuple[int, ...] = ()
    terminated: bool = True

    @property
    def is_string_literal(self) -> bool:
        return self.kind in (TokenKind.STRING, TokenKind.VERBATIM_STRING, TokenKind.RAW_STRING)

    def is_punct(self, text: str) -> bool:
        return self.kind is TokenKind.PUNCT and self.text == text

    def is_ident(self, text: str | None = None) -> bool:
        if self.kind is not TokenKind.IDENT:
            return False
        return text is None or self.text == text


def _escape(source: str, index: int) -> tuple[str, int]:
    """Decode the escape whose backslash sits at ``index``; return (char, length)."""
    escape = source[index + 1]
    width = _HEX_ESCAPE_WIDTHS.get(escape)
    if width is not None:
        digits = source[index + 2 : index + 2 + width]
        count = 0
        while count < len(digits) and digits[count] in _HEX_DIGITS:
            count += 1
        if count:
            value = int(digits[:count], 16)
            return (chr(value) if value <= 0x10FFFF else "\ufffd"), 2 + count
    return _SIMPLE_ESCAPES.get(escape, escape), 2


def scan_regular_string(source: str, start: int) -> Token:
    chars: list[str] = []
    offsets: list[int] = []
    index = start + 1
    length = len(source)
    while index < length:
        ch = source[index]
        if ch == '"':
            offsets.append(index)
            return Token(
                TokenKind.STRING,
                source[start : index + 1],
                start,
                index + 1,
                value="".join(chars),
                offsets=tuple(offsets),
            )
        if ch in "\r\n":
            break
        if ch == "\\" and index + 1 < length and source[index + 1] not in "\r\n":
            offsets.append(index)
            decoded, width = _escape(source, index)
            chars.append(decoded)
            index += width
            continue
        offsets.append(index)
        chars.append(ch)
        index += 1
    offsets.append(index)
    return Token(
        TokenKind.STRING,
        source[start:index],
        start,
        index,
        value="".join(chars),
        offsets=tuple(offsets),
        terminated=False,
    )


def scan_verbatim_string(source: str, start: int) -> Token:
    """Scan an ``@"..."`` literal, where a doubled quote is an escaped quote."""
    chars: list[str] = []
    offsets: list[int] = []
    index = start + 2
    length = len(source)
    while index < length:
        ch = source[index]
        if ch == '"':
            if index + 1 < length and source[index + 1] == '"':
                offsets.append(index)
                chars.append('"')
                index += 2
                continue
            offsets.append(index)
            return Token(
                TokenKind.VERBATIM_STRING,
                source[start : index + 1],
                start,
                index + 1,
                value="".join(chars),
                offsets=tuple(offsets),
            )
        offsets.append(index)
        chars.append(ch)
        index += 1
    offsets.append(length)
    return Token(
        TokenKind.VERBATIM_STRING,
        source[start:length],
        start,
        length,
        value="".join(chars),
        offsets=tuple(offsets),
        terminated=False,
    )


def scan_raw_string(
    source: str, start: int, quote_at: int, kind: TokenKind = TokenKind.RAW_STRING
) -> Token:
    """Scan a raw (triple-quoted) literal; content is taken as written."""
    fence = quote_at
    length = len(source)
    while fence < length and source[fence] == '"':
        fence += 1
    delimiter = source[quote_at:fence]
    close = source.find(delimiter, fence)
    if close < 0:
        return Token(
            kind,
            source[start:length],
            start,
            length,
            value=source[fence:length],
            offsets=tuple(range(fence, length + 1)),
            terminated=False,
        )
    end = close + len(delimiter)
    return Token(
        kind,
        source[start:end],
        start,
        end,
        value=source[fence:close],
        offsets=tuple(range(fence, close + 1)),
    )


def scan_interpolated_string(source: str, start: int, quote_at: int, verbatim: bool) -> Token:
    index = quote_at + 1
    length = len(source)
    depth = 0
    while index < length:
        ch = source[index]
        if ch in "\r\n" and not verbatim and depth == 0:
            break
        if ch == "{":
            if depth == 0 and index + 1 < length and source[index + 1] == "{":
                index += 2
                continue
            depth += 1
        elif ch == "}" and depth:
            depth -= 1
        elif ch == "\\" and not verbatim:
            index += 2
            continue
        elif ch == '"' and depth == 0:
            if verbatim and index + 1 < length and source[index + 1] == '"':
                index += 2
                continue
            return Token(TokenKind.INTERPOLATED_STRING, source[start : index + 1], start, index + 1)
        index += 1
    end = min(index, length)
    return Token(TokenKind.INTERPOLATED_STRING, source[start:end], start, end, terminated=False)


def scan_char(source: str, start: int) -> Token:
    index = start + 1
    length = len(source)
    while index < length and source[index] not in "'\r\n":
        index += 2 if source[index] == "\\" else 1
    if index < length and source[index] == "'":
        return Token(TokenKind.CHAR, source[start : index + 1], start, index + 1)
    end = min(index, length)
    return Token(TokenKind.CHAR, source[start:end], start, end, terminated=False)


def literal_token(source: str, start: int) -> Token | None:
    """The string or character literal starting at ``start``, if one does."""
    if start >= len(source):
        return None
    ch = source[start]
    if ch == '"':
        if source.startswith('"""', start):
            return scan_raw_string(source, start, start)
        return scan_regular_string(source, start)
    if ch == "'":
        return scan_char(source, start)
    if source.startswith('@"', start):
        return scan_verbatim_string(source, start)
    if ch in "$@":
        prefix_end = start
        while prefix_end < len(source) and source[prefix_end] in "$@":
            prefix_end += 1
        prefix = source[start:prefix_end]
        if "$" in prefix and source.startswith('"', prefix_end):
            if source.startswith('"""', prefix_end):
                return scan_raw_string(
                    source, start, prefix_end, kind=TokenKind.INTERPOLATED_STRING
                )
            return scan_interpolated_string(source, start, prefix_end, verbatim="@" in prefix)
    return None
