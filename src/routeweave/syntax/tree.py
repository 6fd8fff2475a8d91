"""tree-sitter parsing of C# host sources.

The tree works in UTF-8 byte offsets; everything routeweave hands out is a
character offset into the Python string, so every node position goes through
``SourceTree.start``/``SourceTree.end``.
"""

from __future__ import annotations

import logging
import re
from bisect import bisect_left
from typing import Iterator

import tree_sitter
import tree_sitter_c_sharp

from routeweave.syntax.tokens import IDENTIFIER, Token, TokenKind, literal_token

logger = logging.getLogger(__name__)

CSHARP = tree_sitter.Language(tree_sitter_c_sharp.language())

_NUMBER_NODES = frozenset({"integer_literal", "real_literal"})
_SKIPPED_NODES = frozenset({"comment"})
_UNLEXED_PIECE = re.compile(r"@?[^\W\d]\w*|\d[\w.]*|=>|\?\.|::|\S")


def _byte_to_char_table(text: str, size: int) -> list[int]:
    table = [0] * (size + 1)
    byte = 0
    for index, ch in enumerate(text):
        width = len(ch.encode("utf-8", "surrogatepass"))
        for step in range(width):
            table[byte + step] = index
        byte += width
    table[size] = len(text)
    return table


class SourceTree:
    """One parsed source text: the tree-sitter tree plus its token stream."""

    def __init__(self, text: str) -> None:
        self.text = text
        data = text.encode("utf-8", "surrogatepass")
        self.tree = tree_sitter.Parser(CSHARP).parse(data)
        self.root = self.tree.root_node
        self._chars = None if len(data) == len(text) else _byte_to_char_table(text, len(data))
        self.tokens: tuple[Token, ...] = tuple(self._read_tokens())
        self._token_starts = [token.start for token in self.tokens]
        if self.root.has_error:
            logger.debug("source has syntax errors; broken regions are recovered from tokens")

    # -- positions -----------------------------------------------------------

    def offset(self, byte: int) -> int:
        if self._chars is None:
            return byte
        return self._chars[byte]

    def start(self, node: tree_sitter.Node) -> int:
        return self.offset(node.start_byte)

    def end(self, node: tree_sitter.Node) -> int:
        return self.offset(node.end_byte)

    def span(self, node: tree_sitter.Node) -> tuple[int, int]:
        return self.start(node), self.end(node)

    def node_text(self, node: tree_sitter.Node) -> str:
        return self.text[self.start(node) : self.end(node)]

    def tokens_in(self, start: int, end: int) -> tuple[Token, ...]:
        low = bisect_left(self._token_starts, start)
        high = bisect_left(self._token_starts, end)
        return self.tokens[low:high]

    # -- tokens --------------------------------------------------------------

    def _leaves(self) -> Iterator[tree_sitter.Node]:
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.child_count == 0:
                yield node
                continue
            stack.extend(reversed(node.children))

    def _leaf_token(self, node: tree_sitter.Node, start: int) -> Token | None:
        if node.type in _SKIPPED_NODES or node.is_missing:
            return None
        end = self.end(node)
        if end <= start:
            return None
        literal = literal_token(self.text, start)
        if literal is not None:
            return literal
        raw = self.text[start:end]
        if node.type in _NUMBER_NODES or raw[0].isdigit():
            return Token(TokenKind.NUMBER, raw, start, end)
        if IDENTIFIER.fullmatch(raw):
            return Token(TokenKind.IDENT, raw.lstrip("@"), start, end)
        return Token(TokenKind.PUNCT, raw, start, end)

    def _unlexed(self, start: int, end: int) -> Iterator[Token]:
        """Tokens inside a childless ``ERROR`` leaf, which may span several."""
        index = start
        while index < end:
            if self.text[index].isspace():
                index += 1
                continue
            literal = literal_token(self.text, index)
            if literal is not None:
                yield literal
                index = literal.end
                continue
            match = _UNLEXED_PIECE.match(self.text, index, end)
            if match is None:
                return
            piece = match.group()
            if piece[0].isdigit():
                yield Token(TokenKind.NUMBER, piece, index, match.end())
            elif IDENTIFIER.fullmatch(piece):
                yield Token(TokenKind.IDENT, piece.lstrip("@"), index, match.end())
            else:
                yield Token(TokenKind.PUNCT, piece, index, match.end())
            index = match.end()

    def _read_tokens(self) -> Iterator[Token]:
        consumed = 0
        for node in self._leaves():
            start = self.start(node)
            if start < consumed:
                # Inside a literal that was already read as one token.
                continue
            if node.type == "ERROR":
                tokens = list(self._unlexed(start, self.end(node)))
            else:
                token = self._leaf_token(node, start)
                tokens = [] if token is None else [token]
            for token in tokens:
                consumed = token.end
                yield token


def tokenize(text: str) -> list[Token]:
    return list(SourceTree(text).tokens)
