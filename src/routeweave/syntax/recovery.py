"""Structure recovery over the tokens of a broken region.

tree-sitter marks text that is still being typed as ``ERROR`` (or leaves
``MISSING`` nodes behind), and the shape of the tree inside such a region
depends on its error recovery. For those regions the document falls back to
this scanner, which reads calls and declarations straight off the token
stream using bracket matching. Unclosed groups run to the end of the
statement, so a half-written handler still yields its parameters.
"""

from __future__ import annotations

import logging

from routeweave.syntax.model import (
    MEMBER_MODIFIERS,
    PARAMETER_MODIFIERS,
    ArgumentKind,
    ArgumentSyntax,
    AttributeUse,
    CallSite,
    Declaration,
    LambdaSyntax,
    ParameterListSyntax,
    ParameterSyntax,
)
from routeweave.syntax.tokens import Token, TokenKind

logger = logging.getLogger(__name__)

_OPENERS = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = {")": "(", "]": "[", "}": "{"}

CONTROL_KEYWORDS = frozenset(
    {
        "if",
        "async",
        "delegate",
        "while",
        "for",
        "foreach",
        "switch",
        "using",
        "lock",
        "catch",
        "fixed",
        "nameof",
        "typeof",
        "sizeof",
        "default",
        "checked",
        "unchecked",
        "when",
        "return",
        "base",
        "this",
    }
)
_EXPRESSION_KEYWORDS = frozenset(
    {
        "return",
        "await",
        "new",
        "throw",
        "yield",
        "else",
        "in",
        "case",
        "when",
        "is",
        "as",
        "and",
        "or",
        "not",
        "out",
        "ref",
        "do",
    }
)
_TYPE_TAIL_PUNCT = frozenset({">", ">>", "]", "?", "*"})
_PARAMETER_PUNCT = frozenset({",", ".", "<", ">", ">>", "?", "[", "]", "(", ")", "=", "::"})
_PARAMETER_STOPS = frozenset({"=>", "{", ";"})


def _angle_closes(token: Token) -> int:
    if token.is_punct(">"):
        return 1
    if token.is_punct(">>"):
        return 2
    return 0


class TokenRecovery:
    """Calls and declarations recovered from ``tokens`` by bracket matching."""

    def __init__(self, text: str, tokens: tuple[Token, ...]) -> None:
        self.text = text
        self.tokens = tokens
        self._matching = self._match_brackets()
        self._reverse_matching = {close: open_ for open_, close in self._matching.items()}
        self.declarations: tuple[Declaration, ...] = tuple(self._find_declarations())
        self.calls: tuple[CallSite, ...] = tuple(self._find_calls())

    # -- bracket structure ---------------------------------------------------

    def _match_brackets(self) -> dict[int, int]:
        matching: dict[int, int] = {}
        stack: list[int] = []
        for index, token in enumerate(self.tokens):
            if token.kind is not TokenKind.PUNCT:
                continue
            if token.text in _OPENERS:
                stack.append(index)
                continue
            opener = _CLOSERS.get(token.text)
            if opener is None:
                continue
            depth = len(stack) - 1
            while depth >= 0 and self.tokens[stack[depth]].text != opener:
                depth -= 1
            if depth < 0:
                continue
            # Openers above the match stay unterminated.
            del stack[depth + 1 :]
            matching[stack.pop()] = index
        return matching

    def _group_end(self, open_index: int) -> tuple[int, int | None]:
        """Return ``(end_index, close_index)`` for the group opened at ``open_index``.

        ``close_index`` is ``None`` when the group is unterminated; ``end_index``
        is then the first top-level ``;``, unbalanced closer, or end of input.
        """
        close = self._matching.get(open_index)
        if close is not None:
            return close, close
        index = open_index + 1
        count = len(self.tokens)
        while index < count:
            token = self.tokens[index]
            if token.kind is TokenKind.PUNCT:
                if token.text in _OPENERS:
                    inner = self._matching.get(index)
                    if inner is None:
                        return self._group_end(index)[0], None
                    index = inner + 1
                    continue
                if token.text in _CLOSERS or token.text == ";":
                    return index, None
            index += 1
        return count, None

    def _offset_of(self, index: int) -> int:
        if index < len(self.tokens):
            return self.tokens[index].start
        return len(self.text)

    def _starts_line(self, index: int) -> bool:
        if index == 0:
            return False
        return "\n" in self.text[self.tokens[index - 1].end : self.tokens[index].start]

    def _split(self, start: int, end: int, *, angles: bool = False) -> list[tuple[int, int]]:
        """Split tokens ``[start, end)`` at top-level commas."""
        segments: list[tuple[int, int]] = []
        segment_start = start
        angle_depth = 0
        index = start
        while index < end:
            token = self.tokens[index]
            if token.kind is TokenKind.PUNCT:
                if token.text in _OPENERS:
                    inner = self._matching.get(index)
                    index = end if inner is None or inner >= end else inner + 1
                    continue
                if angles and token.text == "<":
                    angle_depth += 1
                elif angles and _angle_closes(token) and angle_depth:
                    angle_depth = max(0, angle_depth - _angle_closes(token))
                elif token.text == "," and angle_depth == 0:
                    segments.append((segment_start, index))
                    segment_start = index + 1
            index += 1
        segments.append((segment_start, end))
        return segments

    def _joined(self, start: int, end: int) -> str:
        if start >= end:
            return ""
        return self.text[self.tokens[start].start : self.tokens[end - 1].end]

    # -- attributes ----------------------------------------------------------

    def _attribute_list(self, open_index: int, close_index: int) -> list[AttributeUse]:
        attributes: list[AttributeUse] = []
        for start, end in self._split(open_index + 1, close_index):
            index = start
            if (
                index + 1 < end
                and self.tokens[index].kind is TokenKind.IDENT
                and self.tokens[index + 1].is_punct(":")
            ):
                index += 2
            name_end = index
            while name_end < end and (
                self.tokens[name_end].kind is TokenKind.IDENT
                or self.tokens[name_end].is_punct(".")
                or self.tokens[name_end].is_punct("::")
            ):
                name_end += 1
            if name_end == index:
                continue
            arguments: list[str] = []
            literals: list[Token | None] = []
            if name_end < end and self.tokens[name_end].is_punct("("):
                args_end, _close = self._group_end(name_end)
                args_end = min(args_end, end)
                for arg_start, arg_end in self._split(name_end + 1, args_end):
                    if arg_start >= arg_end:
                        continue
                    first = self.tokens[arg_start]
                    if arg_end - arg_start == 1 and first.is_string_literal:
                        arguments.append(first.value)
                        literals.append(first)
                    else:
                        arguments.append(self._joined(arg_start, arg_end))
                        literals.append(None)
            attributes.append(
                AttributeUse(
                    name=self._joined(index, name_end),
                    arguments=tuple(arguments),
                    span=(self.tokens[index].start, self._offset_of(end)),
                    literals=tuple(literals),
                )
            )
        return attributes

    # -- parameter lists -----------------------------------------------------

    def _parameter(self, index: int, start: int, end: int, span: tuple[int, int]) -> ParameterSyntax:
        attributes: list[AttributeUse] = []
        cursor = start
        while cursor < end and self.tokens[cursor].is_punct("["):
            close = self._matching.get(cursor)
            if close is None or close >= end:
                attributes.extend(self._attribute_list(cursor, end))
                cursor = end
                break
            attributes.extend(self._attribute_list(cursor, close))
            cursor = close + 1
        modifiers: list[str] = []
        while (
            cursor < end
            and self.tokens[cursor].kind is TokenKind.IDENT
            and self.tokens[cursor].text in PARAMETER_MODIFIERS
            and cursor + 1 < end
        ):
            modifiers.append(self.tokens[cursor].text)
            cursor += 1
        default_text: str | None = None
        body_end = end
        for equals in range(cursor, end):
            if self.tokens[equals].is_punct("="):
                default_text = self._joined(equals + 1, end)
                body_end = equals
                break
        type_text: str | None = None
        type_span: tuple[int, int] | None = None
        name: str | None = None
        name_span: tuple[int, int] | None = None
        if cursor < body_end:
            last = self.tokens[body_end - 1]
            if last.kind is TokenKind.IDENT:
                name = last.text
                name_span = (last.start, last.end)
                type_end = body_end - 1
            else:
                type_end = body_end
            if cursor < type_end:
                type_text = self._joined(cursor, type_end)
                type_span = (self.tokens[cursor].start, self.tokens[type_end - 1].end)
        return ParameterSyntax(
            index=index,
            span=span,
            attributes=tuple(attributes),
            modifiers=tuple(modifiers),
            type_text=type_text,
            type_span=type_span,
            name=name,
            name_span=name_span,
            default_text=default_text,
        )

    def _unclosed_parameters_end(self, open_index: int, limit: int) -> int:
        """First token after ``open_index`` that cannot continue an unclosed parameter list.

        Each slot reads as ``[attributes] modifiers type name [= default]``.
        Once a slot has its type, a token on a new line ends the list, and so
        does an identifier or ``.`` after a complete ``type name`` pair.
        """
        state = "start"
        angles = 0
        index = open_index + 1
        while index < limit:
            token = self.tokens[index]
            if token.kind is TokenKind.PUNCT and token.text in _PARAMETER_STOPS:
                return index
            if token.is_punct(","):
                if angles == 0:
                    state = "start"
                index += 1
                continue
            if angles == 0 and state in ("type", "named") and self._starts_line(index):
                return index
            if token.is_punct("(") or token.is_punct("["):
                inner = self._matching.get(index)
                if inner is None or inner >= limit:
                    return limit
                if token.text == "(" and state == "start":
                    state = "type"
                elif token.text == "(" and state == "named":
                    return index
                index = inner + 1
                continue
            if state == "default":
                index += 1
                continue
            if token.is_punct("<"):
                angles += 1
            elif _angle_closes(token):
                angles = max(0, angles - _angle_closes(token))
            elif angles:
                pass
            elif token.is_punct("=") and state == "named":
                state = "default"
            elif token.is_punct(".") or token.is_punct("::"):
                if state == "named":
                    return index
                state = "dot"
            elif token.kind is TokenKind.IDENT:
                if state == "start" and token.text in PARAMETER_MODIFIERS:
                    pass
                elif state in ("start", "dot"):
                    state = "type"
                elif state == "type":
                    state = "named"
                else:
                    return index
            elif token.kind is not TokenKind.PUNCT and state in ("type", "named"):
                return index
            index += 1
        return limit

    def _parameter_list(self, open_index: int) -> ParameterListSyntax:
        end, close = self._group_end(open_index)
        if close is None:
            end = self._unclosed_parameters_end(open_index, end)
        parameters: list[ParameterSyntax] = []
        segments = self._split(open_index + 1, end, angles=True)
        for start, stop in segments:
            if start >= stop:
                continue
            left = self.tokens[start - 1].end
            right = self._offset_of(stop)
            parameters.append(
                self._parameter(len(parameters), start, stop, (left, right))
            )
        open_token = self.tokens[open_index]
        return ParameterListSyntax(
            open_offset=open_token.start,
            close_offset=None if close is None else self.tokens[close].start,
            end_offset=self._offset_of(end),
            parameters=tuple(parameters),
        )

    def _looks_like_parameters(self, start: int, end: int) -> bool:
        for index in range(start, end):
            token = self.tokens[index]
            if token.kind is TokenKind.IDENT:
                continue
            if token.kind is TokenKind.PUNCT and token.text in _PARAMETER_PUNCT:
                continue
            if token.kind in (TokenKind.STRING, TokenKind.VERBATIM_STRING, TokenKind.NUMBER):
                # Attribute arguments and default values.
                continue
            return False
        return True

    # -- arguments -----------------------------------------------------------

    def _lambda(self, start: int, end: int) -> LambdaSyntax | None:
        index = start
        is_async = False
        while index < end and self.tokens[index].kind is TokenKind.IDENT and self.tokens[index].text in {
            "async",
            "static",
        }:
            is_async = is_async or self.tokens[index].text == "async"
            index += 1
        if index < end and self.tokens[index].is_ident("delegate"):
            index += 1
        if index >= end:
            return None
        head = self.tokens[index]
        if head.is_punct("("):
            group_end, close = self._group_end(index)
            parameters = self._parameter_list(index)
            if close is None:
                return LambdaSyntax(
                    parameters=parameters,
                    is_async=is_async,
                    span=(self.tokens[start].start, self._offset_of(min(group_end, end))),
                )
            after = close + 1
            has_arrow = after < end and self.tokens[after].is_punct("=>")
            body_start = after + 1 if has_arrow else after
            if not has_arrow:
                if after < end and not self.tokens[after].is_punct("{"):
                    return None
                if after >= end and not self._looks_like_parameters(index + 1, close):
                    return None
            return self._lambda_with_body(start, end, parameters, is_async, has_arrow, body_start)
        if head.kind is TokenKind.IDENT and index + 1 < end and self.tokens[index + 1].is_punct("=>"):
            parameters = ParameterListSyntax(
                open_offset=head.start - 1,
                close_offset=head.end,
                end_offset=head.end,
                parameters=(
                    ParameterSyntax(
                        index=0,
                        span=(head.start, head.end),
                        name=head.text,
                        name_span=(head.start, head.end),
                    ),
                ),
            )
            return self._lambda_with_body(start, end, parameters, is_async, True, index + 2)
        return None

    def _lambda_with_body(
        self,
        start: int,
        end: int,
        parameters: ParameterListSyntax,
        is_async: bool,
        has_arrow: bool,
        body_start: int,
    ) -> LambdaSyntax:
        body = tuple(self.tokens[body_start:end])
        return LambdaSyntax(
            parameters=parameters,
            is_async=is_async,
            has_arrow=has_arrow,
            body_tokens=body,
            is_block_body=bool(body) and body[0].is_punct("{"),
            span=(self.tokens[start].start, self._offset_of(end)),
        )

    def _argument(self, index: int, start: int, end: int) -> ArgumentSyntax:
        label: str | None = None
        if (
            start + 1 < end
            and self.tokens[start].kind is TokenKind.IDENT
            and self.tokens[start + 1].is_punct(":")
        ):
            label = self.tokens[start].text
            start += 2
        if start >= end:
            offset = self._offset_of(start)
            return ArgumentSyntax(index=index, kind=ArgumentKind.MISSING, span=(offset, offset), label=label)
        tokens = tuple(self.tokens[start:end])
        return ArgumentSyntax.classify(
            index,
            tokens,
            (tokens[0].start, tokens[-1].end),
            label,
            self._lambda(start, end),
        )

    # -- calls ---------------------------------------------------------------

    def _callee_start(self, name_index: int) -> int:
        index = name_index
        while True:
            separator = self.tokens[index - 1] if index >= 1 else None
            if separator is None or not (separator.is_punct(".") or separator.is_punct("?.")):
                return index
            if index >= 2 and self.tokens[index - 2].kind is TokenKind.IDENT:
                index -= 2
            elif (
                index >= 3
                and separator.is_punct(".")
                and self.tokens[index - 2].is_punct("?")
                and self.tokens[index - 3].kind is TokenKind.IDENT
            ):
                index -= 3
            else:
                return index

    def _find_calls(self) -> list[CallSite]:
        calls: list[CallSite] = []
        count = len(self.tokens)
        for index in range(count - 1):
            token = self.tokens[index]
            if token.kind is not TokenKind.IDENT or not self.tokens[index + 1].is_punct("("):
                continue
            callee_start = self._callee_start(index)
            if callee_start == index and token.text in CONTROL_KEYWORDS:
                continue
            previous = self.tokens[callee_start - 1] if callee_start else None
            is_construction = previous is not None and previous.is_ident("new")
            if (
                previous is not None
                and previous.kind is TokenKind.IDENT
                and previous.text not in _EXPRESSION_KEYWORDS
            ):
                # ``Type Name(`` is a declaration, not a call.
                continue
            if previous is not None and _angle_closes(previous) and self._is_declaration_name(index):
                continue
            open_index = index + 1
            end, close = self._group_end(open_index)
            arguments: list[ArgumentSyntax] = []
            if end > open_index + 1:
                for position, (start, stop) in enumerate(self._split(open_index + 1, end)):
                    arguments.append(self._argument(position, start, stop))
            span_end = self.tokens[close].end if close is not None else self._offset_of(end)
            calls.append(
                CallSite(
                    callee="".join(
                        "." if part.text == "?." else part.text
                        for part in self.tokens[callee_start : index + 1]
                        if not part.is_punct("?")
                    ),
                    span=(self.tokens[callee_start].start, span_end),
                    open_offset=self.tokens[open_index].start,
                    close_offset=None if close is None else self.tokens[close].start,
                    arguments=tuple(arguments),
                    is_construction=is_construction,
                )
            )
        return calls

    # -- declarations --------------------------------------------------------

    def _type_start(self, type_end: int) -> int | None:
        """Walk back from the last token of a type to its first token."""
        index = type_end
        if index < 0:
            return None
        while index >= 0 and self.tokens[index].kind is TokenKind.PUNCT:
            token = self.tokens[index]
            if token.text in {"?", "*"}:
                index -= 1
            elif token.text == "]" and index >= 1 and self.tokens[index - 1].is_punct("["):
                index -= 2
            elif _angle_closes(token):
                depth = 0
                while index >= 0:
                    current = self.tokens[index]
                    depth += _angle_closes(current)
                    if current.is_punct("<"):
                        depth -= 1
                        if depth == 0:
                            break
                    index -= 1
                index -= 1
            else:
                return None
        if index < 0 or self.tokens[index].kind is not TokenKind.IDENT:
            return None
        while (
            index >= 2
            and self.tokens[index - 1].kind is TokenKind.PUNCT
            and self.tokens[index - 1].text in {".", "::"}
            and self.tokens[index - 2].kind is TokenKind.IDENT
        ):
            index -= 2
        return index

    def _is_declaration_name(self, name_index: int) -> bool:
        if name_index < 1:
            return False
        previous = self.tokens[name_index - 1]
        if previous.kind is TokenKind.IDENT:
            return previous.text not in _EXPRESSION_KEYWORDS and previous.text not in MEMBER_MODIFIERS
        if previous.kind is TokenKind.PUNCT and previous.text in _TYPE_TAIL_PUNCT:
            return self._type_start(name_index - 1) is not None
        return False

    def _find_declarations(self) -> list[Declaration]:
        declarations: list[Declaration] = []
        count = len(self.tokens)
        for index in range(1, count - 1):
            token = self.tokens[index]
            if token.kind is not TokenKind.IDENT or not self.tokens[index + 1].is_punct("("):
                continue
            if token.text in CONTROL_KEYWORDS or not self._is_declaration_name(index):
                continue
            close = self._matching.get(index + 1)
            if close is None:
                continue
            after = close + 1
            if after < count and self.tokens[after].is_ident("where"):
                while after < count and not (
                    self.tokens[after].is_punct("{") or self.tokens[after].is_punct("=>")
                ):
                    after += 1
            if after >= count:
                continue
            follower = self.tokens[after]
            if not (follower.is_punct("{") or follower.is_punct("=>") or follower.is_punct(";")):
                continue
            type_start = self._type_start(index - 1)
            if type_start is None:
                continue
            declarations.append(self._declaration(index, type_start, after))
        return declarations

    def _declaration(self, name_index: int, type_start: int, body_index: int) -> Declaration:
        modifiers: list[str] = []
        cursor = type_start - 1
        while (
            cursor >= 0
            and self.tokens[cursor].kind is TokenKind.IDENT
            and self.tokens[cursor].text in MEMBER_MODIFIERS
        ):
            modifiers.append(self.tokens[cursor].text)
            cursor -= 1
        attributes: list[AttributeUse] = []
        while cursor >= 0 and self.tokens[cursor].is_punct("]"):
            opener = self._reverse_matching.get(cursor)
            if opener is None:
                break
            attributes[:0] = self._attribute_list(opener, cursor)
            cursor = opener - 1
        follower = self.tokens[body_index]
        body: tuple[Token, ...] = ()
        is_expression_bodied = follower.is_punct("=>")
        if follower.is_punct("{"):
            body_end, _close = self._group_end(body_index)
            body = tuple(self.tokens[body_index : body_end + 1])
        elif is_expression_bodied:
            stop = body_index + 1
            while stop < len(self.tokens) and not self.tokens[stop].is_punct(";"):
                stop += 1
            body = tuple(self.tokens[body_index + 1 : stop])
        start_index = cursor + 1
        end_token = body[-1] if body else self.tokens[body_index]
        logger.debug("recovered declaration %s at %d", self.tokens[name_index].text, self.tokens[name_index].start)
        return Declaration(
            name=self.tokens[name_index].text,
            return_type=self._joined(type_start, name_index),
            span=(self.tokens[start_index].start, end_token.end),
            parameters=self._parameter_list(name_index + 1),
            attributes=tuple(attributes),
            modifiers=tuple(reversed(modifiers)),
            body_tokens=body,
            is_expression_bodied=is_expression_bodied,
        )
