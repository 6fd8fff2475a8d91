"""Handlers whose return value the request pipeline discards.

A handler shaped like ``RequestDelegate`` (one ``HttpContext`` parameter,
returning ``Task``) binds to the delegate overload, so any ``Task<T>`` result
it produces is thrown away. Lambdas are reported when they directly return a
``Task.FromResult`` value whose type can be read off the syntax; method
references when the one declaration they name declares ``Task<T>``. Anything
needing flow analysis is left alone.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Sequence

from routeweave.analysis.matcher import DEFAULT_STRATEGIES, MatchStrategy, mapping_sites
from routeweave.analysis.model import HandlerSignature, TypeTagKind
from routeweave.analysis.signature import (
    handler_argument,
    signature_from_declaration,
    signature_from_lambda,
)
from routeweave.syntax.document import SourceDocument
from routeweave.syntax.tokens import Token, TokenKind
from routeweave.syntax.model import ArgumentKind, ArgumentSyntax, LambdaSyntax

logger = logging.getLogger(__name__)

DISCARDED_RETURN_CODE = "ASP0016"
DISCARDED_RETURN_MESSAGE = (
    "The method used to create a RequestDelegate returns Task<{type}>. "
    "RequestDelegate discards this value. If this isn't intended then don't "
    "return a value or change the method signature to not match RequestDelegate."
)

REQUEST_DELEGATE_CONSTRUCTORS: Mapping[str, int] = MappingProxyType(
    {"RequestDelegate": 0, "Endpoint": 0}
)
_KNOWN_MEMBER_TYPES: Mapping[tuple[str, ...], str] = MappingProxyType(
    {
        ("DateTime", ".", "Now"): "System.DateTime",
        ("DateTime", ".", "UtcNow"): "System.DateTime",
        ("DateTime", ".", "Today"): "System.DateTime",
        ("DateTimeOffset", ".", "Now"): "System.DateTimeOffset",
        ("DateTimeOffset", ".", "UtcNow"): "System.DateTimeOffset",
    }
)


@dataclass(frozen=True)
class DiscardedReturn:
    code: str
    message: str
    span: tuple[int, int]
    type_name: str


def _literal_type(tokens: Sequence[Token]) -> str | None:
    if not tokens:
        return None
    key = tuple(token.text for token in tokens)
    if key in _KNOWN_MEMBER_TYPES:
        return _KNOWN_MEMBER_TYPES[key]
    if len(tokens) != 1:
        return None
    token = tokens[0]
    if token.is_string_literal or token.kind is TokenKind.INTERPOLATED_STRING:
        return "string"
    if token.kind is TokenKind.CHAR:
        return "char"
    if token.is_ident("true") or token.is_ident("false"):
        return "bool"
    if token.kind is TokenKind.NUMBER:
        text = token.text.lower().replace("_", "")
        is_hex = text.startswith("0x")
        if text.endswith("m"):
            return "decimal"
        if text.endswith("f") and not is_hex:
            return "float"
        if not is_hex and (text.endswith("d") or "." in text or "e" in text):
            return "double"
        if text.endswith("ul") or text.endswith("lu"):
            return "ulong"
        if text.endswith("l"):
            return "long"
        if text.endswith("u"):
            return "uint"
        return "int"
    return None


def _from_result_type(tokens: Sequence[Token], start: int) -> str | None:
    """Type of ``Task.FromResult(...)`` starting at ``tokens[start]``, if provable."""
    index = start
    # Optional namespace qualification: System.Threading.Tasks.Task
    while index + 1 < len(tokens) and tokens[index].kind is TokenKind.IDENT and tokens[index + 1].is_punct("."):
        if tokens[index].text == "Task":
            break
        index += 2
    if index + 2 >= len(tokens):
        return None
    if not (tokens[index].is_ident("Task") and tokens[index + 1].is_punct(".") and tokens[index + 2].is_ident("FromResult")):
        return None
    index += 3
    if index < len(tokens) and tokens[index].is_punct("<"):
        close = index + 1
        while close < len(tokens) and not tokens[close].is_punct(">"):
            close += 1
        if close >= len(tokens):
            return None
        return "".join(token.text for token in tokens[index + 1 : close]) or None
    if index >= len(tokens) or not tokens[index].is_punct("("):
        return None
    depth = 0
    argument: list[Token] = []
    for token in tokens[index:]:
        if token.is_punct("("):
            depth += 1
            if depth == 1:
                continue
        elif token.is_punct(")"):
            depth -= 1
            if depth == 0:
                return _literal_type(argument)
        argument.append(token)
    return None


def returned_result_type(lambda_syntax: LambdaSyntax) -> str | None:
    body = lambda_syntax.body_tokens
    if not body:
        return None
    if not lambda_syntax.is_block_body:
        return _from_result_type(body, 0)
    for index, token in enumerate(body):
        if token.is_ident("return"):
            found = _from_result_type(body, index + 1)
            if found is not None:
                return found
    return None


def _is_request_delegate_shape(signature: HandlerSignature, *, target_typed: bool) -> bool:
    if len(signature.parameters) != 1:
        return False
    tag = signature.parameters[0].type_tag
    if tag.kind is TypeTagKind.SPECIAL_BOUND and tag.name == "HttpContext":
        return True
    return target_typed and tag.kind is TypeTagKind.UNRESOLVED


def _check_lambda(
    argument: ArgumentSyntax | None, document: SourceDocument, *, target_typed: bool
) -> DiscardedReturn | None:
    if argument is None or argument.kind is not ArgumentKind.LAMBDA or argument.lambda_syntax is None:
        return None
    lambda_syntax = argument.lambda_syntax
    if lambda_syntax.is_async:
        return None
    signature = signature_from_lambda(lambda_syntax, document)
    if not signature.is_async_or_bodied_with_return_type:
        return None
    if not _is_request_delegate_shape(signature, target_typed=target_typed):
        return None
    type_name = returned_result_type(lambda_syntax)
    if type_name is None:
        return None
    return _finding(argument, type_name)


def declared_result_type(return_type: str) -> str | None:
    """``T`` when ``return_type`` is ``Task<T>`` (optionally namespace-qualified)."""
    text = "".join(return_type.split())
    if "<" not in text or not text.endswith(">"):
        return None
    base, argument = text.split("<", 1)
    if base.rsplit(".", 1)[-1] != "Task":
        return None
    return argument[:-1] or None


def _finding(argument: ArgumentSyntax, type_name: str) -> DiscardedReturn:
    return DiscardedReturn(
        code=DISCARDED_RETURN_CODE,
        message=DISCARDED_RETURN_MESSAGE.format(type=type_name),
        span=argument.span,
        type_name=type_name,
    )


def _check_reference(
    argument: ArgumentSyntax | None, document: SourceDocument, *, target_typed: bool
) -> DiscardedReturn | None:
    if argument is None or argument.kind is not ArgumentKind.REFERENCE or argument.reference is None:
        return None
    candidates = document.declarations_named(argument.reference)
    if len(candidates) != 1:
        return None
    declaration = candidates[0]
    if not _is_request_delegate_shape(signature_from_declaration(declaration, document), target_typed=target_typed):
        return None
    type_name = declared_result_type(declaration.return_type)
    if type_name is None:
        return None
    return _finding(argument, type_name)


def _check_handler(
    argument: ArgumentSyntax | None, document: SourceDocument, *, target_typed: bool
) -> DiscardedReturn | None:
    finding = _check_lambda(argument, document, target_typed=target_typed)
    if finding is None:
        finding = _check_reference(argument, document, target_typed=target_typed)
    return finding


def find_discarded_returns(
    document: SourceDocument | str,
    strategies: Sequence[MatchStrategy] = DEFAULT_STRATEGIES,
) -> list[DiscardedReturn]:
    if isinstance(document, str):
        document = SourceDocument(document)
    findings: list[DiscardedReturn] = []
    for site in mapping_sites(document, strategies):
        finding = _check_handler(handler_argument(site), document, target_typed=False)
        if finding is not None:
            findings.append(finding)
    for call in document.calls:
        position = REQUEST_DELEGATE_CONSTRUCTORS.get(call.name)
        if not call.is_construction or position is None or position >= len(call.arguments):
            continue
        finding = _check_handler(call.arguments[position], document, target_typed=True)
        if finding is not None:
            findings.append(finding)
    findings.sort(key=lambda finding: finding.span)
    logger.debug("%d discarded return value(s)", len(findings))
    return findings
