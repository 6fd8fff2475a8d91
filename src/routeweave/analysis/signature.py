"""Handler signature extraction for matched mapping sites."""

from __future__ import annotations

import logging
from typing import Iterable

from routeweave.analysis.classifier import normalize_type_name, special_type_name
from routeweave.analysis.model import HandlerParameter, HandlerSignature, MappingSite, TypeTag
from routeweave.syntax.document import SourceDocument
from routeweave.syntax.tokens import Token
from routeweave.syntax.model import (
    ArgumentKind,
    ArgumentSyntax,
    Declaration,
    LambdaSyntax,
    ParameterListSyntax,
    ParameterSyntax,
)

logger = logging.getLogger(__name__)


def type_tag_for(type_text: str | None) -> TypeTag:
    if type_text is None or not type_text.strip():
        return TypeTag.unresolved()
    special = special_type_name(type_text)
    if special is not None:
        return TypeTag.special(special)
    return TypeTag.named(normalize_type_name(type_text))


def _pending_type_only(parameter: ParameterSyntax, text: str, cursor: int | None) -> bool:
    """True when a lone token is a type whose name the author has yet to type."""
    if cursor is None or parameter.type_text is not None or parameter.name_span is None:
        return False
    start, end = parameter.span
    if not start <= cursor <= end:
        return False
    name_end = parameter.name_span[1]
    return cursor > name_end and not text[name_end:cursor].strip()


def _handler_parameter(parameter: ParameterSyntax, text: str, cursor: int | None) -> HandlerParameter:
    annotations = frozenset(attribute.simple_name for attribute in parameter.attributes)
    if _pending_type_only(parameter, text, cursor):
        return HandlerParameter(
            name=None,
            type_tag=type_tag_for(parameter.name),
            annotations=annotations,
            position=parameter.index,
            name_span=None,
            type_span=parameter.name_span,
        )
    return HandlerParameter(
        name=parameter.name,
        type_tag=type_tag_for(parameter.type_text),
        annotations=annotations,
        position=parameter.index,
        name_span=parameter.name_span,
        type_span=parameter.type_span,
    )


def signature_parameters(
    parameters: ParameterListSyntax, text: str, cursor: int | None = None
) -> tuple[HandlerParameter, ...]:
    return tuple(_handler_parameter(parameter, text, cursor) for parameter in parameters.parameters)


def _returns_value(body: Iterable[Token]) -> bool:
    tokens = list(body)
    for index, token in enumerate(tokens[:-1]):
        if token.is_ident("return") and not tokens[index + 1].is_punct(";"):
            return True
    return False


def _lambda_returns(lambda_syntax: LambdaSyntax) -> bool:
    if lambda_syntax.is_async:
        return True
    if lambda_syntax.has_arrow and not lambda_syntax.is_block_body:
        return bool(lambda_syntax.body_tokens)
    return _returns_value(lambda_syntax.body_tokens)


def _declaration_returns(declaration: Declaration) -> bool:
    if declaration.is_async:
        return True
    if declaration.return_type == "void":
        return False
    return declaration.is_expression_bodied or _returns_value(declaration.body_tokens)


def signature_from_declaration(
    declaration: Declaration, document: SourceDocument, cursor: int | None = None
) -> HandlerSignature:
    return HandlerSignature(
        parameters=signature_parameters(declaration.parameters, document.text, cursor),
        is_resolvable=True,
        is_async_or_bodied_with_return_type=_declaration_returns(declaration),
    )


def signature_from_lambda(
    lambda_syntax: LambdaSyntax, document: SourceDocument, cursor: int | None = None
) -> HandlerSignature:
    return HandlerSignature(
        parameters=signature_parameters(lambda_syntax.parameters, document.text, cursor),
        is_resolvable=True,
        is_async_or_bodied_with_return_type=_lambda_returns(lambda_syntax),
    )


def handler_argument(site: MappingSite) -> ArgumentSyntax | None:
    if site.call is None or site.match.handler_arg_index is None:
        return None
    if site.match.handler_arg_index >= len(site.call.arguments):
        return None
    return site.call.arguments[site.match.handler_arg_index]


def extract_signature(
    site: MappingSite, document: SourceDocument, *, cursor: int | None = None
) -> HandlerSignature:
    """Handler parameters for ``site``.

    ``cursor`` lets a lone type token in the parameter being edited be read as
    a type with its name still absent. Null, missing, opaque, and ambiguous
    handlers yield ``HandlerSignature.unresolved()``.
    """
    if site.attribute_site is not None:
        return signature_from_declaration(site.attribute_site.declaration, document, cursor)
    argument = handler_argument(site)
    if argument is None:
        logger.debug("mapping site at %s has no handler argument", site.span)
        return HandlerSignature.unresolved()
    if argument.kind is ArgumentKind.LAMBDA and argument.lambda_syntax is not None:
        return signature_from_lambda(argument.lambda_syntax, document, cursor)
    if argument.kind is ArgumentKind.REFERENCE and argument.reference is not None:
        candidates = document.declarations_named(argument.reference)
        if len(candidates) == 1:
            return signature_from_declaration(candidates[0], document, cursor)
        logger.debug(
            "handler reference %s resolved to %d declarations",
            argument.reference,
            len(candidates),
        )
    return HandlerSignature.unresolved()
