"""Bidirectional completion between route templates and handler parameters.

Inside a handler parameter name slot the engine offers route placeholders that
no other handler parameter binds yet; inside a ``{`` placeholder it offers
route-bindable handler parameter names that no other placeholder uses. Any
unresolved piece (no mapping call, null handler, no placeholder at the cursor)
produces an empty result rather than an error.
"""

from __future__ import annotations

import logging
from typing import Sequence

from routeweave.analysis.classifier import classify, is_route_bindable
from routeweave.analysis.matcher import DEFAULT_STRATEGIES, MatchStrategy, mapping_site_at
from routeweave.analysis.model import (
    BindingCategory,
    CompletionContext,
    CompletionContextKind,
    CompletionItem,
    CompletionResult,
    HandlerParameter,
    HandlerSignature,
    MappingSite,
)
from routeweave.analysis.signature import extract_signature, handler_argument
from routeweave.routing.template import Template, parse
from routeweave.syntax.document import SourceDocument
from routeweave.syntax.tokens import Token
from routeweave.syntax.model import ParameterListSyntax

logger = logging.getLogger(__name__)


def _inside_literal(token: Token, offset: int) -> bool:
    if not token.offsets:
        return False
    return token.offsets[0] <= offset <= token.offsets[-1]


def handler_parameter_list(site: MappingSite) -> ParameterListSyntax | None:
    if site.attribute_site is not None:
        return site.attribute_site.declaration.parameters
    argument = handler_argument(site)
    if argument is None or argument.lambda_syntax is None:
        return None
    return argument.lambda_syntax.parameters


def template_for(site: MappingSite) -> Template | None:
    token = site.template_token()
    if token is None:
        return None
    return parse(token.value, token.offsets)


def locate_context(
    document: SourceDocument,
    offset: int,
    strategies: Sequence[MatchStrategy] = DEFAULT_STRATEGIES,
) -> CompletionContext | None:
    site = mapping_site_at(document, offset, strategies)
    if site is None:
        return None
    token = site.template_token()
    if token is not None and _inside_literal(token, offset):
        return CompletionContext(
            kind=CompletionContextKind.INSIDE_TEMPLATE_PLACEHOLDER,
            cursor_offset=offset,
            enclosing_call=site,
        )
    parameters = handler_parameter_list(site)
    if parameters is not None and parameters.contains(offset):
        return CompletionContext(
            kind=CompletionContextKind.INSIDE_HANDLER_PARAMETER_NAME,
            cursor_offset=offset,
            enclosing_call=site,
        )
    return None


def parameter_in_name_slot(
    signature: HandlerSignature, parameters: ParameterListSyntax, cursor: int
) -> HandlerParameter | None:
    """The handler parameter whose name slot holds ``cursor``.

    The parameter must already have a type token; a cursor still inside the
    type token is not a name slot.
    """
    syntax = parameters.parameter_at(cursor)
    if syntax is None or syntax.index >= len(signature.parameters):
        return None
    parameter = signature.parameters[syntax.index]
    if parameter.type_span is None or cursor <= parameter.type_span[1]:
        return None
    if parameter.name is None:
        return parameter
    if parameter.name_span is not None and parameter.name_span[0] <= cursor <= parameter.name_span[1]:
        return parameter
    return None


def complete_handler_parameter_name(
    template: Template,
    signature: HandlerSignature,
    current: HandlerParameter,
    *,
    describe: bool = True,
) -> CompletionResult:
    kind = CompletionContextKind.INSIDE_HANDLER_PARAMETER_NAME
    if not signature.is_resolvable:
        return CompletionResult(kind=kind)
    category = classify(current)
    if category is not BindingCategory.ROUTE_BINDABLE:
        logger.debug("parameter %d is %s; no route names offered", current.position, category.value)
        return CompletionResult(kind=kind)
    used = {
        parameter.name
        for parameter in signature.parameters
        if parameter.name and parameter.position != current.position
    }
    items = tuple(
        CompletionItem(name=name, description=f"Route parameter {{{name}}}" if describe else "")
        for name in template.parameter_names()
        if name not in used
    )
    return CompletionResult(items=items, kind=kind)


def complete_template_placeholder(
    template: Template,
    signature: HandlerSignature,
    logical_cursor: int,
    *,
    describe: bool = True,
) -> CompletionResult:
    kind = CompletionContextKind.INSIDE_TEMPLATE_PLACEHOLDER
    if not signature.is_resolvable:
        return CompletionResult(kind=kind)
    placeholder = template.parameter_at(logical_cursor)
    if placeholder is None:
        return CompletionResult(kind=kind)
    taken = {
        parameter.name
        for parameter in template.parameters
        if parameter is not placeholder and parameter.name
    }
    names: list[str] = []
    items: list[CompletionItem] = []
    for parameter in signature.parameters:
        name = parameter.name
        if not name or name in taken or name in names:
            continue
        if not is_route_bindable(parameter):
            continue
        names.append(name)
        items.append(
            CompletionItem(
                name=name,
                description=f"Handler parameter {parameter.display()}" if describe else "",
            )
        )
    return CompletionResult(items=tuple(items), kind=kind)


def complete_context(
    context: CompletionContext, document: SourceDocument, *, describe: bool = True
) -> CompletionResult:
    site = context.enclosing_call
    template = template_for(site)
    if template is None:
        return CompletionResult(kind=context.kind)
    signature = extract_signature(site, document, cursor=context.cursor_offset)
    if not signature.is_resolvable:
        logger.debug("handler for mapping site at %s is unresolvable", site.span)
        return CompletionResult(kind=context.kind)
    if context.kind is CompletionContextKind.INSIDE_TEMPLATE_PLACEHOLDER:
        return complete_template_placeholder(
            template,
            signature,
            template.logical_offset(context.cursor_offset),
            describe=describe,
        )
    parameters = handler_parameter_list(site)
    if parameters is None:
        return CompletionResult(kind=context.kind)
    current = parameter_in_name_slot(signature, parameters, context.cursor_offset)
    if current is None:
        return CompletionResult(kind=context.kind)
    return complete_handler_parameter_name(template, signature, current, describe=describe)


def complete(
    document: SourceDocument | str,
    offset: int,
    *,
    describe: bool = True,
    strategies: Sequence[MatchStrategy] = DEFAULT_STRATEGIES,
) -> CompletionResult:
    """Completion entry point for one request against a source snapshot."""
    if isinstance(document, str):
        document = SourceDocument(document)
    context = locate_context(document, offset, strategies)
    if context is None:
        return CompletionResult.empty()
    return complete_context(context, document, describe=describe)
