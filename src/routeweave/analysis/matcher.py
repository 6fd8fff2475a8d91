"""Recognition of mapping calls.

A mapping call associates a route template with a handler. Strategies are
tried in order and the first match wins; each is a small object with a pure
``match(call, document)`` method, so new call shapes can be added without
touching the existing ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping, Protocol, Sequence

from routeweave.analysis.model import CallMatch, MappingSite
from routeweave.syntax.document import SourceDocument
from routeweave.syntax.model import CallSite, Declaration, ParameterSyntax, RouteAttributeSite

logger = logging.getLogger(__name__)

TEMPLATE_SLOT = "pattern"
HANDLER_SLOT = "handler"

ENTRY_POINT_TYPE = "EndpointRouteBuilderExtensions"

_VERB_OVERLOADS: tuple[tuple[str, ...], ...] = (("endpoints", "pattern", "handler"),)

WELL_KNOWN_ENTRY_POINTS: Mapping[str, tuple[tuple[str, ...], ...]] = MappingProxyType(
    {
        "MapGet": _VERB_OVERLOADS,
        "MapPost": _VERB_OVERLOADS,
        "MapPut": _VERB_OVERLOADS,
        "MapDelete": _VERB_OVERLOADS,
        "MapPatch": _VERB_OVERLOADS,
        "Map": _VERB_OVERLOADS,
        "MapMethods": (("endpoints", "pattern", "httpMethods", "handler"),),
        "MapFallback": (("endpoints", "handler"), ("endpoints", "pattern", "handler")),
    }
)

ROUTE_ATTRIBUTES = frozenset(
    {
        "HttpGet",
        "HttpPost",
        "HttpPut",
        "HttpDelete",
        "HttpPatch",
        "HttpHead",
        "HttpOptions",
        "Route",
    }
)

_ROUTE_SYNTAX_ATTRIBUTES = frozenset({"RouteTemplate"})
_DELEGATE_TYPES = frozenset({"Delegate", "RequestDelegate", "Func", "Action"})


class MatchStrategy(Protocol):
    name: str

    def match(self, call: CallSite, document: SourceDocument) -> CallMatch | None: ...


def resolve_slots(
    call: CallSite, declared: Sequence[str], *, receiver_offset: int = 0
) -> dict[str, int]:
    """Map declared parameter names to argument indexes.

    Named arguments go to their declared slot wherever they appear; positional
    arguments fill slots by position after the implicit receiver.
    """
    slots: dict[str, int] = {}
    for argument in call.arguments:
        if argument.label is not None:
            if argument.label in declared:
                slots[argument.label] = argument.index
            continue
        position = argument.index + receiver_offset
        if position < len(declared):
            slots.setdefault(declared[position], argument.index)
    return slots


def _select_overload(
    call: CallSite, overloads: Sequence[Sequence[str]], receiver_offset: int
) -> Sequence[str] | None:
    supplied = len(call.arguments) + receiver_offset
    labels = {argument.label for argument in call.arguments if argument.label is not None}
    fitting = [
        declared
        for declared in overloads
        if len(declared) >= supplied and labels <= set(declared)
    ]
    for declared in fitting:
        if len(declared) == supplied:
            return declared
    if fitting:
        return max(fitting, key=len)
    return None


def _call_match(slots: Mapping[str, int], template_slot: str, handler_slot: str, strategy: str) -> CallMatch | None:
    template_index = slots.get(template_slot)
    handler_index = slots.get(handler_slot)
    if template_index is None and handler_index is None:
        return None
    return CallMatch(
        template_arg_index=template_index,
        handler_arg_index=handler_index,
        strategy=strategy,
    )


@dataclass(frozen=True)
class WellKnownEntryPoints:
    name: str = "well-known"

    def match(self, call: CallSite, document: SourceDocument) -> CallMatch | None:
        overloads = WELL_KNOWN_ENTRY_POINTS.get(call.name)
        if overloads is None or call.is_construction:
            return None
        qualifier = call.qualifier
        if qualifier is None:
            return None
        receiver_offset = 0 if qualifier.rsplit(".", 1)[-1] == ENTRY_POINT_TYPE else 1
        declared = _select_overload(call, overloads, receiver_offset)
        if declared is None or TEMPLATE_SLOT not in declared:
            return None
        slots = resolve_slots(call, declared, receiver_offset=receiver_offset)
        return _call_match(slots, TEMPLATE_SLOT, HANDLER_SLOT, self.name)


def is_route_pattern_parameter(parameter: ParameterSyntax) -> bool:
    for attribute in parameter.attributes:
        simple = attribute.simple_name
        if simple in _ROUTE_SYNTAX_ATTRIBUTES:
            return True
        if simple == "StringSyntax" and attribute.arguments:
            if attribute.arguments[0].strip().rsplit(".", 1)[-1].lower() == "route":
                return True
    return False


def is_delegate_parameter(parameter: ParameterSyntax) -> bool:
    if parameter.type_text is None:
        return False
    text = parameter.type_text.strip().rstrip("?")
    generic_base = text.split("<", 1)[0].rsplit(".", 1)[-1]
    return generic_base in _DELEGATE_TYPES


def _wrapper_shape(declaration: Declaration) -> tuple[str, str] | None:
    parameters = declaration.parameters.parameters
    routes = [parameter for parameter in parameters if is_route_pattern_parameter(parameter)]
    delegates = [parameter for parameter in parameters if is_delegate_parameter(parameter)]
    if len(routes) != 1 or len(delegates) != 1:
        return None
    return _slot_name(routes[0]), _slot_name(delegates[0])


def _slot_name(parameter: ParameterSyntax) -> str:
    return parameter.name or f"#{parameter.index}"


@dataclass(frozen=True)
class StructuralWrapper:
    name: str = "structural"

    def match(self, call: CallSite, document: SourceDocument) -> CallMatch | None:
        if call.is_construction:
            return None
        for declaration in document.declarations_named(call.name):
            shape = _wrapper_shape(declaration)
            if shape is None:
                continue
            template_slot, handler_slot = shape
            parameters = declaration.parameters.parameters
            declared = [_slot_name(parameter) for parameter in parameters]
            receiver_offset = 0
            if call.qualifier is not None and parameters and "this" in parameters[0].modifiers:
                receiver_offset = 1
            if len(call.arguments) + receiver_offset > len(declared):
                continue
            slots = resolve_slots(call, declared, receiver_offset=receiver_offset)
            matched = _call_match(slots, template_slot, handler_slot, self.name)
            if matched is not None:
                return matched
        return None


DEFAULT_STRATEGIES: tuple[MatchStrategy, ...] = (WellKnownEntryPoints(), StructuralWrapper())


def match_call(
    call: CallSite,
    document: SourceDocument,
    strategies: Sequence[MatchStrategy] = DEFAULT_STRATEGIES,
) -> CallMatch | None:
    for strategy in strategies:
        matched = strategy.match(call, document)
        if matched is not None:
            return matched
    logger.debug("no mapping strategy matched %s", call.callee)
    return None


def route_attribute_sites(document: SourceDocument) -> list[MappingSite]:
    sites: list[MappingSite] = []
    for declaration in document.declarations:
        for attribute in declaration.attributes:
            if attribute.simple_name not in ROUTE_ATTRIBUTES:
                continue
            sites.append(
                MappingSite(
                    match=CallMatch(template_arg_index=0, handler_arg_index=None, strategy="route-attribute"),
                    attribute_site=RouteAttributeSite(attribute=attribute, declaration=declaration),
                )
            )
    return sites


def mapping_sites(
    document: SourceDocument, strategies: Sequence[MatchStrategy] = DEFAULT_STRATEGIES
) -> list[MappingSite]:
    sites: list[MappingSite] = []
    for call in document.calls:
        matched = match_call(call, document, strategies)
        if matched is not None:
            sites.append(MappingSite(match=matched, call=call))
    sites.extend(route_attribute_sites(document))
    return sites


def mapping_site_at(
    document: SourceDocument,
    offset: int,
    strategies: Sequence[MatchStrategy] = DEFAULT_STRATEGIES,
) -> MappingSite | None:
    """Innermost mapping call or route attribute enclosing ``offset``."""
    for call in document.calls_at(offset):
        matched = match_call(call, document, strategies)
        if matched is not None:
            return MappingSite(match=matched, call=call)
    for site in route_attribute_sites(document):
        attribute_site = site.attribute_site
        if attribute_site is None:
            continue
        if attribute_site.contains(offset) or attribute_site.declaration.parameters.contains(offset):
            return site
    return None
