"""Binding classification for handler parameters.

The dispatcher supplies some parameters itself (framework context carriers)
and binds others from an explicit source named by an attribute. Everything
else is a candidate for route binding. Unknown attributes never remove a
parameter from route binding.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from routeweave.analysis.model import BindingCategory, HandlerParameter, TypeTagKind

SPECIAL_TYPES: Mapping[str, str] = MappingProxyType(
    {
        "HttpContext": "Microsoft.AspNetCore.Http.HttpContext",
        "HttpRequest": "Microsoft.AspNetCore.Http.HttpRequest",
        "HttpResponse": "Microsoft.AspNetCore.Http.HttpResponse",
        "CancellationToken": "System.Threading.CancellationToken",
        "ClaimsPrincipal": "System.Security.Claims.ClaimsPrincipal",
        "IFormFileCollection": "Microsoft.AspNetCore.Http.IFormFileCollection",
        "IFormFile": "Microsoft.AspNetCore.Http.IFormFile",
        "Stream": "System.IO.Stream",
        "PipeReader": "System.IO.Pipelines.PipeReader",
    }
)

BINDING_ANNOTATIONS: Mapping[str, BindingCategory] = MappingProxyType(
    {
        "asparameters": BindingCategory.AGGREGATE_BOUND,
        "fromquery": BindingCategory.ANNOTATION_BOUND,
        "fromform": BindingCategory.ANNOTATION_BOUND,
        "fromheader": BindingCategory.ANNOTATION_BOUND,
        "fromservices": BindingCategory.ANNOTATION_BOUND,
    }
)

_QUALIFIED_SPECIAL_TYPES = frozenset(SPECIAL_TYPES.values())


def normalize_type_name(type_text: str) -> str:
    text = type_text.strip()
    if text.startswith("global::"):
        text = text[len("global::") :]
    while text.endswith("?"):
        text = text[:-1]
    return text


def special_type_name(type_text: str) -> str | None:
    """Return the simple special-type name ``type_text`` refers to, if any."""
    text = normalize_type_name(type_text)
    if text in SPECIAL_TYPES:
        return text
    if text in _QUALIFIED_SPECIAL_TYPES:
        return text.rsplit(".", 1)[-1]
    return None


def normalize_annotation(name: str) -> str:
    simple = name.strip().rsplit(".", 1)[-1].rsplit("::", 1)[-1].lower()
    if simple.endswith("attribute") and len(simple) > len("attribute"):
        simple = simple[: -len("attribute")]
    return simple


def annotation_category(name: str) -> BindingCategory | None:
    return BINDING_ANNOTATIONS.get(normalize_annotation(name))


def classify(param: HandlerParameter) -> BindingCategory:
    tag = param.type_tag
    if tag.kind is TypeTagKind.SPECIAL_BOUND:
        return BindingCategory.SPECIAL_FRAMEWORK_TYPE
    if tag.kind is TypeTagKind.NAMED and special_type_name(tag.name) is not None:
        return BindingCategory.SPECIAL_FRAMEWORK_TYPE
    categories = {annotation_category(name) for name in param.annotations}
    if BindingCategory.AGGREGATE_BOUND in categories:
        return BindingCategory.AGGREGATE_BOUND
    if BindingCategory.ANNOTATION_BOUND in categories:
        return BindingCategory.ANNOTATION_BOUND
    return BindingCategory.ROUTE_BINDABLE


def is_route_bindable(param: HandlerParameter) -> bool:
    return classify(param) is BindingCategory.ROUTE_BINDABLE
