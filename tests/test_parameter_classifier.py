from __future__ import annotations

import pytest

from routeweave.analysis import BindingCategory, HandlerParameter, TypeTag, classify
from routeweave.analysis.classifier import normalize_annotation, special_type_name
from routeweave.analysis.signature import type_tag_for


def _param(type_tag: TypeTag, *annotations: str) -> HandlerParameter:
    return HandlerParameter(name="value", type_tag=type_tag, annotations=frozenset(annotations))


@pytest.mark.parametrize(
    "type_text",
    [
        "HttpContext",
        "CancellationToken",
        "HttpRequest",
        "HttpResponse",
        "ClaimsPrincipal",
        "IFormFileCollection",
        "IFormFile",
        "Stream",
        "PipeReader",
        "Microsoft.AspNetCore.Http.HttpContext",
        "global::System.Threading.CancellationToken",
    ],
)
def test_special_types_are_supplied_by_the_framework(type_text: str) -> None:
    assert classify(_param(type_tag_for(type_text))) is BindingCategory.SPECIAL_FRAMEWORK_TYPE


@pytest.mark.parametrize("annotation", ["FromQuery", "FromForm", "FromHeader", "FromServices"])
def test_source_annotations_bind_elsewhere(annotation: str) -> None:
    assert classify(_param(TypeTag.named("int"), annotation)) is BindingCategory.ANNOTATION_BOUND


def test_annotation_suffix_and_namespace_are_ignored() -> None:
    param = _param(TypeTag.named("int"), "Microsoft.AspNetCore.Mvc.FromQueryAttribute")
    assert classify(param) is BindingCategory.ANNOTATION_BOUND
    assert normalize_annotation("FromQueryAttribute") == "fromquery"


def test_aggregate_wins_over_annotation() -> None:
    param = _param(TypeTag.named("Filter"), "FromQuery", "AsParameters")
    assert classify(param) is BindingCategory.AGGREGATE_BOUND


def test_special_type_wins_over_annotations() -> None:
    param = _param(TypeTag.special("HttpContext"), "AsParameters")
    assert classify(param) is BindingCategory.SPECIAL_FRAMEWORK_TYPE


def test_unknown_annotations_and_types_stay_route_bindable() -> None:
    assert classify(_param(TypeTag.named("int"), "Custom")) is BindingCategory.ROUTE_BINDABLE
    assert classify(_param(TypeTag.unresolved())) is BindingCategory.ROUTE_BINDABLE
    assert classify(_param(TypeTag.named("MyHttpContext"))) is BindingCategory.ROUTE_BINDABLE


def test_special_type_name_handles_nullable_suffix() -> None:
    assert special_type_name("CancellationToken?") == "CancellationToken"
    assert special_type_name("string") is None


def test_annotation_matching_is_case_insensitive() -> None:
    assert classify(_param(TypeTag.named("int"), "fromquery")) is BindingCategory.ANNOTATION_BOUND
    assert classify(_param(TypeTag.named("int"), "ASPARAMETERS")) is BindingCategory.AGGREGATE_BOUND
