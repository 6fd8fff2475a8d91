from __future__ import annotations

from routeweave.analysis import TypeTagKind, extract_signature, mapping_sites
from routeweave.syntax import SourceDocument


def _signature(text: str):
    document = SourceDocument(text)
    (site,) = [site for site in mapping_sites(document) if site.call is not None]
    return extract_signature(site, document)


def test_lambda_parameters_carry_types_and_annotations() -> None:
    signature = _signature(
        'app.MapGet("/{id}", ([FromQuery] int id, HttpContext ctx, string name) => "");'
    )
    assert signature.is_resolvable is True
    assert signature.names() == ["id", "ctx", "name"]
    first, second, third = signature.parameters
    assert first.annotations == frozenset({"FromQuery"})
    assert second.type_tag.kind is TypeTagKind.SPECIAL_BOUND
    assert third.type_tag.name == "string"
    assert [parameter.position for parameter in signature.parameters] == [0, 1, 2]


def test_implicitly_typed_lambda_parameters_are_unresolved() -> None:
    signature = _signature('app.MapGet("/{id}", id => id);')
    (parameter,) = signature.parameters
    assert parameter.name == "id"
    assert parameter.type_tag.kind is TypeTagKind.UNRESOLVED


def test_method_reference_resolves_a_single_declaration() -> None:
    signature = _signature(
        'app.MapGet("/{id}", GetItem);\nstatic string GetItem(int id) => "";'
    )
    assert signature.is_resolvable is True
    assert signature.names() == ["id"]
    assert signature.is_async_or_bodied_with_return_type is True


def test_overloaded_method_reference_is_unresolvable() -> None:
    signature = _signature(
        'app.MapGet("/{id}", GetItem);\n'
        'static string GetItem(int id) => "";\n'
        'static string GetItem(string id) => "";'
    )
    assert signature.is_resolvable is False
    assert signature.parameters == ()


def test_null_and_missing_handlers_are_unresolvable() -> None:
    assert _signature('app.MapGet("/{id}", null);').is_resolvable is False
    assert _signature('app.MapGet("/{id}");').is_resolvable is False


def test_async_and_value_returning_bodies() -> None:
    assert _signature(
        'app.MapGet("/", async (HttpContext c) => await c.Response.WriteAsync("x"));'
    ).is_async_or_bodied_with_return_type is True
    assert _signature(
        'app.MapGet("/", (HttpContext c) => { c.Response.StatusCode = 204; });'
    ).is_async_or_bodied_with_return_type is False
    assert _signature(
        'app.MapGet("/", (HttpContext c) => { return Task.CompletedTask; });'
    ).is_async_or_bodied_with_return_type is True
