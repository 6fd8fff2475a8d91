from __future__ import annotations

from routeweave.analysis import CompletionContextKind, complete
from tests.markup_helpers import split_markup


def _names(source: str) -> list[str]:
    text, offset = split_markup(source)
    return complete(text, offset).names()


def test_offers_route_bindable_handler_parameters() -> None:
    text, offset = split_markup(
        'app.MapGet("/api/{$$}", (int id, HttpContext context, [FromQuery] string q) => id);'
    )
    result = complete(text, offset)
    assert result.kind is CompletionContextKind.INSIDE_TEMPLATE_PLACEHOLDER
    assert result.names() == ["id"]
    assert result.items[0].description == "Handler parameter int id"


def test_names_taken_by_other_placeholders_are_excluded() -> None:
    assert _names(
        'app.MapGet("/api/{id}/{$$}", (int id, string name, HttpContext ctx) => id);'
    ) == ["name"]


def test_partial_name_keeps_its_own_placeholder_available() -> None:
    assert _names('app.MapGet("/api/{i$$d}", (int id) => id);') == ["id"]


def test_null_handler_gets_nothing() -> None:
    assert _names('app.MapGet("/api/{$$}", null);') == []


def test_incomplete_call_without_handler_gets_nothing() -> None:
    assert _names('app.MapGet(null, @"{$$') == []
    assert _names('app.MapGet("/api/{$$') == []


def test_cursor_in_literal_segment_gets_nothing() -> None:
    assert _names('app.MapGet("/a$$pi/{id}", (int id) => id);') == []


def test_verbatim_and_escaped_templates_map_offsets() -> None:
    assert _names('app.MapGet(@"/api/{$$}", (int id) => id);') == ["id"]
    assert _names('app.MapGet("/a\\tb/{$$}", (int id) => id);') == ["id"]


def test_method_reference_handler() -> None:
    source = (
        'app.MapGet("/api/{$$}", GetItem);\n'
        "static string GetItem(int id, CancellationToken token) => \"\";\n"
    )
    assert _names(source) == ["id"]


def test_ambiguous_method_reference_gets_nothing() -> None:
    source = (
        'app.MapGet("/api/{$$}", GetItem);\n'
        'static string GetItem(int id) => "";\n'
        'static string GetItem(long key) => "";\n'
    )
    assert _names(source) == []


def test_route_attribute_placeholder() -> None:
    source = (
        '[HttpGet("{$$")]\n'
        "public object Get(int id, HttpContext context) => null;\n"
    )
    assert _names(source) == ["id"]


def test_structural_wrapper_placeholder() -> None:
    wrapper = (
        "static class RouteExtensions\n"
        "{\n"
        "    public static void MapCustom(this IEndpointRouteBuilder builder, "
        '[StringSyntax("Route")] string pattern, Delegate handler) { }\n'
        "}\n"
    )
    assert _names(wrapper + 'app.MapCustom("/api/{$$", (string id) => id);') == ["id"]


def test_repeated_requests_give_identical_results() -> None:
    text, offset = split_markup(
        'app.MapGet("/api/{$$}", (int id, string name, Guid tenant) => id);'
    )
    first = complete(text, offset)
    assert first == complete(text, offset)
    assert first.names() == ["id", "name", "tenant"]
