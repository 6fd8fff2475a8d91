from __future__ import annotations

import pytest

from routeweave.analysis import find_discarded_returns
from routeweave.analysis.diagnostics import DISCARDED_RETURN_CODE, declared_result_type


def test_expression_bodied_request_delegate_shape_is_reported() -> None:
    text = 'app.MapGet("/", (HttpContext context) => Task.FromResult("hello"));'
    (finding,) = find_discarded_returns(text)
    assert finding.code == DISCARDED_RETURN_CODE == "ASP0016"
    assert finding.type_name == "string"
    assert "returns Task<string>" in finding.message
    handler = text.index("(HttpContext")
    assert finding.span == (handler, len(text) - 2)


def test_block_bodied_handler_is_reported() -> None:
    text = 'app.MapGet("/", (HttpContext context) => { return Task.FromResult(42); });'
    (finding,) = find_discarded_returns(text)
    assert finding.type_name == "int"


def test_request_delegate_construction_is_target_typed() -> None:
    text = "var d = new RequestDelegate(context => Task.FromResult(DateTime.Now));"
    (finding,) = find_discarded_returns(text)
    assert finding.type_name == "System.DateTime"


def test_explicit_type_argument_is_used() -> None:
    text = 'app.MapGet("/", (HttpContext c) => Task.FromResult<object>(null));'
    (finding,) = find_discarded_returns(text)
    assert finding.type_name == "object"


@pytest.mark.parametrize(
    "handler",
    [
        "async (HttpContext context) => await Task.FromResult(1)",
        "(HttpContext context, int id) => Task.FromResult(1)",
        "(HttpContext context) => Task.CompletedTask",
        "(HttpContext context) => Task.FromResult(Compute())",
        "(int id) => Task.FromResult(id)",
    ],
)
def test_handlers_that_bind_normally_are_not_reported(handler: str) -> None:
    assert find_discarded_returns(f'app.MapGet("/", {handler});') == []


def test_findings_are_sorted_by_position() -> None:
    text = (
        'app.MapGet("/b", (HttpContext c) => Task.FromResult(1.5));\n'
        'app.MapGet("/a", (HttpContext c) => Task.FromResult(true));\n'
    )
    findings = find_discarded_returns(text)
    assert [finding.type_name for finding in findings] == ["double", "bool"]


def test_method_reference_declaring_task_of_t_is_reported() -> None:
    text = (
        'webApp.MapGet("/", HttpMethod);\n'
        'static Task<string> HttpMethod(HttpContext context) => Task.FromResult("hello world");\n'
    )
    (finding,) = find_discarded_returns(text)
    assert finding.type_name == "string"
    handler = text.index("HttpMethod")
    assert finding.span == (handler, handler + len("HttpMethod"))


def test_method_reference_declaring_plain_task_is_clean() -> None:
    text = (
        'webApp.MapGet("/", HttpMethod);\n'
        "static Task HttpMethod(HttpContext context) => Task.CompletedTask;\n"
    )
    assert find_discarded_returns(text) == []


@pytest.mark.parametrize(
    "declarations",
    [
        "static Task<string> HttpMethod(HttpContext context, int id) => null;\n",
        "static Task<string> HttpMethod(string name) => null;\n",
        "static Task<string> HttpMethod(HttpContext c) => null;\n"
        "static Task<int> HttpMethod(HttpContext c, int id) => null;\n",
    ],
)
def test_method_references_that_bind_normally_are_not_reported(declarations: str) -> None:
    assert find_discarded_returns('webApp.MapGet("/", HttpMethod);\n' + declarations) == []


def test_request_delegate_construction_from_method_reference() -> None:
    text = (
        "var d = new RequestDelegate(Handlers.Echo);\n"
        "class Handlers\n"
        "{\n"
        "    public static async System.Threading.Tasks.Task<int> Echo(HttpContext context) { return 1; }\n"
        "}\n"
    )
    (finding,) = find_discarded_returns(text)
    assert finding.type_name == "int"


def test_declared_result_type_reads_task_of_t() -> None:
    assert declared_result_type("Task<string>") == "string"
    assert declared_result_type("System.Threading.Tasks.Task<List<int>>") == "List<int>"
    assert declared_result_type("Task") is None
    assert declared_result_type("ValueTask<int>") is None
