from __future__ import annotations

from routeweave.syntax import ArgumentKind, SourceDocument


def test_calls_record_callee_and_argument_kinds() -> None:
    document = SourceDocument('app.MapGet("/", () => "hi");')
    (call,) = document.calls
    assert call.callee == "app.MapGet"
    assert call.name == "MapGet"
    assert call.qualifier == "app"
    assert [argument.kind for argument in call.arguments] == [
        ArgumentKind.STRING,
        ArgumentKind.LAMBDA,
    ]
    assert call.arguments[1].lambda_syntax.has_arrow is True


def test_named_arguments_keep_their_labels() -> None:
    document = SourceDocument('app.MapGet(handler: (int id) => id, pattern: "/{id}");')
    (call,) = document.calls
    assert [argument.label for argument in call.arguments] == ["handler", "pattern"]
    assert call.arguments[0].kind is ArgumentKind.LAMBDA
    assert call.arguments[1].literal.value == "/{id}"


def test_null_and_reference_handlers() -> None:
    document = SourceDocument('app.MapGet("/", null);\napp.MapPost("/", Handlers.Post);')
    null_call, reference_call = document.calls
    assert null_call.arguments[1].kind is ArgumentKind.NULL
    assert reference_call.arguments[1].kind is ArgumentKind.REFERENCE
    assert reference_call.arguments[1].reference == "Post"


def test_declarations_capture_parameters_and_attributes() -> None:
    document = SourceDocument(
        'static string Get([FromQuery] int id, HttpContext context) => "";'
    )
    (declaration,) = document.declarations
    assert declaration.name == "Get"
    assert declaration.return_type == "string"
    assert declaration.modifiers == ("static",)
    assert declaration.is_expression_bodied is True
    first, second = declaration.parameters.parameters
    assert first.name == "id"
    assert first.type_text == "int"
    assert [attribute.simple_name for attribute in first.attributes] == ["FromQuery"]
    assert second.type_text == "HttpContext"
    assert document.calls == ()


def test_method_attributes_are_attached_to_declarations() -> None:
    document = SourceDocument(
        '[HttpGet("{id}")]\npublic async Task<object> Get(int id) { return null; }'
    )
    (declaration,) = document.declarations
    assert declaration.is_async is True
    assert declaration.return_type == "Task<object>"
    (attribute,) = declaration.attributes
    assert attribute.simple_name == "HttpGet"
    assert attribute.arguments == ("{id}",)


def test_unterminated_call_extends_to_end_of_input() -> None:
    text = 'app.MapGet("/{id}", (int '
    document = SourceDocument(text)
    (call,) = document.calls
    assert call.close_offset is None
    assert call.span == (0, len(text))
    assert call.contains(len(text))
    handler = call.arguments[1]
    assert handler.kind is ArgumentKind.LAMBDA
    parameters = handler.lambda_syntax.parameters
    assert parameters.is_terminated is False
    assert parameters.contains(len(text))
    assert parameters.parameters[0].name == "int"


def test_parameter_type_only_slot_has_no_name() -> None:
    document = SourceDocument("static void F(List<int>) { }")
    (declaration,) = document.declarations
    (parameter,) = declaration.parameters.parameters
    assert parameter.name is None
    assert parameter.type_text == "List<int>"


def test_calls_at_orders_innermost_first() -> None:
    text = 'app.MapGet("/", () => Results.Ok(Build()));'
    document = SourceDocument(text)
    offset = text.index("Build") + 1
    assert [call.name for call in document.calls_at(offset)] == ["Build", "Ok", "MapGet"]


def test_unclosed_lambda_parameters_stop_at_next_statement() -> None:
    text = 'app.MapGet("/{id}", (int \napp.Run();\n'
    document = SourceDocument(text)
    map_get = next(call for call in document.calls if call.name == "MapGet")
    parameters = map_get.arguments[1].lambda_syntax.parameters
    assert parameters.is_terminated is False
    assert parameters.end_offset == text.index("app.Run")
    (parameter,) = parameters.parameters
    assert parameter.name == "int"
    assert parameter.type_text is None


def test_unclosed_lambda_parameters_stop_after_type_and_name() -> None:
    text = 'app.MapGet("/{id}", (int id app.Run();'
    document = SourceDocument(text)
    map_get = next(call for call in document.calls if call.name == "MapGet")
    parameters = map_get.arguments[1].lambda_syntax.parameters
    assert parameters.end_offset == text.index("app.Run")
    (parameter,) = parameters.parameters
    assert (parameter.type_text, parameter.name) == ("int", "id")


def test_unclosed_generic_parameter_keeps_its_type_arguments() -> None:
    text = 'app.MapGet("/{id}", (Dictionary<string,\n int> '
    document = SourceDocument(text)
    (call,) = document.calls
    (parameter,) = call.arguments[1].lambda_syntax.parameters.parameters
    assert parameter.type_text == "Dictionary<string,\n int>"
    assert parameter.name is None


def test_broken_statement_does_not_hide_later_declarations() -> None:
    text = (
        'app.MapGet("/{id}", (int \n'
        "static string Get(int id) => \"\";\n"
    )
    document = SourceDocument(text)
    assert [declaration.name for declaration in document.declarations_named("Get")] == ["Get"]


def test_nested_generic_return_type_is_read_whole() -> None:
    document = SourceDocument("static Task<List<int>> Load(HttpContext context) => null;")
    (declaration,) = document.declarations
    assert declaration.return_type == "Task<List<int>>"
    assert declaration.parameters.parameters[0].type_text == "HttpContext"
