from __future__ import annotations

from routeweave.syntax import TokenKind, tokenize
from routeweave.syntax.tokens import literal_token


def test_tokenize_mapping_call() -> None:
    tokens = tokenize('app.MapGet("/a", x => x);')
    assert [token.text for token in tokens] == [
        "app", ".", "MapGet", "(", '"/a"', ",", "x", "=>", "x", ")", ";",
    ]
    assert tokens[4].kind is TokenKind.STRING
    assert tokens[4].value == "/a"
    assert (tokens[4].start, tokens[4].end) == (11, 15)


def test_offsets_are_code_points_after_non_ascii_text() -> None:
    text = 'var s = "é😀"; app.Run();'
    tokens = tokenize(text)
    run = next(token for token in tokens if token.is_ident("Run"))
    assert run.start == text.index("Run")
    literal = next(token for token in tokens if token.kind is TokenKind.STRING)
    assert literal.value == "é😀"


def test_regular_string_records_escape_offsets() -> None:
    token = literal_token('"a\\nb"', 0)
    assert token.value == "a\nb"
    assert token.offsets == (1, 2, 4, 5)
    assert len(token.offsets) == len(token.value) + 1


def test_long_unicode_escape_reads_eight_digits() -> None:
    token = literal_token('"\\U0001F600{id}"', 0)
    assert token.value == "😀{id}"
    assert token.offsets == (1, 11, 12, 13, 14, 15)


def test_short_escapes_stop_at_their_width() -> None:
    assert literal_token('"\\u00e9x"', 0).value == "éx"
    assert literal_token('"\\x41"', 0).value == "A"
    assert literal_token('"\\UFFFFFFFF"', 0).value == "�"


def test_unterminated_string_stops_at_line_end() -> None:
    token = literal_token('"abc\nfoo', 0)
    assert token.kind is TokenKind.STRING
    assert token.terminated is False
    assert token.value == "abc"
    assert token.end == 4


def test_verbatim_string_doubles_quotes() -> None:
    token = literal_token('@"a""b"', 0)
    assert token.kind is TokenKind.VERBATIM_STRING
    assert token.value == 'a"b'
    assert token.offsets == (2, 3, 5, 6)


def test_unterminated_verbatim_string_runs_to_end_of_input() -> None:
    token = literal_token('@"{', 0)
    assert token.terminated is False
    assert token.value == "{"
    assert token.offsets == (2, 3)


def test_raw_string_takes_content_as_written() -> None:
    token = literal_token('"""a\\n{b}"""', 0)
    assert token.kind is TokenKind.RAW_STRING
    assert token.value == "a\\n{b}"
    assert token.is_string_literal is True


def test_comments_are_skipped() -> None:
    tokens = tokenize("var a = 1; // b\n/* c */ var d = 2;")
    texts = [token.text for token in tokens]
    assert "a" in texts and "d" in texts
    assert not any("b" in text or "c" in text for text in texts)


def test_verbatim_identifiers_drop_the_prefix() -> None:
    tokens = tokenize("var x = @class;")
    assert tokens[-2].is_ident("class")


def test_interpolated_strings_are_not_template_literals() -> None:
    (token,) = [token for token in tokenize('var s = $"/api/{id}";') if token.text.startswith("$")]
    assert token.kind is TokenKind.INTERPOLATED_STRING
    assert token.is_string_literal is False
    assert token.text == '$"/api/{id}"'
