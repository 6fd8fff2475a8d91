from __future__ import annotations

import itertools
import random

from routeweave.routing import TemplateLiteral, TemplateParameter, parse


def test_parse_collects_parameters_with_policies_and_modifiers() -> None:
    template = parse("/api/{id:int:min(1)}/{**path}/{name?}/{page=1}")
    names = [parameter.name for parameter in template.parameters]
    assert names == ["id", "path", "name", "page"]
    first, catch_all, optional, defaulted = template.parameters
    assert first.policy_tags == ("int", "min(1)")
    assert first.span == (5, 20)
    assert catch_all.is_catch_all is True
    assert optional.is_optional is True
    assert defaulted.default_value == "1"
    assert all(parameter.is_terminated for parameter in template.parameters)


def test_parse_keeps_literal_nodes_between_parameters() -> None:
    template = parse("/a/{b}/c")
    assert isinstance(template.nodes[0], TemplateLiteral)
    assert template.nodes[0].text == "/a/"
    assert isinstance(template.nodes[1], TemplateParameter)
    assert template.nodes[2].text == "/c"


def test_escaped_braces_are_literal() -> None:
    template = parse("/{{id}}")
    assert template.parameters == ()
    assert template.parameter_names() == []


def test_unterminated_placeholder_spans_to_end_of_input() -> None:
    template = parse("/api/{")
    (parameter,) = template.parameters
    assert parameter.name == ""
    assert parameter.is_terminated is False
    assert parameter.span == (5, 6)
    assert template.parameter_at(6) is parameter


def test_empty_placeholder_is_a_nameless_parameter() -> None:
    template = parse("/api/{}")
    (parameter,) = template.parameters
    assert parameter.name == ""
    assert parameter.is_terminated is True
    assert template.parameter_names() == []


def test_parse_is_total_on_odd_input() -> None:
    for raw in ("", "{", "}", "{:", "{a:(}", "{{{", "{?}", "{=}"):
        template = parse(raw)
        assert template.raw == raw


def test_duplicate_names_are_kept_as_separate_nodes() -> None:
    template = parse("/{id}/{id}")
    assert len(template.parameters) == 2
    assert template.parameter_names() == ["id"]


def test_parameter_at_uses_name_extent() -> None:
    template = parse("/api/{id}")
    assert template.parameter_at(6).name == "id"
    assert template.parameter_at(8).name == "id"
    assert template.parameter_at(3) is None


def test_offsets_map_between_template_and_source() -> None:
    template = parse("a{b}", offsets=(10, 12, 13, 14, 15))
    assert template.source_offset(1) == 12
    assert template.logical_offset(11) == 1
    assert template.logical_offset(15) == 4


def test_mismatched_offsets_fall_back_to_identity() -> None:
    template = parse("ab", offsets=(5, 6))
    assert template.offsets == (0, 1, 2)


def test_policy_parentheses_may_contain_braces() -> None:
    template = parse("/{id:regex(^\\d{{3}}$)}/x")
    (parameter,) = template.parameters
    assert parameter.policy_tags == ("regex(^\\d{{3}}$)",)
    assert parameter.is_terminated is True
    assert template.nodes[-1].text == "/x"


_FRAGMENTS = ("{", "}", "{{", "}}", ":", "(", ")", "*", "?", "=", "a", "/")


def _generated_templates() -> list[str]:
    templates = [
        "".join(parts)
        for size in range(1, 4)
        for parts in itertools.product(_FRAGMENTS, repeat=size)
    ]
    rng = random.Random(20240)
    for _ in range(500):
        templates.append("".join(rng.choice(_FRAGMENTS) for _ in range(rng.randint(4, 10))))
    return templates


def test_parse_spans_tile_any_generated_template() -> None:
    for raw in _generated_templates():
        template = parse(raw)
        assert template.raw == raw
        previous_end = 0
        for node in template.nodes:
            start, end = node.span
            assert 0 <= start < end <= len(raw), raw
            assert start >= previous_end, raw
            previous_end = end
