"""Route template parsing.

``parse`` is total: any string yields a ``Template``. Malformed input (an
unterminated ``{``, an empty ``{}``) produces best-effort parameter nodes so
that completion can work against text that is still being typed.
"""

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass
from typing import Sequence, Union

Span = tuple[int, int]

_NAME_TERMINATORS = frozenset({"}", ":", "=", "?"})


@dataclass(frozen=True)
class TemplateLiteral:
    text: str
    span: Span


@dataclass(frozen=True)
class TemplateParameter:
    name: str
    span: Span
    name_start: int
    policy_tags: tuple[str, ...] = ()
    is_catch_all: bool = False
    is_optional: bool = False
    default_value: str | None = None
    is_terminated: bool = True

    @property
    def name_end(self) -> int:
        return self.name_start + len(self.name)

    def name_contains(self, offset: int) -> bool:
        return self.name_start <= offset <= self.name_end


TemplateNode = Union[TemplateLiteral, TemplateParameter]


@dataclass(frozen=True)
class Template:
    raw: str
    nodes: tuple[TemplateNode, ...]
    offsets: tuple[int, ...]

    @property
    def parameters(self) -> tuple[TemplateParameter, ...]:
        return tuple(node for node in self.nodes if isinstance(node, TemplateParameter))

    def parameter_names(self) -> list[str]:
        """Distinct non-empty placeholder names in template order."""
        names: list[str] = []
        for parameter in self.parameters:
            if parameter.name and parameter.name not in names:
                names.append(parameter.name)
        return names

    def parameter_at(self, logical_offset: int) -> TemplateParameter | None:
        for parameter in self.parameters:
            if parameter.name_contains(logical_offset):
                return parameter
        return None

    def source_offset(self, logical_offset: int) -> int:
        index = max(0, min(logical_offset, len(self.offsets) - 1))
        return self.offsets[index]

    def logical_offset(self, source_offset: int) -> int:
        """Map a source offset to the template index at or after it.

        Offsets inside an escape sequence map to the character the sequence
        produces.
        """
        index = bisect_left(self.offsets, source_offset)
        return min(index, len(self.raw))


def _default_offsets(raw: str) -> tuple[int, ...]:
    return tuple(range(len(raw) + 1))


def _scan_policy(raw: str, index: int) -> tuple[str, int]:
    """Read one ``:``-separated policy tag; parentheses are kept balanced."""
    start = index
    depth = 0
    length = len(raw)
    while index < length:
        ch = raw[index]
        if depth:
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
            index += 1
            continue
        if ch == "(":
            depth += 1
        elif ch == "}" and index + 1 < length and raw[index + 1] == "}":
            index += 2
            continue
        elif ch in "}:=" or (ch == "?" and index + 1 < length and raw[index + 1] == "}"):
            break
        index += 1
    return raw[start:index], index


def _scan_parameter(raw: str, start: int) -> tuple[TemplateParameter, int]:
    length = len(raw)
    index = start + 1
    is_catch_all = False
    if raw.startswith("**", index):
        is_catch_all = True
        index += 2
    elif raw.startswith("*", index):
        is_catch_all = True
        index += 1
    name_start = index
    while index < length and raw[index] not in _NAME_TERMINATORS:
        index += 1
    name = raw[name_start:index]
    policies: list[str] = []
    is_optional = False
    default_value: str | None = None
    while index < length and raw[index] == ":":
        policy, index = _scan_policy(raw, index + 1)
        policies.append(policy)
    if index < length and raw[index] == "=":
        value_start = index + 1
        index = value_start
        while index < length and raw[index] != "}":
            index += 1
        default_value = raw[value_start:index]
    elif index < length and raw[index] == "?":
        is_optional = True
        index += 1
        while index < length and raw[index] != "}":
            index += 1
    terminated = index < length and raw[index] == "}"
    end = index + 1 if terminated else length
    parameter = TemplateParameter(
        name=name,
        span=(start, end),
        name_start=name_start,
        policy_tags=tuple(policies),
        is_catch_all=is_catch_all,
        is_optional=is_optional,
        default_value=default_value,
        is_terminated=terminated,
    )
    return parameter, end


def parse(raw: str, offsets: Sequence[int] | None = None) -> Template:
    """Parse ``raw`` into literal and parameter nodes.

    ``offsets`` maps each index of ``raw`` (plus one past the end) to its
    source-file offset; it defaults to the identity mapping.
    """
    nodes: list[TemplateNode] = []
    literal: list[str] = []
    literal_start = 0
    index = 0
    length = len(raw)

    def flush(end: int) -> None:
        if literal:
            nodes.append(TemplateLiteral(text="".join(literal), span=(literal_start, end)))
            literal.clear()

    while index < length:
        ch = raw[index]
        if ch in "{}" and raw.startswith(ch * 2, index):
            if not literal:
                literal_start = index
            literal.append(ch)
            index += 2
            continue
        if ch == "{":
            flush(index)
            parameter, index = _scan_parameter(raw, index)
            nodes.append(parameter)
            literal_start = index
            continue
        if not literal:
            literal_start = index
        literal.append(ch)
        index += 1
    flush(length)

    if offsets is None or len(offsets) != length + 1:
        mapped = _default_offsets(raw)
    else:
        mapped = tuple(offsets)
    return Template(raw=raw, nodes=tuple(nodes), offsets=mapped)
