from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from routeweave.syntax.tokens import Token
from routeweave.syntax.model import CallSite, RouteAttributeSite

Span = tuple[int, int]


class TypeTagKind(str, Enum):
    SPECIAL_BOUND = "special_bound"
    UNRESOLVED = "unresolved"
    NAMED = "named"


@dataclass(frozen=True)
class TypeTag:
    kind: TypeTagKind
    name: str = ""

    @classmethod
    def unresolved(cls) -> TypeTag:
        return cls(TypeTagKind.UNRESOLVED)

    @classmethod
    def named(cls, name: str) -> TypeTag:
        return cls(TypeTagKind.NAMED, name)

    @classmethod
    def special(cls, name: str) -> TypeTag:
        return cls(TypeTagKind.SPECIAL_BOUND, name)


class BindingCategory(str, Enum):
    SPECIAL_FRAMEWORK_TYPE = "special_framework_type"
    ANNOTATION_BOUND = "annotation_bound"
    AGGREGATE_BOUND = "aggregate_bound"
    ROUTE_BINDABLE = "route_bindable"


@dataclass(frozen=True)
class HandlerParameter:
    name: str | None
    type_tag: TypeTag
    annotations: frozenset[str] = frozenset()
    position: int = 0
    name_span: Span | None = None
    type_span: Span | None = None

    def display(self) -> str:
        parts = [self.type_tag.name] if self.type_tag.name else []
        if self.name:
            parts.append(self.name)
        return " ".join(parts)


@dataclass(frozen=True)
class HandlerSignature:
    parameters: tuple[HandlerParameter, ...] = ()
    is_resolvable: bool = False
    is_async_or_bodied_with_return_type: bool = False

    @classmethod
    def unresolved(cls) -> HandlerSignature:
        return cls()

    def names(self) -> list[str]:
        return [parameter.name for parameter in self.parameters if parameter.name]


@dataclass(frozen=True)
class CallMatch:
    template_arg_index: int | None
    handler_arg_index: int | None
    strategy: str


@dataclass(frozen=True)
class MappingSite:
    """A recognized mapping: a call (or route attribute) plus its argument roles."""

    match: CallMatch
    call: CallSite | None = None
    attribute_site: RouteAttributeSite | None = None

    @property
    def span(self) -> Span:
        if self.call is not None:
            return self.call.span
        if self.attribute_site is not None:
            return self.attribute_site.span
        return (0, 0)

    def template_token(self) -> Token | None:
        if self.attribute_site is not None:
            return self.attribute_site.template
        if self.call is None or self.match.template_arg_index is None:
            return None
        if self.match.template_arg_index >= len(self.call.arguments):
            return None
        return self.call.arguments[self.match.template_arg_index].literal


class CompletionContextKind(str, Enum):
    INSIDE_HANDLER_PARAMETER_NAME = "inside_handler_parameter_name"
    INSIDE_TEMPLATE_PLACEHOLDER = "inside_template_placeholder"


@dataclass(frozen=True)
class CompletionContext:
    kind: CompletionContextKind
    cursor_offset: int
    enclosing_call: MappingSite


@dataclass(frozen=True)
class CompletionItem:
    name: str
    description: str = ""


@dataclass(frozen=True)
class CompletionResult:
    items: tuple[CompletionItem, ...] = field(default_factory=tuple)
    kind: CompletionContextKind | None = None

    @classmethod
    def empty(cls) -> CompletionResult:
        return cls()

    def names(self) -> list[str]:
        return [item.name for item in self.items]
