from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from routeweave.syntax.tokens import Token, TokenKind

Span = tuple[int, int]

MEMBER_MODIFIERS = frozenset(
    {
        "public",
        "private",
        "protected",
        "internal",
        "static",
        "async",
        "virtual",
        "override",
        "abstract",
        "sealed",
        "extern",
        "unsafe",
        "partial",
        "new",
        "readonly",
        "file",
    }
)
PARAMETER_MODIFIERS = frozenset({"this", "ref", "out", "in", "params", "scoped", "readonly"})
NULL_LITERALS = frozenset({"null", "default"})


class ArgumentKind(str, Enum):
    STRING = "string"
    NULL = "null"
    LAMBDA = "lambda"
    REFERENCE = "reference"
    OPAQUE = "opaque"
    MISSING = "missing"


@dataclass(frozen=True)
class AttributeUse:
    name: str
    arguments: tuple[str, ...] = ()
    span: Span = (0, 0)
    literals: tuple[Token | None, ...] = ()

    @property
    def simple_name(self) -> str:
        name = self.name.rsplit(".", 1)[-1].rsplit("::", 1)[-1]
        if name.endswith("Attribute") and len(name) > len("Attribute"):
            name = name[: -len("Attribute")]
        return name


@dataclass(frozen=True)
class ParameterSyntax:
    """One comma-separated slot of a parameter list.

    ``name`` is ``None`` when the slot holds only a type token (the author has
    not typed the name yet) and ``type_text`` is ``None`` for implicitly typed
    lambda parameters.
    """

    index: int
    span: Span
    attributes: tuple[AttributeUse, ...] = ()
    modifiers: tuple[str, ...] = ()
    type_text: str | None = None
    type_span: Span | None = None
    name: str | None = None
    name_span: Span | None = None
    default_text: str | None = None


@dataclass(frozen=True)
class ParameterListSyntax:
    open_offset: int
    close_offset: int | None
    end_offset: int
    parameters: tuple[ParameterSyntax, ...] = ()

    @property
    def is_terminated(self) -> bool:
        return self.close_offset is not None

    def contains(self, offset: int) -> bool:
        return self.open_offset < offset <= self.end_offset

    def parameter_at(self, offset: int) -> ParameterSyntax | None:
        for parameter in self.parameters:
            start, end = parameter.span
            if start <= offset <= end:
                return parameter
        return None


@dataclass(frozen=True)
class LambdaSyntax:
    parameters: ParameterListSyntax
    is_async: bool = False
    has_arrow: bool = False
    body_tokens: tuple[Token, ...] = ()
    is_block_body: bool = False
    span: Span = (0, 0)


@dataclass(frozen=True)
class ArgumentSyntax:
    index: int
    kind: ArgumentKind
    span: Span
    label: str | None = None
    tokens: tuple[Token, ...] = ()
    literal: Token | None = None
    lambda_syntax: LambdaSyntax | None = None
    reference: str | None = None

    @classmethod
    def classify(
        cls,
        index: int,
        tokens: tuple[Token, ...],
        span: Span,
        label: str | None = None,
        lambda_syntax: LambdaSyntax | None = None,
    ) -> ArgumentSyntax:
        """Build the argument for ``tokens``, the value after any ``label:``."""
        if not tokens:
            return cls(index=index, kind=ArgumentKind.MISSING, span=span, label=label)
        first = tokens[0]
        if len(tokens) == 1 and first.is_string_literal:
            return cls(index=index, kind=ArgumentKind.STRING, span=span, label=label, tokens=tokens, literal=first)
        if len(tokens) == 1 and first.kind is TokenKind.IDENT and first.text in NULL_LITERALS:
            return cls(index=index, kind=ArgumentKind.NULL, span=span, label=label, tokens=tokens)
        if lambda_syntax is not None:
            return cls(
                index=index,
                kind=ArgumentKind.LAMBDA,
                span=span,
                label=label,
                tokens=tokens,
                lambda_syntax=lambda_syntax,
            )
        if all(
            token.kind is TokenKind.IDENT if position % 2 == 0 else token.is_punct(".")
            for position, token in enumerate(tokens)
        ) and tokens[-1].kind is TokenKind.IDENT:
            return cls(
                index=index,
                kind=ArgumentKind.REFERENCE,
                span=span,
                label=label,
                tokens=tokens,
                reference=tokens[-1].text,
            )
        return cls(index=index, kind=ArgumentKind.OPAQUE, span=span, label=label, tokens=tokens)


@dataclass(frozen=True)
class CallSite:
    callee: str
    span: Span
    open_offset: int
    close_offset: int | None
    arguments: tuple[ArgumentSyntax, ...] = ()
    is_construction: bool = False

    @property
    def name(self) -> str:
        return self.callee.rsplit(".", 1)[-1]

    @property
    def qualifier(self) -> str | None:
        if "." not in self.callee:
            return None
        return self.callee.rsplit(".", 1)[0]

    def contains(self, offset: int) -> bool:
        start, end = self.span
        if self.close_offset is None:
            return start <= offset <= end
        return start <= offset < end


@dataclass(frozen=True)
class Declaration:
    name: str
    return_type: str
    span: Span
    parameters: ParameterListSyntax
    attributes: tuple[AttributeUse, ...] = ()
    modifiers: tuple[str, ...] = ()
    body_tokens: tuple[Token, ...] = ()
    is_expression_bodied: bool = False

    @property
    def is_async(self) -> bool:
        return "async" in self.modifiers


@dataclass(frozen=True)
class RouteAttributeSite:
    attribute: AttributeUse
    declaration: Declaration

    @property
    def template(self) -> Token | None:
        if not self.attribute.literals:
            return None
        return self.attribute.literals[0]

    @property
    def span(self) -> Span:
        return self.attribute.span

    def contains(self, offset: int) -> bool:
        start, end = self.attribute.span
        return start <= offset <= end
