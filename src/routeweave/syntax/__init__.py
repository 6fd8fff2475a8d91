"""Host-source structure for routeweave, read from a tree-sitter C# parse."""

from routeweave.syntax.document import SourceDocument
from routeweave.syntax.model import (
    ArgumentKind,
    ArgumentSyntax,
    AttributeUse,
    CallSite,
    Declaration,
    LambdaSyntax,
    ParameterListSyntax,
    ParameterSyntax,
    RouteAttributeSite,
)
from routeweave.syntax.tokens import Token, TokenKind
from routeweave.syntax.tree import SourceTree, tokenize

__all__ = [
    "ArgumentKind",
    "ArgumentSyntax",
    "AttributeUse",
    "CallSite",
    "Declaration",
    "LambdaSyntax",
    "ParameterListSyntax",
    "ParameterSyntax",
    "RouteAttributeSite",
    "SourceDocument",
    "SourceTree",
    "Token",
    "TokenKind",
    "tokenize",
]
