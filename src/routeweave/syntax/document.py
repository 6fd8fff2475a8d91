"""Calls, declarations, and attributes read off the tree-sitter syntax tree.

Only the structure needed to correlate route templates with handlers is
kept: call sites with their arguments, method declarations with their
parameter lists and attributes. Subtrees holding syntax errors are handed to
``TokenRecovery`` so text that is still being typed keeps its structure.
"""

from __future__ import annotations

import logging
from bisect import bisect_left

import tree_sitter

from routeweave.syntax.model import (
    MEMBER_MODIFIERS,
    PARAMETER_MODIFIERS,
    ArgumentKind,
    ArgumentSyntax,
    AttributeUse,
    CallSite,
    Declaration,
    LambdaSyntax,
    ParameterListSyntax,
    ParameterSyntax,
    Span,
)
from routeweave.syntax.recovery import CONTROL_KEYWORDS, TokenRecovery
from routeweave.syntax.tokens import IDENTIFIER, Token
from routeweave.syntax.tree import SourceTree

logger = logging.getLogger(__name__)

_CONTAINERS = frozenset(
    {
        "compilation_unit",
        "global_statement",
        "namespace_declaration",
        "file_scoped_namespace_declaration",
        "declaration_list",
        "class_declaration",
        "struct_declaration",
        "record_declaration",
        "record_struct_declaration",
        "interface_declaration",
        "block",
    }
)
_DECLARATIONS = frozenset({"method_declaration", "local_function_statement"})
_BODIES = frozenset({"block", "arrow_expression_clause"})
_LAMBDAS = frozenset({"lambda_expression", "anonymous_method_expression"})
_CALLS = frozenset({"invocation_expression", "object_creation_expression"})
_PARAMETERS = frozenset({"parameter", "parameter_array"})


def _declares(node: tree_sitter.Node) -> bool:
    if node.type in _DECLARATIONS:
        return True
    return node.type == "global_statement" and any(child.type in _DECLARATIONS for child in node.named_children)


def _field(node: tree_sitter.Node, *names: str) -> tree_sitter.Node | None:
    """First of the named fields present on ``node``."""
    for name in names:
        child = node.child_by_field_name(name)
        if child is not None:
            return child
    return None


def _within(regions: list[Span], offset: int) -> bool:
    return any(start <= offset < end for start, end in regions)


class _NodeReader:
    def __init__(self, source: SourceTree) -> None:
        self.source = source
        self.calls: list[CallSite] = []
        self.declarations: list[Declaration] = []
        self.regions: list[Span] = []

    # -- traversal -----------------------------------------------------------

    def read(self, node: tree_sitter.Node) -> bool:
        """Collect structure under ``node``; return True when it became a broken region."""
        if node.type == "ERROR":
            return self._region(node)
        if not node.has_error:
            self._read_clean(node)
            return False
        if node.type in _CONTAINERS:
            self._read_container(node)
            return False
        if node.type in _DECLARATIONS and self._header_is_clean(node):
            declaration = self._declaration(node)
            if declaration is not None:
                self.declarations.append(declaration)
                for child in node.children:
                    if child.type in _BODIES:
                        self.read(child)
                return False
        return self._region(node)

    def _read_container(self, node: tree_sitter.Node) -> None:
        after_region = False
        for child in node.children:
            if child.is_missing:
                continue
            if after_region and _declares(child):
                # Attributes swallowed by the preceding error belong to this member.
                self._region(child)
                continue
            after_region = self.read(child)

    def _read_clean(self, node: tree_sitter.Node) -> None:
        pending = [node]
        while pending:
            current = pending.pop()
            if current.type in _CALLS:
                call = self._call(current)
                if call is not None:
                    self.calls.append(call)
            elif current.type in _DECLARATIONS:
                declaration = self._declaration(current)
                if declaration is not None:
                    self.declarations.append(declaration)
            pending.extend(reversed(current.named_children))

    def _region(self, node: tree_sitter.Node) -> bool:
        span = self.source.span(node)
        logger.debug("recovering %s region at %s from tokens", node.type, span)
        self.regions.append(span)
        return True

    def _header_is_clean(self, node: tree_sitter.Node) -> bool:
        return not any(
            child.has_error or child.is_missing for child in node.children if child.type not in _BODIES
        )

    def _text(self, node: tree_sitter.Node) -> str:
        return self.source.node_text(node)

    def _tokens(self, node: tree_sitter.Node) -> tuple[Token, ...]:
        return self.source.tokens_in(*self.source.span(node))

    # -- attributes ----------------------------------------------------------

    def _attributes(self, attribute_list: tree_sitter.Node) -> list[AttributeUse]:
        attributes: list[AttributeUse] = []
        for attribute in attribute_list.named_children:
            if attribute.type != "attribute":
                continue
            name = attribute.child_by_field_name("name")
            if name is None:
                continue
            arguments: list[str] = []
            literals: list[Token | None] = []
            for argument_list in attribute.named_children:
                if argument_list.type != "attribute_argument_list":
                    continue
                for argument in argument_list.named_children:
                    if argument.type != "attribute_argument":
                        continue
                    tokens = self._tokens(argument)
                    if len(tokens) == 1 and tokens[0].is_string_literal:
                        arguments.append(tokens[0].value)
                        literals.append(tokens[0])
                    else:
                        arguments.append(self._text(argument))
                        literals.append(None)
            attributes.append(
                AttributeUse(
                    name="".join(self._text(name).split()),
                    arguments=tuple(arguments),
                    span=self.source.span(attribute),
                    literals=tuple(literals),
                )
            )
        return attributes

    # -- parameter lists -----------------------------------------------------

    def _parameter(self, index: int, node: tree_sitter.Node, span: Span) -> ParameterSyntax:
        type_node = node.child_by_field_name("type")
        name_node = node.child_by_field_name("name")
        head = type_node if type_node is not None else name_node
        head_start = head.start_byte if head is not None else node.end_byte
        attributes: list[AttributeUse] = []
        modifiers: list[str] = []
        default_text: str | None = None
        for child in node.children:
            if child.type == "attribute_list":
                attributes.extend(self._attributes(child))
            elif child.type == "=":
                default_text = self.source.text[self.source.end(child) : self.source.end(node)].strip()
            elif child.type == "equals_value_clause":
                default_text = self._text(child).lstrip("=").strip()
            elif child.end_byte <= head_start and self._text(child) in PARAMETER_MODIFIERS:
                modifiers.append(self._text(child))
        return ParameterSyntax(
            index=index,
            span=span,
            attributes=tuple(attributes),
            modifiers=tuple(modifiers),
            type_text=None if type_node is None else self._text(type_node),
            type_span=None if type_node is None else self.source.span(type_node),
            name=None if name_node is None else self._text(name_node).lstrip("@"),
            name_span=None if name_node is None else self.source.span(name_node),
            default_text=default_text,
        )

    def _parameter_list(self, node: tree_sitter.Node) -> ParameterListSyntax:
        parameters: list[ParameterSyntax] = []
        open_offset = self.source.start(node)
        close_offset: int | None = None
        left = open_offset + 1
        current: tree_sitter.Node | None = None
        for child in node.children:
            if child.type == "(":
                left = self.source.end(child)
            elif child.type in (",", ")"):
                if current is not None:
                    parameters.append(self._parameter(len(parameters), current, (left, self.source.start(child))))
                current = None
                left = self.source.end(child)
                if child.type == ")" and not child.is_missing:
                    close_offset = self.source.start(child)
            elif child.type in _PARAMETERS:
                current = child
        return ParameterListSyntax(
            open_offset=open_offset,
            close_offset=close_offset,
            end_offset=close_offset if close_offset is not None else self.source.end(node),
            parameters=tuple(parameters),
        )

    def _implicit_parameters(self, node: tree_sitter.Node) -> ParameterListSyntax:
        start, end = self.source.span(node)
        return ParameterListSyntax(
            open_offset=start - 1,
            close_offset=end,
            end_offset=end,
            parameters=(
                ParameterSyntax(
                    index=0,
                    span=(start, end),
                    name=self._text(node).lstrip("@"),
                    name_span=(start, end),
                ),
            ),
        )

    # -- arguments -----------------------------------------------------------

    def _lambda(self, node: tree_sitter.Node) -> LambdaSyntax | None:
        if node.type == "anonymous_method_expression":
            parameters = next((child for child in node.children if child.type == "parameter_list"), None)
            body = next((child for child in node.children if child.type == "block"), None)
        else:
            parameters = node.child_by_field_name("parameters")
            body = node.child_by_field_name("body")
        if parameters is None:
            return None
        if parameters.type == "parameter_list":
            parameter_list = self._parameter_list(parameters)
        elif IDENTIFIER.fullmatch(self._text(parameters)):
            parameter_list = self._implicit_parameters(parameters)
        else:
            return None
        head = [child for child in node.children if child.end_byte <= parameters.start_byte]
        return LambdaSyntax(
            parameters=parameter_list,
            is_async=any(self._text(child) == "async" for child in head),
            has_arrow=any(child.type == "=>" for child in node.children),
            body_tokens=() if body is None else self._tokens(body),
            is_block_body=body is not None and body.type == "block",
            span=self.source.span(node),
        )

    def _argument(self, index: int, node: tree_sitter.Node) -> ArgumentSyntax:
        children = [child for child in node.children if child.type != "comment"]
        label: str | None = None
        label_node = node.child_by_field_name("name")
        if label_node is not None:
            label = self._text(label_node)
            colon = next((position for position, child in enumerate(children) if child.type == ":"), -1)
            children = children[colon + 1 :]
        elif children and children[0].type == "name_colon":
            label = self._text(children[0]).rstrip(":").strip()
            children = children[1:]
        if not children:
            offset = self.source.end(node)
            return ArgumentSyntax(index=index, kind=ArgumentKind.MISSING, span=(offset, offset), label=label)
        span = (self.source.start(children[0]), self.source.end(children[-1]))
        value = children[-1]
        lambda_syntax = self._lambda(value) if value.type in _LAMBDAS else None
        return ArgumentSyntax.classify(index, self.source.tokens_in(*span), span, label, lambda_syntax)

    # -- calls ---------------------------------------------------------------

    def _callee(self, node: tree_sitter.Node) -> tuple[str, int] | None:
        """Dotted callee text and its start offset, for name-like callees only."""
        text = self._text(node)
        if IDENTIFIER.fullmatch(text):
            return text.lstrip("@"), self.source.start(node)
        if node.type == "generic_name":
            name = node.child_by_field_name("name")
            if name is None:
                name = next((child for child in node.named_children if child.type == "identifier"), None)
            if name is None:
                return None
            return self._text(name).lstrip("@"), self.source.start(node)
        if node.type in ("member_access_expression", "qualified_name"):
            target = _field(node, "expression", "qualifier")
            name = node.child_by_field_name("name")
            return self._qualified(target, name)
        if node.type == "member_binding_expression":
            parent = node.parent
            while parent is not None and parent.type != "conditional_access_expression":
                parent = parent.parent
            target = None if parent is None else parent.child_by_field_name("condition")
            return self._qualified(target, node.child_by_field_name("name"))
        if node.type == "conditional_access_expression":
            binding = next((child for child in node.named_children if child.type == "member_binding_expression"), None)
            if binding is None:
                return None
            return self._qualified(node.child_by_field_name("condition"), binding.child_by_field_name("name"))
        return None

    def _qualified(
        self, target: tree_sitter.Node | None, name: tree_sitter.Node | None
    ) -> tuple[str, int] | None:
        if name is None:
            return None
        simple = self._callee(name)
        if simple is None:
            return None
        qualifier = None if target is None else self._callee(target)
        if qualifier is None:
            return simple
        return f"{qualifier[0]}.{simple[0]}", qualifier[1]

    def _call(self, node: tree_sitter.Node) -> CallSite | None:
        argument_list = node.child_by_field_name("arguments")
        if argument_list is None or argument_list.type != "argument_list":
            return None
        if node.type == "object_creation_expression":
            type_node = node.child_by_field_name("type")
            if type_node is None:
                return None
            callee = "".join(self._text(type_node).split()).split("<", 1)[0]
            start = self.source.start(type_node)
            is_construction = True
        else:
            function = node.child_by_field_name("function")
            found = None if function is None else self._callee(function)
            if found is None:
                return None
            callee, start = found
            if "." not in callee and callee in CONTROL_KEYWORDS:
                return None
            is_construction = False
        open_offset = self.source.start(argument_list)
        close_offset: int | None = None
        for child in argument_list.children:
            if child.type == ")" and not child.is_missing:
                close_offset = self.source.start(child)
        arguments = [child for child in argument_list.named_children if child.type == "argument"]
        return CallSite(
            callee=callee,
            span=(start, self.source.end(argument_list)),
            open_offset=open_offset,
            close_offset=close_offset,
            arguments=tuple(self._argument(index, argument) for index, argument in enumerate(arguments)),
            is_construction=is_construction,
        )

    # -- declarations --------------------------------------------------------

    def _declaration(self, node: tree_sitter.Node) -> Declaration | None:
        name = node.child_by_field_name("name")
        return_type = _field(node, "returns", "type")
        parameters = node.child_by_field_name("parameters")
        if parameters is None:
            parameters = next((child for child in node.children if child.type == "parameter_list"), None)
        if name is None or return_type is None or parameters is None:
            return None
        attributes: list[AttributeUse] = []
        modifiers: list[str] = []
        body: tree_sitter.Node | None = None
        for child in node.children:
            if child.type == "attribute_list":
                attributes.extend(self._attributes(child))
            elif child.type in _BODIES and body is None:
                body = child
            elif child.end_byte <= return_type.start_byte and self._text(child) in MEMBER_MODIFIERS:
                modifiers.append(self._text(child))
        body_tokens: tuple[Token, ...] = ()
        is_expression_bodied = body is not None and body.type == "arrow_expression_clause"
        if body is not None:
            body_tokens = self._tokens(body)
            if is_expression_bodied and body_tokens and body_tokens[0].is_punct("=>"):
                body_tokens = body_tokens[1:]
        logger.debug("declaration %s at %d", self._text(name), self.source.start(name))
        return Declaration(
            name=self._text(name).lstrip("@"),
            return_type=self._text(return_type),
            span=(self.source.start(node), self.source.end(body if body is not None else node)),
            parameters=self._parameter_list(parameters),
            attributes=tuple(attributes),
            modifiers=tuple(modifiers),
            body_tokens=body_tokens,
            is_expression_bodied=is_expression_bodied,
        )


class SourceDocument:
    """Immutable snapshot of one source text and the structure read from it."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.source = SourceTree(text)
        self.tokens: tuple[Token, ...] = self.source.tokens
        self._starts = [token.start for token in self.tokens]
        reader = _NodeReader(self.source)
        reader.read(self.source.root)
        calls = list(reader.calls)
        declarations = list(reader.declarations)
        if reader.regions:
            recovered = TokenRecovery(text, self.tokens)
            calls.extend(call for call in recovered.calls if _within(reader.regions, call.open_offset))
            declarations.extend(
                declaration
                for declaration in recovered.declarations
                if _within(reader.regions, declaration.parameters.open_offset)
            )
        calls.sort(key=lambda call: (call.span[0], call.open_offset))
        declarations.sort(key=lambda declaration: declaration.span)
        self.calls: tuple[CallSite, ...] = tuple(calls)
        self.declarations: tuple[Declaration, ...] = tuple(declarations)

    # -- lookups -------------------------------------------------------------

    def calls_at(self, offset: int) -> list[CallSite]:
        """Call sites containing ``offset``, innermost first."""
        hits = [call for call in self.calls if call.contains(offset)]
        hits.sort(key=lambda call: call.span[1] - call.span[0])
        return hits

    def declarations_named(self, name: str) -> list[Declaration]:
        return [decl for decl in self.declarations if decl.name == name]

    def token_at(self, offset: int) -> Token | None:
        index = bisect_left(self._starts, offset + 1) - 1
        if index < 0:
            return None
        token = self.tokens[index]
        if token.start <= offset <= token.end:
            return token
        return None
