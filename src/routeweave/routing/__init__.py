"""Route template language."""

from routeweave.routing.template import (
    Template,
    TemplateLiteral,
    TemplateNode,
    TemplateParameter,
    parse,
)

__all__ = [
    "Template",
    "TemplateLiteral",
    "TemplateNode",
    "TemplateParameter",
    "parse",
]
