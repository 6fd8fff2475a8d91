"""Static analysis subpackage for routeweave."""

from .classifier import BINDING_ANNOTATIONS, SPECIAL_TYPES, classify
from .completion import (
    complete,
    complete_handler_parameter_name,
    complete_template_placeholder,
    locate_context,
)
from .diagnostics import DiscardedReturn, find_discarded_returns
from .matcher import (
    DEFAULT_STRATEGIES,
    StructuralWrapper,
    WellKnownEntryPoints,
    mapping_site_at,
    mapping_sites,
    match_call,
)
from .model import (
    BindingCategory,
    CallMatch,
    CompletionContext,
    CompletionContextKind,
    CompletionItem,
    CompletionResult,
    HandlerParameter,
    HandlerSignature,
    MappingSite,
    TypeTag,
    TypeTagKind,
)
from .signature import extract_signature

__all__ = [
    "BINDING_ANNOTATIONS",
    "BindingCategory",
    "CallMatch",
    "CompletionContext",
    "CompletionContextKind",
    "CompletionItem",
    "CompletionResult",
    "DEFAULT_STRATEGIES",
    "DiscardedReturn",
    "HandlerParameter",
    "HandlerSignature",
    "MappingSite",
    "SPECIAL_TYPES",
    "StructuralWrapper",
    "TypeTag",
    "TypeTagKind",
    "WellKnownEntryPoints",
    "classify",
    "complete",
    "complete_handler_parameter_name",
    "complete_template_placeholder",
    "extract_signature",
    "find_discarded_returns",
    "locate_context",
    "mapping_site_at",
    "mapping_sites",
    "match_call",
]
