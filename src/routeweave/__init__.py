"""routeweave package root."""

from routeweave.analysis import complete, find_discarded_returns
from routeweave.exceptions import NeverRaise, NeverThrown
from routeweave.invariants import never
from routeweave.routing import parse as parse_template

__all__ = [
    "__version__",
    "NeverRaise",
    "NeverThrown",
    "complete",
    "find_discarded_returns",
    "never",
    "parse_template",
]

__version__ = "0.1.0"
