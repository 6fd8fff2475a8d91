"""Exception protocol markers for routeweave."""

from __future__ import annotations


class NeverRaise(RuntimeError):
    """Sentinel exception for code paths that should be unreachable.

    The analysis core never raises on malformed source text; this is reserved
    for broken contracts at its boundaries (command payloads, CLI arguments).
    """

    def __init__(self, message: str, *, env: dict[str, object] | None = None):
        super().__init__(message)
        self.reason = message
        self.env = dict(env or {})

    @property
    def payload(self) -> dict[str, object]:
        return {
            "reason": self.reason,
            "env": {key: str(value) for key, value in sorted(self.env.items())},
        }


class NeverThrown(NeverRaise):
    """Alias for NeverRaise used by the explicit never() marker."""
