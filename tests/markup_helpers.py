from __future__ import annotations

CURSOR = "$$"


def split_markup(source: str, marker: str = CURSOR) -> tuple[str, int]:
    """Strip the single cursor marker from ``source`` and return its offset."""
    index = source.find(marker)
    if index < 0:
        raise AssertionError(f"no {marker!r} cursor marker in source")
    if source.find(marker, index + len(marker)) >= 0:
        raise AssertionError(f"more than one {marker!r} cursor marker in source")
    return source[:index] + source[index + len(marker) :], index
