from __future__ import annotations

import pytest

from routeweave.exceptions import NeverRaise, NeverThrown
from routeweave.invariants import never, require_not_none


def test_never_raises_with_payload() -> None:
    with pytest.raises(NeverThrown) as excinfo:
        never("bad state", command="routeweave.complete", count=2)
    assert isinstance(excinfo.value, NeverRaise)
    assert excinfo.value.payload == {
        "reason": "bad state",
        "env": {"command": "routeweave.complete", "count": "2"},
    }


def test_require_not_none_passes_values_through() -> None:
    assert require_not_none(0) == 0
    with pytest.raises(NeverThrown):
        require_not_none(None, reason="missing")
