from __future__ import annotations

from typing import Dict, FrozenSet

from aistack.core.errors import StateTransitionError
from aistack.core.modules.models import ModuleState


ALLOWED_TRANSITIONS: Dict[ModuleState, FrozenSet[ModuleState]] = {
    ModuleState.available: frozenset({ModuleState.resolved, ModuleState.deprecated}),
    ModuleState.resolved: frozenset({ModuleState.installed, ModuleState.failed, ModuleState.deprecated}),
    ModuleState.installed: frozenset({ModuleState.running, ModuleState.stopped, ModuleState.failed, ModuleState.deprecated}),
    ModuleState.running: frozenset({ModuleState.stopped, ModuleState.failed, ModuleState.deprecated}),
    ModuleState.stopped: frozenset({ModuleState.running, ModuleState.failed, ModuleState.deprecated}),
    ModuleState.failed: frozenset({ModuleState.resolved, ModuleState.deprecated}),
    ModuleState.deprecated: frozenset(),
}


def _coerce(state: "ModuleState | str") -> "ModuleState | None":
    try:
        return ModuleState(state)
    except ValueError:
        return None


def is_valid_state(state: "ModuleState | str") -> bool:
    return _coerce(state) is not None


def can_transition(from_state: "ModuleState | str", to_state: "ModuleState | str") -> bool:
    src = _coerce(from_state)
    dst = _coerce(to_state)
    if src is not None and src == dst:
        return True
    if src is None or dst is None:
        return False
    return dst in ALLOWED_TRANSITIONS.get(src, frozenset())


def validate_transition(from_state: "ModuleState | str", to_state: "ModuleState | str") -> None:
    if not can_transition(from_state, to_state):
        src = str(getattr(from_state, "value", from_state))
        dst = str(getattr(to_state, "value", to_state))
        raise StateTransitionError(f"invalid transition {src} -> {dst}", from_state=src, to_state=dst)
