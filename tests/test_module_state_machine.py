from __future__ import annotations

import pytest

from aistack.core.errors import StateTransitionError
from aistack.core.modules.models import ModuleState
from aistack.core.modules.state_machine import ALLOWED_TRANSITIONS, can_transition, is_valid_state, validate_transition


def test_installed_to_running():
    assert can_transition(ModuleState.installed, ModuleState.running)
    assert can_transition("installed", "running")


def test_deprecated_is_terminal():
    assert not can_transition(ModuleState.deprecated, ModuleState.running)
    assert ALLOWED_TRANSITIONS[ModuleState.deprecated] == frozenset()


@pytest.mark.parametrize("state", list(ModuleState))
def test_self_transition_is_allowed(state):
    assert can_transition(state, state)


def test_every_state_has_a_row():
    assert set(ALLOWED_TRANSITIONS) == set(ModuleState)


@pytest.mark.parametrize(
    "src,dst",
    [
        ("available", "running"),
        ("resolved", "running"),
        ("failed", "running"),
        ("running", "installed"),
    ],
)
def test_disallowed(src, dst):
    assert not can_transition(src, dst)
    with pytest.raises(StateTransitionError) as ei:
        validate_transition(src, dst)
    assert f"{src} -> {dst}" in str(ei.value)


def test_unknown_states():
    assert not is_valid_state("exploded")
    assert is_valid_state("failed")
    assert not can_transition("exploded", "failed")
    assert not can_transition("failed", "exploded")
    assert not can_transition("exploded", "exploded")


def test_failed_can_be_retried_via_resolved():
    validate_transition(ModuleState.failed, ModuleState.resolved)
    validate_transition(ModuleState.resolved, ModuleState.installed)
