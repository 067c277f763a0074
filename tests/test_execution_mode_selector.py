from __future__ import annotations

import pytest

from aistack.core.config.models import RuntimeConfig
from aistack.core.errors import ModeDisabledError
from aistack.core.modules.models import ManifestRuntime
from aistack.core.runtime.models import ExecutionMode
from aistack.core.runtime.selector import select_execution_mode


BOTH = ManifestRuntime(modes=["native", "container"])


def _cfg(**kw) -> RuntimeConfig:
    return RuntimeConfig(**kw)


def test_caller_preference_wins():
    assert select_execution_mode(BOTH, None, "native", _cfg()) == ExecutionMode.native
    assert select_execution_mode(BOTH, None, ExecutionMode.container, _cfg(default_mode="native")) == ExecutionMode.container


def test_manifest_preferred_before_config_default():
    rt = ManifestRuntime(modes=["native", "container"], preferred="native")
    assert select_execution_mode(rt, None, None, _cfg(default_mode="container")) == ExecutionMode.native


def test_config_default_before_container():
    assert select_execution_mode(BOTH, None, None, _cfg(default_mode="native")) == ExecutionMode.native


def test_container_before_native_without_default():
    assert select_execution_mode(BOTH, None, None, _cfg(default_mode="")) == ExecutionMode.container


def test_preference_ignored_when_filtered_out():
    assert select_execution_mode(BOTH, ["container"], "native", _cfg()) == ExecutionMode.container
    assert select_execution_mode(BOTH, None, "native", _cfg(native_enabled=False)) == ExecutionMode.container


def test_empty_allow_list_means_no_restriction():
    assert select_execution_mode(BOTH, [], "native", _cfg()) == ExecutionMode.native


def test_disabled_modes_filter_declared_modes():
    rt = ManifestRuntime(modes=["container"])
    with pytest.raises(ModeDisabledError):
        select_execution_mode(rt, None, None, _cfg(docker_enabled=False))


def test_allow_list_excluding_everything_fails():
    with pytest.raises(ModeDisabledError):
        select_execution_mode(BOTH, ["gpu-passthrough"], None, _cfg())


def test_no_declared_modes_fails():
    with pytest.raises(ModeDisabledError):
        select_execution_mode(ManifestRuntime(), None, "native", _cfg())


def test_unknown_declared_modes_are_ignored():
    rt = ManifestRuntime(modes=["wasm", "native"])
    assert select_execution_mode(rt, None, None, _cfg()) == ExecutionMode.native
