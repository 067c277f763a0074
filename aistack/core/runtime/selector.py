from __future__ import annotations

from typing import Iterable, List, Optional, Set

from aistack.core.config.models import RuntimeConfig
from aistack.core.errors import ModeDisabledError
from aistack.core.modules.models import ManifestRuntime
from aistack.core.runtime.models import ExecutionMode


def _mode_value(x: object) -> str:
    return str(getattr(x, "value", x) or "").strip().lower()


def _enabled(mode: str, config: RuntimeConfig) -> bool:
    if mode == ExecutionMode.container.value:
        return bool(config.docker_enabled)
    if mode == ExecutionMode.native.value:
        return bool(config.native_enabled)
    return False


def select_execution_mode(
    manifest_runtime: ManifestRuntime,
    allowed_modes: Optional[Iterable[str]],
    preference: "ExecutionMode | str | None",
    config: RuntimeConfig,
) -> ExecutionMode:
    """
    Pick the one mode a module runs in.

    Declared modes are narrowed by ``allowed_modes`` (when given and non-empty)
    and by the enabled flags. Then, in order: caller preference, manifest
    preferred mode, configured default, container, native, anything left.
    Each candidate counts only if it survived the filtering.
    """
    declared: List[str] = [_mode_value(m) for m in (manifest_runtime.modes or [])]
    declared = [m for m in declared if m]
    if not declared:
        raise ModeDisabledError("manifest declares no runtime modes")

    allow: Set[str] = {_mode_value(m) for m in (allowed_modes or [])}
    allow.discard("")

    candidates: Set[str] = set()
    for m in declared:
        if allow and m not in allow:
            continue
        if not _enabled(m, config):
            continue
        candidates.add(m)
    if not candidates:
        raise ModeDisabledError(
            "no allowed runtime modes available",
            declared=declared,
            allowed=sorted(allow),
        )

    order = [
        _mode_value(preference),
        _mode_value(manifest_runtime.preferred),
        _mode_value(config.default_mode),
        ExecutionMode.container.value,
        ExecutionMode.native.value,
    ]
    for m in order:
        if m and m in candidates:
            return ExecutionMode(m)
    return ExecutionMode(sorted(candidates)[0])
