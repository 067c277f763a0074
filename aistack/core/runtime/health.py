from __future__ import annotations

import subprocess
from typing import Sequence

from aistack.core.runtime.container import ContainerRuntime
from aistack.core.runtime.models import HealthState, ProcessState


HEALTHY_CONTAINER_STATES = frozenset({"healthy", "running"})
UNHEALTHY_CONTAINER_STATES = frozenset({"unhealthy", "exited", "dead"})


def health_from_state(state: ProcessState) -> HealthState:
    if state == ProcessState.running:
        return HealthState.healthy
    if state in (ProcessState.failed, ProcessState.stopped):
        return HealthState.unhealthy
    return HealthState.unknown


def health_from_container_status(status: str) -> HealthState:
    s = str(status or "").strip().lower()
    if s in HEALTHY_CONTAINER_STATES:
        return HealthState.healthy
    if s in UNHEALTHY_CONTAINER_STATES:
        return HealthState.unhealthy
    return HealthState.unknown


def run_probe(command: Sequence[str], timeout: float) -> bool:
    try:
        cp = subprocess.run(list(command), capture_output=True, timeout=timeout)
    except (OSError, subprocess.TimeoutExpired):
        return False
    return cp.returncode == 0


def native_health(state: ProcessState, command: Sequence[str], timeout: float) -> HealthState:
    if not command:
        return health_from_state(state)
    return HealthState.healthy if run_probe(command, timeout) else HealthState.unhealthy


def container_health(runtime: ContainerRuntime, container_id: str, command: Sequence[str], timeout: float) -> HealthState:
    if not command:
        return health_from_container_status(runtime.inspect_status(container_id, timeout))
    return HealthState.healthy if runtime.exec(container_id, command, timeout) else HealthState.unhealthy
