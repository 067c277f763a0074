"""
Runtime supervision for modules: native processes and docker/podman containers,
periodic health checks and per-module log files.
"""

from aistack.core.runtime.container import ContainerRuntime, DockerRuntime, PodmanRuntime, resolve_container_runtime
from aistack.core.runtime.models import ExecutionMode, HealthCheck, HealthState, ModuleSpec, ProcessState, Status
from aistack.core.runtime.selector import select_execution_mode
from aistack.core.runtime.supervisor import RuntimeSupervisor

__all__ = [
    "ContainerRuntime",
    "DockerRuntime",
    "ExecutionMode",
    "HealthCheck",
    "HealthState",
    "ModuleSpec",
    "PodmanRuntime",
    "ProcessState",
    "RuntimeSupervisor",
    "Status",
    "resolve_container_runtime",
    "select_execution_mode",
]
