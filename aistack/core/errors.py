from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from aistack.core.ops_log import redact


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class AIStackError(Exception):
    code: str
    user_message: str
    severity: Severity = Severity.ERROR
    recoverable: bool = True
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.user_message)

    def __str__(self) -> str:
        return self.user_message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "recoverable": bool(self.recoverable),
            "context": redact(self.context or {}),
        }


# ---- Configuration errors (fatal, not retried) ----
class ConfigError(AIStackError):
    def __init__(self, user_message: str = "Configuration error.", **ctx: Any):
        super().__init__("config_error", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class ManifestValidationError(AIStackError):
    def __init__(self, user_message: str = "Invalid module manifest.", *, problems: list[str] | None = None, **ctx: Any):
        self.problems = list(problems or [])
        super().__init__("manifest_invalid", user_message, severity=Severity.ERROR, recoverable=False, context={"problems": self.problems, **ctx})


class InvalidVersionError(AIStackError):
    def __init__(self, user_message: str = "Invalid version.", **ctx: Any):
        super().__init__("invalid_version", user_message, severity=Severity.ERROR, recoverable=False, context=ctx)


class ChecksumMismatchError(AIStackError):
    def __init__(self, user_message: str = "Checksum mismatch.", **ctx: Any):
        super().__init__("checksum_mismatch", user_message, severity=Severity.ERROR, recoverable=False, context=ctx)


# ---- Evaluation errors ----
class PolicyEvaluationError(AIStackError):
    def __init__(self, user_message: str = "Policy evaluation failed.", **ctx: Any):
        super().__init__("policy_evaluation_error", user_message, severity=Severity.WARN, recoverable=False, context=ctx)


# ---- Resolution errors ----
class ResolutionError(AIStackError):
    def __init__(self, user_message: str = "Dependency resolution failed.", *, code: str = "resolution_error", **ctx: Any):
        super().__init__(code, user_message, severity=Severity.ERROR, recoverable=False, context=ctx)


class ModuleNotFoundInRegistry(ResolutionError):
    def __init__(self, module: str):
        super().__init__(f"module {module} not found in registry", code="module_not_found", module=module)


class NoMatchingVersionError(ResolutionError):
    def __init__(self, module: str, constraint: str = ""):
        super().__init__(f"no available versions for {module} satisfy constraint {constraint}".rstrip(), code="no_matching_version", module=module, constraint=constraint)


class CircularDependencyError(ResolutionError):
    def __init__(self, module: str):
        super().__init__(f"circular dependency detected at {module}", code="circular_dependency", module=module)


class VersionConflictError(ResolutionError):
    def __init__(self, module: str, selected: str, constraint: str):
        super().__init__(
            f"version conflict for {module}: selected {selected} does not satisfy {constraint}",
            code="version_conflict",
            module=module,
            selected=selected,
            constraint=constraint,
        )


class StateTransitionError(AIStackError):
    def __init__(self, user_message: str = "Invalid module state transition.", **ctx: Any):
        super().__init__("state_transition_error", user_message, severity=Severity.ERROR, recoverable=True, context=ctx)


# ---- Persistence errors ----
class PersistenceError(AIStackError):
    def __init__(self, user_message: str = "State persistence failed.", **ctx: Any):
        super().__init__("persistence_error", user_message, severity=Severity.ERROR, recoverable=True, context=ctx)


class SnapshotNotFoundError(AIStackError):
    def __init__(self, user_message: str = "Snapshot not found.", **ctx: Any):
        super().__init__("snapshot_not_found", user_message, severity=Severity.WARN, recoverable=True, context=ctx)


# ---- Runtime errors ----
class RuntimeStartError(AIStackError):
    def __init__(self, user_message: str = "Module failed to start.", *, code: str = "runtime_start_error", **ctx: Any):
        super().__init__(code, user_message, severity=Severity.ERROR, recoverable=True, context=ctx)


class ModeDisabledError(RuntimeStartError):
    def __init__(self, user_message: str = "Execution mode disabled.", **ctx: Any):
        super().__init__(user_message, code="mode_disabled", **ctx)


class ModuleAlreadyRunningError(RuntimeStartError):
    def __init__(self, module: str):
        super().__init__(f"module {module!r} already running", code="already_running", module=module)


class ContainerRuntimeError(RuntimeStartError):
    def __init__(self, user_message: str = "Container runtime error.", **ctx: Any):
        super().__init__(user_message, code="container_runtime_error", **ctx)


class ProcessNotFoundError(AIStackError):
    def __init__(self, module: str):
        super().__init__("process_not_found", f"module {module!r} not found", severity=Severity.WARN, recoverable=False, context={"module": module})


class RuntimeStopError(AIStackError):
    def __init__(self, user_message: str = "Module failed to stop.", *, code: str = "runtime_stop_error", **ctx: Any):
        super().__init__(code, user_message, severity=Severity.ERROR, recoverable=True, context=ctx)


class StopTimeoutError(RuntimeStopError):
    def __init__(self, module: str, timeout_seconds: float):
        super().__init__(
            f"timeout stopping native process for {module!r} after {timeout_seconds:g}s; process killed",
            code="stop_timeout",
            module=module,
            timeout_seconds=timeout_seconds,
        )
