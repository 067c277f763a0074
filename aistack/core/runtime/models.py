from __future__ import annotations

import datetime as dt
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_HEALTH_INTERVAL_SECONDS = 30.0
DEFAULT_HEALTH_TIMEOUT_SECONDS = 5.0


class ExecutionMode(str, Enum):
    native = "native"
    container = "container"


class ProcessState(str, Enum):
    starting = "starting"
    running = "running"
    stopped = "stopped"
    failed = "failed"


class HealthState(str, Enum):
    unknown = "unknown"
    healthy = "healthy"
    unhealthy = "unhealthy"


class HealthCheck(BaseModel):
    model_config = ConfigDict(extra="forbid")

    command: List[str] = Field(default_factory=list)
    interval_seconds: float = Field(default=DEFAULT_HEALTH_INTERVAL_SECONDS, ge=0)
    timeout_seconds: float = Field(default=DEFAULT_HEALTH_TIMEOUT_SECONDS, ge=0)

    def effective_interval(self) -> float:
        return self.interval_seconds if self.interval_seconds > 0 else DEFAULT_HEALTH_INTERVAL_SECONDS

    def effective_timeout(self) -> float:
        return self.timeout_seconds if self.timeout_seconds > 0 else DEFAULT_HEALTH_TIMEOUT_SECONDS


class ModuleSpec(BaseModel):
    """What to launch. ``mode=None`` falls back to the configured default mode."""

    model_config = ConfigDict(extra="forbid")

    name: str
    mode: Optional[ExecutionMode] = None
    image: str = ""
    command: List[str] = Field(default_factory=list)
    args: List[str] = Field(default_factory=list)
    env: Dict[str, str] = Field(default_factory=dict)
    work_dir: str = ""
    container_name: str = ""
    container_runtime: str = ""
    health_check: HealthCheck = Field(default_factory=HealthCheck)

    @field_validator("mode", mode="before")
    @classmethod
    def _empty_mode(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return v


class Status(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    mode: ExecutionMode
    pid: int = 0
    container_id: str = ""
    state: ProcessState = ProcessState.starting
    health: HealthState = HealthState.unknown
    started_at: Optional[dt.datetime] = None
    finished_at: Optional[dt.datetime] = None
    log_path: str = ""
    last_error: str = ""
