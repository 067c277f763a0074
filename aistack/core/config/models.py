from __future__ import annotations

import os
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    level: str = "info"
    log_dir: str = "logs"
    console: bool = True
    ops_log: str = os.path.join("logs", "ops.jsonl")

    @field_validator("level")
    @classmethod
    def _norm_level(cls, v: str) -> str:
        vv = str(v or "info").strip().lower()
        if vv not in {"debug", "info", "warning", "error", "critical"}:
            raise ValueError(f"invalid log level {v!r}")
        return vv


class ControlConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    data_dir: str = "/var/lib/localaistack"
    policy_file: str = "/etc/localaistack/policies.yaml"
    modules_dir: str = ""
    enable_nvml: bool = True


class RuntimeConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    docker_enabled: bool = True
    native_enabled: bool = True
    default_mode: Literal["container", "native", ""] = "container"
    log_dir: str = "/var/lib/localaistack/runtime"
    stop_timeout_seconds: float = Field(default=10.0, gt=0, le=600)
    container_stop_grace_seconds: int = Field(default=10, ge=0, le=600)
    inspect_timeout_seconds: float = Field(default=5.0, gt=0, le=120)


class AppConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    schema_version: int = Field(default=1, ge=1, le=10)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    control: ControlConfig = Field(default_factory=ControlConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
