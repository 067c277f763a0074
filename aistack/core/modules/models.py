"""
Module manifest + registry record models.

Manifests are the contract-of-record for installable modules; they are
validated and checksummed without executing anything the module ships.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from aistack.core.modules.version import Version


class Category(str, Enum):
    language = "language"
    runtime = "runtime"
    framework = "framework"
    service = "service"
    application = "application"
    tool = "tool"
    model = "model"


class ModuleState(str, Enum):
    available = "available"
    resolved = "resolved"
    installed = "installed"
    running = "running"
    stopped = "stopped"
    failed = "failed"
    deprecated = "deprecated"


def _none_to_list(v: Any) -> Any:
    if v is None:
        return []
    if isinstance(v, str):
        return [v]
    return v


class CPURequirement(BaseModel):
    model_config = ConfigDict(extra="forbid")
    cores_min: int = Field(default=0, ge=0)


class MemoryRequirement(BaseModel):
    model_config = ConfigDict(extra="forbid")
    ram_min: str = ""


class GPURequirement(BaseModel):
    model_config = ConfigDict(extra="forbid")
    vram_min: str = ""
    multi_gpu: bool = False


class HardwareRequirements(BaseModel):
    model_config = ConfigDict(extra="forbid")
    cpu: Optional[CPURequirement] = None
    memory: Optional[MemoryRequirement] = None
    gpu: Optional[GPURequirement] = None


class Dependencies(BaseModel):
    model_config = ConfigDict(extra="forbid")
    system: List[str] = Field(default_factory=list)
    modules: List[str] = Field(default_factory=list)
    runtime: List[str] = Field(default_factory=list)

    @field_validator("system", "modules", "runtime", mode="before")
    @classmethod
    def _lists(cls, v: Any) -> Any:
        return _none_to_list(v)


class ManifestRuntime(BaseModel):
    model_config = ConfigDict(extra="forbid")
    modes: List[str] = Field(default_factory=list)
    preferred: str = ""

    @field_validator("modes", mode="before")
    @classmethod
    def _modes(cls, v: Any) -> Any:
        return _none_to_list(v)


class Interfaces(BaseModel):
    model_config = ConfigDict(extra="forbid")
    provides: List[str] = Field(default_factory=list)
    consumes: List[str] = Field(default_factory=list)

    @field_validator("provides", "consumes", mode="before")
    @classmethod
    def _lists(cls, v: Any) -> Any:
        return _none_to_list(v)


class Integrity(BaseModel):
    model_config = ConfigDict(extra="forbid")
    checksum: str = ""
    signature: str = ""


class ModuleManifest(BaseModel):
    """
    Raw manifest as written on disk. ``category`` and ``version`` stay strings
    here so validation can report every problem at once (see validator.py).
    """

    model_config = ConfigDict(extra="forbid")

    name: str = ""
    category: str = ""
    version: str = ""
    description: str = ""
    license: str = ""
    hardware: HardwareRequirements = Field(default_factory=HardwareRequirements)
    dependencies: Dependencies = Field(default_factory=Dependencies)
    runtime: ManifestRuntime = Field(default_factory=ManifestRuntime)
    interfaces: Interfaces = Field(default_factory=Interfaces)
    integrity: Integrity = Field(default_factory=Integrity)

    @field_validator("hardware", "dependencies", "runtime", "interfaces", "integrity", mode="before")
    @classmethod
    def _none_blocks(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("name", "category", "version", "description", "license", mode="before")
    @classmethod
    def _scalars(cls, v: Any) -> Any:
        # YAML turns `version: 1.0` into a float
        if v is None:
            return ""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


@dataclass(frozen=True)
class ModuleRecord:
    manifest: ModuleManifest
    version: Version
    source_path: str = ""
    checksum: str = ""
    signature: str = ""

    @property
    def name(self) -> str:
        return self.manifest.name
