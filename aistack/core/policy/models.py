from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_size_str(v: Any) -> str:
    if v is None:
        return ""
    if isinstance(v, bool):
        raise ValueError("size must be a number or a suffixed string")
    if isinstance(v, (int, float)):
        return str(v)
    return str(v).strip()


def _as_str_list(v: Any) -> List[str]:
    if v is None:
        return []
    if isinstance(v, str):
        return [v]
    if isinstance(v, (list, tuple, set)):
        return [str(x) for x in v if str(x or "").strip()]
    raise ValueError("expected a list of strings")


class PolicyConditions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    gpu_vram_min: str = ""
    gpu_vram_max: str = ""
    ram_min: str = ""
    ram_max: str = ""
    gpu_count_min: int = Field(default=0, ge=0)  # 0 = unconstrained
    gpu_count_max: int = Field(default=0, ge=0)
    nvlink: Optional[bool] = None
    multi_gpu: Optional[bool] = None

    @field_validator("gpu_vram_min", "gpu_vram_max", "ram_min", "ram_max", mode="before")
    @classmethod
    def _norm_sizes(cls, v: Any) -> str:
        return _as_size_str(v)

    @field_validator("gpu_count_min", "gpu_count_max", mode="before")
    @classmethod
    def _norm_counts(cls, v: Any) -> Any:
        return 0 if v is None else v


class PolicyAllow(BaseModel):
    model_config = ConfigDict(extra="forbid")

    max_model_size: str = ""
    runtimes: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)

    @field_validator("max_model_size", mode="before")
    @classmethod
    def _norm_size(cls, v: Any) -> str:
        return _as_size_str(v)

    @field_validator("runtimes", "features", mode="before")
    @classmethod
    def _norm_lists(cls, v: Any) -> List[str]:
        return _as_str_list(v)


class PolicyDefinition(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=128)
    description: str = ""
    conditions: PolicyConditions = Field(default_factory=PolicyConditions)
    allow: PolicyAllow = Field(default_factory=PolicyAllow)
    deny: List[str] = Field(default_factory=list)

    @field_validator("conditions", "allow", mode="before")
    @classmethod
    def _none_block(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("deny", mode="before")
    @classmethod
    def _norm_deny(cls, v: Any) -> List[str]:
        return _as_str_list(v)


class PolicySet(BaseModel):
    model_config = ConfigDict(extra="forbid")

    policies: List[PolicyDefinition] = Field(default_factory=list)

    @field_validator("policies", mode="before")
    @classmethod
    def _none_policies(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("policies")
    @classmethod
    def _unique_names(cls, v: List[PolicyDefinition]) -> List[PolicyDefinition]:
        seen: set[str] = set()
        for p in v:
            if p.name in seen:
                raise ValueError(f"duplicate policy name {p.name!r}")
            seen.add(p.name)
        return v


class CapabilitySet(BaseModel):
    model_config = ConfigDict(extra="forbid")

    matched_policies: List[str] = Field(default_factory=list)
    max_model_size: str = "unlimited"
    runtimes: List[str] = Field(default_factory=list)
    features: List[str] = Field(default_factory=list)
    denied: List[str] = Field(default_factory=list)

    def allows_runtime(self, runtime: str) -> bool:
        return str(runtime) in set(self.runtimes)

    def allows_feature(self, feature: str) -> bool:
        return str(feature) in set(self.features)
