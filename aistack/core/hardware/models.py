from __future__ import annotations

from typing import List

from pydantic import BaseModel, ConfigDict, Field


class CPUInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")
    arch: str = ""
    cores: int = Field(default=0, ge=0)
    threads: int = Field(default=0, ge=0)
    model_name: str = ""
    vendor: str = ""


class GPUInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")
    index: int = 0
    name: str = ""
    vendor: str = ""
    vram_total: int = Field(default=0, ge=0)  # bytes
    vram_free: int = Field(default=0, ge=0)
    cuda_version: str = ""
    driver_version: str = ""
    multi_gpu: bool = False
    nvlink: bool = False


class MemoryInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")
    total: int = Field(default=0, ge=0)
    available: int = Field(default=0, ge=0)
    free: int = Field(default=0, ge=0)


class StorageInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")
    path: str = "/"
    total: int = Field(default=0, ge=0)
    free: int = Field(default=0, ge=0)
    type: str = ""


class HardwareProfile(BaseModel):
    """Raw detector output (before normalization)."""

    model_config = ConfigDict(extra="forbid")
    cpu: CPUInfo = Field(default_factory=CPUInfo)
    gpus: List[GPUInfo] = Field(default_factory=list)
    memory: MemoryInfo = Field(default_factory=MemoryInfo)
    storage: List[StorageInfo] = Field(default_factory=list)


class NormalizedHardwareProfile(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    cpu_arch: str = ""
    cpu_cores: int = 0
    cpu_threads: int = 0
    gpu_count: int = 0
    max_gpu_vram_bytes: int = 0
    total_gpu_vram_bytes: int = 0
    has_nvlink: bool = False
    multi_gpu: bool = False
    memory_total_bytes: int = 0
    storage_total_bytes: int = 0
    storage_free_bytes: int = 0
