from __future__ import annotations

import os
import platform
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import psutil
import yaml
from pydantic import ValidationError

from aistack.core.errors import ConfigError
from aistack.core.hardware.models import CPUInfo, GPUInfo, HardwareProfile, MemoryInfo, StorageInfo
from aistack.core.hardware.nvml import nvml_gpus


class HardwareDetector(ABC):
    """Source of a raw hardware profile; concrete detector chosen at construction time."""

    @abstractmethod
    def detect(self) -> HardwareProfile:
        raise NotImplementedError


class NativeDetector(HardwareDetector):
    """
    Local host detector: CPU, memory and storage via psutil, NVIDIA GPUs via NVML.

    ``gpu_source`` overrides GPU enumeration (other vendors, tests). With
    ``enable_nvml=False`` and no source the host reports no GPUs.
    """

    def __init__(
        self,
        *,
        storage_paths: Sequence[str] = ("/",),
        gpu_source: Optional[Callable[[], List[GPUInfo]]] = None,
        enable_nvml: bool = True,
    ):
        self.storage_paths = list(storage_paths)
        self.gpu_source = gpu_source
        self.enable_nvml = bool(enable_nvml)

    def detect_cpu(self) -> CPUInfo:
        cores = psutil.cpu_count(logical=False) or os.cpu_count() or 0
        threads = psutil.cpu_count(logical=True) or cores
        return CPUInfo(
            arch=platform.machine() or "",
            cores=int(cores),
            threads=int(threads),
            model_name=platform.processor() or "",
            vendor="",
        )

    def detect_gpus(self) -> List[GPUInfo]:
        if self.gpu_source is not None:
            return list(self.gpu_source() or [])
        if self.enable_nvml:
            return nvml_gpus()
        return []

    def detect_memory(self) -> MemoryInfo:
        vm = psutil.virtual_memory()
        return MemoryInfo(total=int(vm.total), available=int(vm.available), free=int(vm.free))

    def detect_storage(self) -> List[StorageInfo]:
        out: List[StorageInfo] = []
        for p in self.storage_paths:
            if not os.path.exists(p):
                continue
            du = shutil.disk_usage(p)
            out.append(StorageInfo(path=str(p), total=int(du.total), free=int(du.free), type=_fs_type(p)))
        return out

    def detect(self) -> HardwareProfile:
        return HardwareProfile(
            cpu=self.detect_cpu(),
            gpus=self.detect_gpus(),
            memory=self.detect_memory(),
            storage=self.detect_storage(),
        )


class StaticDetector(HardwareDetector):
    """Returns a fixed profile (remote inventory, recorded snapshot, tests)."""

    def __init__(self, profile: HardwareProfile):
        self._profile = profile

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "StaticDetector":
        try:
            return cls(HardwareProfile.model_validate(raw or {}))
        except ValidationError as e:
            raise ConfigError(f"invalid hardware profile: {e}") from e

    @classmethod
    def from_file(cls, path: str | Path) -> "StaticDetector":
        p = Path(path)
        try:
            raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"read hardware profile {p}: {e}", path=str(p)) from e
        return cls.from_dict(raw)

    def detect(self) -> HardwareProfile:
        return self._profile.model_copy(deep=True)


def _fs_type(path: str) -> str:
    best = ""
    best_len = -1
    try:
        parts = psutil.disk_partitions(all=False)
    except OSError:
        return ""
    target = os.path.abspath(path)
    for part in parts:
        mp = part.mountpoint
        if target.startswith(mp) and len(mp) > best_len:
            best, best_len = part.fstype, len(mp)
    return best
