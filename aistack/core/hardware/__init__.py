"""
Hardware profile input: raw detector output, normalization, detector implementations.
"""

from aistack.core.hardware.detector import HardwareDetector, NativeDetector, StaticDetector
from aistack.core.hardware.models import CPUInfo, GPUInfo, HardwareProfile, MemoryInfo, NormalizedHardwareProfile, StorageInfo
from aistack.core.hardware.normalize import normalize_profile
from aistack.core.hardware.nvml import nvml_gpus

__all__ = [
    "CPUInfo",
    "GPUInfo",
    "HardwareDetector",
    "HardwareProfile",
    "MemoryInfo",
    "NativeDetector",
    "NormalizedHardwareProfile",
    "StaticDetector",
    "StorageInfo",
    "normalize_profile",
    "nvml_gpus",
]
