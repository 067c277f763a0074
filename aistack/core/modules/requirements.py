from __future__ import annotations

from typing import List

from aistack.core.hardware.models import NormalizedHardwareProfile
from aistack.core.modules.models import ModuleManifest
from aistack.core.policy.matcher import parse_bytes


def check_hardware_requirements(manifest: ModuleManifest, profile: NormalizedHardwareProfile) -> List[str]:
    """Unmet hardware requirements of ``manifest`` on ``profile`` (empty list = satisfied)."""
    unmet: List[str] = []
    hw = manifest.hardware

    if hw.cpu is not None and hw.cpu.cores_min > 0 and profile.cpu_cores < hw.cpu.cores_min:
        unmet.append(f"cpu cores {profile.cpu_cores} < required {hw.cpu.cores_min}")

    if hw.memory is not None and hw.memory.ram_min:
        try:
            need = parse_bytes(hw.memory.ram_min)
        except ValueError:
            unmet.append(f"invalid memory.ram_min {hw.memory.ram_min!r}")
        else:
            if profile.memory_total_bytes < need:
                unmet.append(f"memory {profile.memory_total_bytes} bytes < required {hw.memory.ram_min}")

    if hw.gpu is not None:
        if hw.gpu.vram_min:
            try:
                need = parse_bytes(hw.gpu.vram_min)
            except ValueError:
                unmet.append(f"invalid gpu.vram_min {hw.gpu.vram_min!r}")
            else:
                if profile.max_gpu_vram_bytes < need:
                    unmet.append(f"gpu vram {profile.max_gpu_vram_bytes} bytes < required {hw.gpu.vram_min}")
        if hw.gpu.multi_gpu and not profile.multi_gpu:
            unmet.append("multi-gpu required")

    return unmet
