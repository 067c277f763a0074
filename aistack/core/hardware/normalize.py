from __future__ import annotations

from typing import Optional

from aistack.core.hardware.models import HardwareProfile, NormalizedHardwareProfile


def normalize_profile(profile: Optional[HardwareProfile]) -> NormalizedHardwareProfile:
    if profile is None:
        return NormalizedHardwareProfile()

    gpus = list(profile.gpus or [])
    total_vram = sum(int(g.vram_total) for g in gpus)
    max_vram = max((int(g.vram_total) for g in gpus), default=0)
    has_nvlink = any(bool(g.nvlink) for g in gpus)
    # more than one device always counts as multi-GPU, even if no card reports it
    multi_gpu = any(bool(g.multi_gpu) for g in gpus) or len(gpus) > 1

    return NormalizedHardwareProfile(
        cpu_arch=profile.cpu.arch,
        cpu_cores=int(profile.cpu.cores),
        cpu_threads=int(profile.cpu.threads),
        gpu_count=len(gpus),
        max_gpu_vram_bytes=max_vram,
        total_gpu_vram_bytes=total_vram,
        has_nvlink=has_nvlink,
        multi_gpu=multi_gpu,
        memory_total_bytes=int(profile.memory.total),
        storage_total_bytes=sum(int(s.total) for s in profile.storage or []),
        storage_free_bytes=sum(int(s.free) for s in profile.storage or []),
    )
