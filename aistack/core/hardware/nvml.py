from __future__ import annotations

from typing import List

import pynvml

from aistack.core.hardware.models import GPUInfo


def _text(value: object) -> str:
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="ignore")
    return str(value or "")


def _has_nvlink(handle: object) -> bool:
    for link in range(int(getattr(pynvml, "NVML_NVLINK_MAX_LINKS", 0))):
        try:
            if pynvml.nvmlDeviceGetNvLinkState(handle, link) == pynvml.NVML_FEATURE_ENABLED:
                return True
        except pynvml.NVMLError:
            # unsupported link index or no NVLink on this board
            return False
    return False


def _cuda_version() -> str:
    try:
        v = int(pynvml.nvmlSystemGetCudaDriverVersion())
    except pynvml.NVMLError:
        return ""
    return f"{v // 1000}.{(v % 1000) // 10}"


def nvml_gpus() -> List[GPUInfo]:
    """NVIDIA GPUs via NVML. No driver or no devices -> empty list."""
    try:
        pynvml.nvmlInit()
    except pynvml.NVMLError:
        return []
    try:
        count = int(pynvml.nvmlDeviceGetCount())
        driver = _text(pynvml.nvmlSystemGetDriverVersion())
        cuda = _cuda_version()
        gpus: List[GPUInfo] = []
        for i in range(count):
            h = pynvml.nvmlDeviceGetHandleByIndex(i)
            mem = pynvml.nvmlDeviceGetMemoryInfo(h)
            gpus.append(
                GPUInfo(
                    index=i,
                    name=_text(pynvml.nvmlDeviceGetName(h)),
                    vendor="nvidia",
                    vram_total=int(mem.total),
                    vram_free=int(mem.free),
                    cuda_version=cuda,
                    driver_version=driver,
                    multi_gpu=count > 1,
                    nvlink=_has_nvlink(h),
                )
            )
        return gpus
    except pynvml.NVMLError:
        return []
    finally:
        try:
            pynvml.nvmlShutdown()
        except pynvml.NVMLError:
            pass
