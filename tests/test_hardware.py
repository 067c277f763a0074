from __future__ import annotations

import pytest

from aistack.core.errors import ConfigError
from aistack.core.hardware.detector import NativeDetector, StaticDetector
from aistack.core.hardware.models import GPUInfo, HardwareProfile
from aistack.core.hardware.normalize import normalize_profile

from .helpers.builders import GB, build_profile


def test_normalize_none_is_empty_profile():
    n = normalize_profile(None)
    assert n.gpu_count == 0
    assert n.memory_total_bytes == 0
    assert n.multi_gpu is False


def test_normalize_aggregates_gpus():
    n = normalize_profile(build_profile(gpu_vram_gb=[24, 48], ram_gb=128, cores=16))
    assert n.gpu_count == 2
    assert n.max_gpu_vram_bytes == 48 * GB
    assert n.total_gpu_vram_bytes == 72 * GB
    assert n.memory_total_bytes == 128 * GB
    assert n.cpu_cores == 16
    assert n.cpu_threads == 32


def test_two_gpus_are_multi_gpu_even_without_flag():
    assert normalize_profile(build_profile(gpu_vram_gb=[8, 8])).multi_gpu is True
    assert normalize_profile(build_profile(gpu_vram_gb=[8])).multi_gpu is False


def test_single_gpu_flag_sets_multi_gpu_and_nvlink():
    profile = HardwareProfile(gpus=[GPUInfo(vram_total=GB, multi_gpu=True, nvlink=True)])
    n = normalize_profile(profile)
    assert n.multi_gpu is True
    assert n.has_nvlink is True


def test_static_detector_returns_copies():
    det = StaticDetector(build_profile(gpu_vram_gb=[24]))
    a = det.detect()
    a.gpus.clear()
    assert len(det.detect().gpus) == 1


def test_static_detector_from_file(tmp_path):
    p = tmp_path / "hw.yaml"
    p.write_text(
        "cpu: {arch: arm64, cores: 10, threads: 10}\n"
        "memory: {total: 68719476736}\n"
        "gpus:\n  - {name: m2, vram_total: 25769803776}\n",
        encoding="utf-8",
    )
    n = normalize_profile(StaticDetector.from_file(str(p)).detect())
    assert n.cpu_arch == "arm64"
    assert n.memory_total_bytes == 64 * GB
    assert n.max_gpu_vram_bytes == 24 * GB


def test_static_detector_rejects_unknown_fields():
    with pytest.raises(ConfigError):
        StaticDetector.from_dict({"cpu": {"cores": 4, "turbo": True}})


def test_static_detector_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        StaticDetector.from_file(str(tmp_path / "nope.yaml"))


def test_native_detector_reports_this_host(tmp_path):
    det = NativeDetector(storage_paths=[str(tmp_path), str(tmp_path / "missing")], enable_nvml=False)
    profile = det.detect()
    assert profile.cpu.threads >= 1
    assert profile.memory.total > 0
    assert [s.path for s in profile.storage] == [str(tmp_path)]
    assert profile.gpus == []


def test_native_detector_gpu_source():
    det = NativeDetector(storage_paths=[], gpu_source=lambda: [GPUInfo(index=0, vram_total=8 * GB)])
    assert normalize_profile(det.detect()).max_gpu_vram_bytes == 8 * GB


def test_native_detector_uses_nvml_by_default(monkeypatch):
    from aistack.core.hardware import detector as detector_mod

    monkeypatch.setattr(detector_mod, "nvml_gpus", lambda: [GPUInfo(index=0, vendor="nvidia", vram_total=24 * GB)])
    profile = NativeDetector(storage_paths=[]).detect()
    assert [g.vendor for g in profile.gpus] == ["nvidia"]
