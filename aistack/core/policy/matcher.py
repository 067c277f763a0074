from __future__ import annotations

from dataclasses import dataclass

from aistack.core.hardware.models import NormalizedHardwareProfile
from aistack.core.policy.models import PolicyConditions


UNLIMITED_MODEL_SIZE = 1e9

_SIZE_SUFFIXES = (
    ("TB", 1024**4),
    ("GB", 1024**3),
    ("MB", 1024**2),
    ("KB", 1024),
    ("B", 1),
)


def parse_bytes(raw: str) -> int:
    """Parse "24GB", "512mb", "1.5TB" or a bare number into bytes (1024-based)."""
    trimmed = str(raw or "").strip().upper()
    if not trimmed:
        raise ValueError("empty size")
    for suffix, multiplier in _SIZE_SUFFIXES:
        if trimmed.endswith(suffix):
            number = trimmed[: -len(suffix)].strip()
            if not number:
                raise ValueError(f"invalid size: {raw}")
            try:
                value = float(number)
            except ValueError as e:
                raise ValueError(f"invalid size: {raw}") from e
            if value < 0:
                raise ValueError(f"invalid size: {raw}")
            return int(value * multiplier)
    try:
        value = float(trimmed)
    except ValueError as e:
        raise ValueError(f"invalid size: {raw}") from e
    if value < 0:
        raise ValueError(f"invalid size: {raw}")
    return int(value)


def model_size_limit(raw: str) -> float:
    """Numeric budget of a max_model_size string ("70B", "13", "unlimited")."""
    trimmed = str(raw or "").strip().upper()
    if not trimmed or trimmed == "UNLIMITED":
        return UNLIMITED_MODEL_SIZE
    if trimmed.endswith("B"):
        try:
            return float(trimmed[:-1])
        except ValueError:
            pass
    try:
        return float(trimmed)
    except ValueError:
        return UNLIMITED_MODEL_SIZE


def _matches_count(value: int, lo: int, hi: int) -> bool:
    if lo > 0 and value < lo:
        return False
    if hi > 0 and value > hi:
        return False
    return True


def _matches_bytes(value: int, lo_raw: str, hi_raw: str) -> bool:
    # an unparseable bound never matches
    if lo_raw:
        try:
            if value < parse_bytes(lo_raw):
                return False
        except ValueError:
            return False
    if hi_raw:
        try:
            if value > parse_bytes(hi_raw):
                return False
        except ValueError:
            return False
    return True


@dataclass
class PolicyMatcher:
    def matches(self, profile: NormalizedHardwareProfile, c: PolicyConditions) -> bool:
        if not _matches_count(profile.gpu_count, c.gpu_count_min, c.gpu_count_max):
            return False
        if c.nvlink is not None and bool(profile.has_nvlink) is not bool(c.nvlink):
            return False
        if c.multi_gpu is not None and bool(profile.multi_gpu) is not bool(c.multi_gpu):
            return False
        # VRAM bounds apply to the largest single card
        if not _matches_bytes(profile.max_gpu_vram_bytes, c.gpu_vram_min, c.gpu_vram_max):
            return False
        if not _matches_bytes(profile.memory_total_bytes, c.ram_min, c.ram_max):
            return False
        return True
