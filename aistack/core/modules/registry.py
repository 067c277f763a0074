from __future__ import annotations

import hashlib
import os
import threading
from pathlib import Path
from typing import Dict, Iterator, List

import yaml
from pydantic import ValidationError

from aistack.core.errors import AIStackError, ChecksumMismatchError, ConfigError, ManifestValidationError
from aistack.core.modules.models import ModuleManifest, ModuleRecord
from aistack.core.modules.validator import normalize_checksum, validate_manifest
from aistack.core.modules.version import parse_version


MANIFEST_SUFFIXES = {".yaml", ".yml"}


class _ManifestLoader(yaml.SafeLoader):
    """SafeLoader that keeps float scalars as written (`version: 3.10` stays "3.10")."""


_ManifestLoader.add_constructor("tag:yaml.org,2002:float", lambda loader, node: loader.construct_scalar(node))


def compute_checksum(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def load_module_record(path: str | Path) -> ModuleRecord:
    p = Path(path)
    try:
        raw = p.read_bytes()
    except OSError as e:
        raise ConfigError(f"read module manifest {p}: {e}", path=str(p)) from e
    try:
        data = yaml.load(raw.decode("utf-8"), Loader=_ManifestLoader) or {}
    except (UnicodeDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"parse module manifest {p}: {e}", path=str(p)) from e
    if not isinstance(data, dict):
        raise ConfigError(f"module manifest {p} must contain a mapping", path=str(p))
    try:
        manifest = ModuleManifest.model_validate(data)
    except ValidationError as e:
        raise ManifestValidationError(f"manifest {p.name} is invalid: {e}", problems=[str(e)], path=str(p)) from e
    validate_manifest(manifest)
    version = parse_version(manifest.version)

    checksum = compute_checksum(raw)
    if manifest.integrity.checksum:
        expected = normalize_checksum(manifest.integrity.checksum)
        if checksum.lower() != expected.lower():
            raise ChecksumMismatchError(
                f"checksum mismatch for {manifest.name}: expected {expected} got {checksum}",
                module=manifest.name,
                path=str(p),
            )

    return ModuleRecord(
        manifest=manifest,
        version=version,
        source_path=str(p),
        checksum=checksum,
        signature=manifest.integrity.signature,
    )


class Registry:
    """Known module records, all versions per name, highest version first."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, List[ModuleRecord]] = {}

    def add(self, record: ModuleRecord) -> None:
        name = record.manifest.name
        if not name:
            raise ConfigError("module name is required")
        with self._lock:
            records = self._records.setdefault(name, [])
            records.append(record)
            records.sort(key=lambda r: r.version, reverse=True)

    def get(self, name: str) -> List[ModuleRecord]:
        with self._lock:
            return list(self._records.get(name, []))

    def all(self) -> Dict[str, List[ModuleRecord]]:
        with self._lock:
            return {k: list(v) for k, v in self._records.items()}

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._records.keys())

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._records

    def __len__(self) -> int:
        with self._lock:
            return sum(len(v) for v in self._records.values())


def _iter_manifest_files(root: Path) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        for fn in sorted(filenames):
            if Path(fn).suffix.lower() in MANIFEST_SUFFIXES:
                yield Path(dirpath) / fn


def load_registry_from_dir(root: str | Path) -> Registry:
    base = Path(root)
    if not base.is_dir():
        raise ConfigError(f"module directory {base} does not exist", path=str(base))
    registry = Registry()
    for path in _iter_manifest_files(base):
        try:
            record = load_module_record(path)
        except AIStackError as e:
            e.user_message = f"load module manifest {path}: {e.user_message}"
            e.args = (e.user_message,)
            raise
        registry.add(record)
    return registry
