from __future__ import annotations

import re
from typing import List

from aistack.core.errors import InvalidVersionError, ManifestValidationError
from aistack.core.modules.models import Category, ModuleManifest
from aistack.core.modules.version import parse_module_dependency, parse_version


_HEX64 = re.compile(r"^[0-9a-fA-F]{64}$")
VALID_CATEGORIES = {c.value for c in Category}


def normalize_checksum(value: str) -> str:
    v = str(value or "").strip()
    for prefix in ("sha256:", "SHA256:"):
        if v.startswith(prefix):
            v = v[len(prefix) :]
    return v


def manifest_problems(manifest: ModuleManifest) -> List[str]:
    problems: List[str] = []
    if not manifest.name.strip():
        problems.append("name is required")
    if manifest.category not in VALID_CATEGORIES:
        problems.append(f"invalid category {manifest.category!r}")
    if not manifest.version:
        problems.append("version is required")
    else:
        try:
            parse_version(manifest.version)
        except InvalidVersionError as e:
            problems.append(f"version {manifest.version!r} is invalid: {e}")
    if not manifest.description.strip():
        problems.append("description is required")
    if not manifest.runtime.modes:
        problems.append("runtime.modes must include at least one entry")
    for dep in manifest.dependencies.modules:
        try:
            parse_module_dependency(dep)
        except InvalidVersionError as e:
            problems.append(f"invalid module dependency {dep!r}: {e}")
    if manifest.integrity.checksum and not _HEX64.match(normalize_checksum(manifest.integrity.checksum)):
        problems.append("invalid integrity.checksum value")
    return problems


def validate_manifest(manifest: ModuleManifest) -> None:
    problems = manifest_problems(manifest)
    if problems:
        label = manifest.name or "<unnamed>"
        raise ManifestValidationError(f"manifest {label} is invalid: " + "; ".join(problems), problems=problems, module=label)
