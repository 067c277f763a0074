from __future__ import annotations

import os

import pytest

from aistack.core.errors import ChecksumMismatchError, ConfigError, ManifestValidationError
from aistack.core.modules.models import ModuleManifest
from aistack.core.modules.registry import Registry, compute_checksum, load_module_record, load_registry_from_dir
from aistack.core.modules.requirements import check_hardware_requirements
from aistack.core.hardware.normalize import normalize_profile
from aistack.core.modules.validator import manifest_problems, normalize_checksum, validate_manifest

from .helpers.builders import build_manifest, build_profile, make_record, write_manifest


def test_load_record_from_yaml(tmp_path):
    path = write_manifest(str(tmp_path), build_manifest("ollama", "0.3.1", deps=["cuda@>=12.0"], modes=["native", "container"]))
    rec = load_module_record(path)
    assert rec.name == "ollama"
    assert str(rec.version) == "0.3.1"
    assert rec.manifest.dependencies.modules == ["cuda@>=12.0"]
    with open(path, "rb") as f:
        assert rec.checksum == compute_checksum(f.read())


def test_yaml_float_version_is_accepted(tmp_path):
    p = tmp_path / "m.yaml"
    p.write_text(
        "name: py\ncategory: language\nversion: 3.11\ndescription: python\nruntime: {modes: [native]}\n",
        encoding="utf-8",
    )
    assert str(load_module_record(str(p)).version) == "3.11.0"


def test_yaml_float_version_keeps_trailing_zero(tmp_path):
    p = tmp_path / "m.yaml"
    p.write_text(
        "name: py\ncategory: language\nversion: 3.10\ndescription: python\nruntime: {modes: [native]}\n",
        encoding="utf-8",
    )
    rec = load_module_record(str(p))
    assert rec.manifest.version == "3.10"
    assert str(rec.version) == "3.10.0"
    assert rec.version > load_module_record(str(_write(tmp_path / "old.yaml", "3.9"))).version


def _write(path, version: str):
    path.write_text(
        f"name: py\ncategory: language\nversion: {version}\ndescription: python\nruntime: {{modes: [native]}}\n",
        encoding="utf-8",
    )
    return path


def test_validator_collects_every_problem():
    m = ModuleManifest.model_validate({"category": "gadget", "version": "one"})
    problems = manifest_problems(m)
    assert "name is required" in problems
    assert any("invalid category" in p for p in problems)
    assert any("version 'one' is invalid" in p for p in problems)
    assert "description is required" in problems
    assert "runtime.modes must include at least one entry" in problems
    with pytest.raises(ManifestValidationError) as ei:
        validate_manifest(m)
    assert ei.value.context["problems"] == problems


def test_invalid_dependency_is_reported():
    m = ModuleManifest.model_validate(build_manifest("a", deps=["b@~1"]))
    assert any("invalid module dependency" in p for p in manifest_problems(m))


def test_unknown_manifest_field_rejected(tmp_path):
    raw = build_manifest("a")
    raw["surprise"] = True
    path = write_manifest(str(tmp_path), raw)
    with pytest.raises(ManifestValidationError):
        load_module_record(path)


def test_checksum_prefix_is_normalized():
    digest = "a" * 64
    assert normalize_checksum(f"sha256:{digest}") == digest
    assert normalize_checksum(f" SHA256:{digest} ") == digest


def test_checksum_mismatch(tmp_path):
    path = write_manifest(str(tmp_path), build_manifest("a", checksum="sha256:" + "0" * 64))
    with pytest.raises(ChecksumMismatchError):
        load_module_record(path)


def test_registry_keeps_versions_descending():
    reg = Registry()
    for v in ("1.0.0", "2.1.0", "1.10.0"):
        reg.add(make_record("a", v))
    reg.add(make_record("b", "0.1.0"))
    assert [str(r.version) for r in reg.get("a")] == ["2.1.0", "1.10.0", "1.0.0"]
    assert reg.names() == ["a", "b"]
    assert len(reg) == 4
    assert "b" in reg and "c" not in reg
    assert reg.get("c") == []


def test_registry_get_returns_copy():
    reg = Registry()
    reg.add(make_record("a"))
    reg.get("a").clear()
    assert len(reg.get("a")) == 1


def test_load_registry_from_dir(tmp_path):
    root = str(tmp_path / "modules")
    write_manifest(root, build_manifest("a", "1.0.0"))
    write_manifest(root, build_manifest("a", "1.1.0"))
    write_manifest(root, build_manifest("b", "0.2.0"), filename="manifest.yml")
    with open(os.path.join(root, "README.md"), "w", encoding="utf-8") as f:
        f.write("not a manifest")
    reg = load_registry_from_dir(root)
    assert reg.names() == ["a", "b"]
    assert [str(r.version) for r in reg.get("a")] == ["1.1.0", "1.0.0"]


def test_load_registry_error_names_manifest(tmp_path):
    root = str(tmp_path / "modules")
    path = write_manifest(root, build_manifest("a", "1.0.0", category="gadget"))
    with pytest.raises(ManifestValidationError) as ei:
        load_registry_from_dir(root)
    assert path in str(ei.value)


def test_load_registry_missing_dir(tmp_path):
    with pytest.raises(ConfigError):
        load_registry_from_dir(str(tmp_path / "nope"))


def test_hardware_requirements():
    m = ModuleManifest.model_validate(
        build_manifest(
            "vllm",
            hardware={"cpu": {"cores_min": 8}, "memory": {"ram_min": "64GB"}, "gpu": {"vram_min": "24GB", "multi_gpu": True}},
        )
    )
    ok = normalize_profile(build_profile(gpu_vram_gb=[24, 24], ram_gb=64, cores=8))
    assert check_hardware_requirements(m, ok) == []

    weak = normalize_profile(build_profile(gpu_vram_gb=[16], ram_gb=32, cores=4))
    unmet = check_hardware_requirements(m, weak)
    assert len(unmet) == 4
    assert "multi-gpu required" in unmet
