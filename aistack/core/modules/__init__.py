"""
Module manifests, versioned registry, dependency resolution and the lifecycle
transition table.
"""

from aistack.core.modules.models import Category, ModuleManifest, ModuleRecord, ModuleState
from aistack.core.modules.registry import Registry, compute_checksum, load_module_record, load_registry_from_dir
from aistack.core.modules.requirements import check_hardware_requirements
from aistack.core.modules.resolver import InstallPlan, NodeStatus, Resolver
from aistack.core.modules.state_machine import ALLOWED_TRANSITIONS, can_transition, is_valid_state, validate_transition
from aistack.core.modules.validator import manifest_problems, validate_manifest
from aistack.core.modules.version import Version, VersionConstraint, parse_constraint, parse_module_dependency, parse_version

__all__ = [
    "ALLOWED_TRANSITIONS",
    "Category",
    "InstallPlan",
    "ModuleManifest",
    "ModuleRecord",
    "ModuleState",
    "NodeStatus",
    "Registry",
    "Resolver",
    "Version",
    "VersionConstraint",
    "can_transition",
    "check_hardware_requirements",
    "compute_checksum",
    "is_valid_state",
    "load_module_record",
    "load_registry_from_dir",
    "manifest_problems",
    "parse_constraint",
    "parse_module_dependency",
    "parse_version",
    "validate_manifest",
    "validate_transition",
]
