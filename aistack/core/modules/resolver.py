from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

from aistack.core.errors import (
    CircularDependencyError,
    ConfigError,
    ModuleNotFoundInRegistry,
    NoMatchingVersionError,
    VersionConflictError,
)
from aistack.core.modules.models import ModuleRecord
from aistack.core.modules.registry import Registry
from aistack.core.modules.version import VersionConstraint, parse_module_dependency


class NodeStatus(str, Enum):
    unvisited = "unvisited"
    in_progress = "in_progress"
    done = "done"


@dataclass
class InstallPlan:
    order: List[str] = field(default_factory=list)
    modules: Dict[str, ModuleRecord] = field(default_factory=dict)

    def versions(self) -> Dict[str, str]:
        return {name: str(self.modules[name].version) for name in self.order}


class Resolver:
    """Depth-first, dependency-first install ordering over a Registry."""

    def __init__(self, registry: Registry):
        if registry is None:
            raise ConfigError("registry is required")
        self.registry = registry

    def resolve_install_plan(self, targets: Iterable[str]) -> InstallPlan:
        plan = InstallPlan()
        status: Dict[str, NodeStatus] = {}
        for target in targets:
            if not target:
                continue
            name, constraint = parse_module_dependency(target)
            self._resolve(name, constraint, status, plan)
        return plan

    def _resolve(self, name: str, constraint: Optional[VersionConstraint], status: Dict[str, NodeStatus], plan: InstallPlan) -> None:
        # plan membership is checked before the in-progress mark
        existing = plan.modules.get(name)
        if existing is not None:
            if constraint is not None and not constraint.match(existing.version):
                raise VersionConflictError(name, str(existing.version), str(constraint))
            return
        if status.get(name, NodeStatus.unvisited) == NodeStatus.in_progress:
            raise CircularDependencyError(name)
        status[name] = NodeStatus.in_progress

        record = self._select_record(name, constraint)
        for dep in record.manifest.dependencies.modules:
            dep_name, dep_constraint = parse_module_dependency(dep)
            self._resolve(dep_name, dep_constraint, status, plan)

        plan.modules[name] = record
        plan.order.append(name)
        status[name] = NodeStatus.done

    def _select_record(self, name: str, constraint: Optional[VersionConstraint]) -> ModuleRecord:
        records = self.registry.get(name)
        if not records:
            raise ModuleNotFoundInRegistry(name)
        for record in records:
            if constraint is None or constraint.match(record.version):
                return record
        raise NoMatchingVersionError(name, str(constraint) if constraint else "")
