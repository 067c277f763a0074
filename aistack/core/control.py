from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from aistack.core.config.models import AppConfig
from aistack.core.errors import ConfigError
from aistack.core.hardware.detector import HardwareDetector, NativeDetector
from aistack.core.hardware.models import NormalizedHardwareProfile
from aistack.core.hardware.normalize import normalize_profile
from aistack.core.modules.models import ModuleRecord, ModuleState
from aistack.core.modules.registry import Registry, load_registry_from_dir
from aistack.core.modules.requirements import check_hardware_requirements
from aistack.core.modules.resolver import InstallPlan, Resolver
from aistack.core.modules.state_machine import can_transition, validate_transition
from aistack.core.ops_log import OpsLogger
from aistack.core.policy.engine import PolicyEngine
from aistack.core.policy.loader import load_policy_engine
from aistack.core.policy.models import CapabilitySet
from aistack.core.runtime.container import resolve_container_runtime
from aistack.core.runtime.models import ExecutionMode, ModuleSpec, Status
from aistack.core.runtime.selector import select_execution_mode
from aistack.core.runtime.supervisor import ContainerResolver, RuntimeSupervisor
from aistack.core.state.manager import StateManager


EXECUTION_MODES = frozenset(m.value for m in ExecutionMode)


class ControlLayer:
    """
    Owns every control-plane component for one data directory.

    Nothing here is a process-wide singleton: ``start()`` builds the detector,
    policy engine, state manager, registry, resolver and supervisor in that
    order, and ``stop()`` shuts the supervisor down.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        detector: Optional[HardwareDetector] = None,
        registry: Optional[Registry] = None,
        ops: Optional[OpsLogger] = None,
        logger: Optional[logging.Logger] = None,
        container_resolver: ContainerResolver = resolve_container_runtime,
    ):
        self.config = config
        self.ops = ops
        self.logger = logger or logging.getLogger("aistack.control")
        self._container_resolver = container_resolver

        self.detector: Optional[HardwareDetector] = detector
        self.registry: Optional[Registry] = registry
        self.policy_engine: Optional[PolicyEngine] = None
        self.state: Optional[StateManager] = None
        self.resolver: Optional[Resolver] = None
        self.supervisor: Optional[RuntimeSupervisor] = None
        self._profile: Optional[NormalizedHardwareProfile] = None
        self._capabilities: Optional[CapabilitySet] = None

    # ---- lifecycle ----
    def start(self) -> None:
        self.logger.info("Starting control layer")
        if self.detector is None:
            self.detector = NativeDetector(enable_nvml=self.config.control.enable_nvml)

        self.policy_engine = load_policy_engine(self.config.control.policy_file, ops=self.ops, logger=self.logger)
        self.state = StateManager(self.config.control.data_dir, ops=self.ops, logger=self.logger)
        corrections = self.state.reconcile()
        if corrections:
            self.logger.warning(f"State reconciled on startup: {len(corrections)} correction(s)")

        if self.registry is None:
            modules_dir = self.config.control.modules_dir
            self.registry = load_registry_from_dir(modules_dir) if modules_dir else Registry()
        self.resolver = Resolver(self.registry)
        self.supervisor = RuntimeSupervisor(
            self.config.runtime,
            ops=self.ops,
            logger=self.logger,
            container_resolver=self._container_resolver,
        )

        self._profile = normalize_profile(self.detector.detect())
        self._capabilities = self.policy_engine.evaluate_normalized(self._profile)
        self.logger.info(
            f"Control layer started: policies={self._capabilities.matched_policies} "
            f"runtimes={self._capabilities.runtimes} modules={len(self.registry)}"
        )
        if self.ops is not None:
            self.ops.log(
                event="control.start",
                outcome="ok",
                details={"matched_policies": list(self._capabilities.matched_policies), "modules": len(self.registry)},
            )

    def stop(self) -> None:
        self.logger.info("Stopping control layer")
        if self.supervisor is not None:
            self.supervisor.shutdown(timeout=self.config.runtime.stop_timeout_seconds)
        if self.ops is not None:
            self.ops.log(event="control.stop", outcome="ok")

    # ---- accessors ----
    @property
    def profile(self) -> NormalizedHardwareProfile:
        if self._profile is None:
            raise ConfigError("control layer not started")
        return self._profile

    @property
    def capabilities(self) -> CapabilitySet:
        if self._capabilities is None:
            raise ConfigError("control layer not started")
        return self._capabilities.model_copy(deep=True)

    def _require_started(self) -> Tuple[StateManager, Resolver, RuntimeSupervisor]:
        if self.state is None or self.resolver is None or self.supervisor is None:
            raise ConfigError("control layer not started")
        return self.state, self.resolver, self.supervisor

    # ---- operations ----
    def plan_install(self, targets: Iterable[str]) -> InstallPlan:
        """Resolve ``targets`` and mark each planned module ``resolved`` where that transition is legal."""
        state, resolver, _ = self._require_started()
        plan = resolver.resolve_install_plan(targets)
        for name in plan.order:
            version = str(plan.modules[name].version)
            current = state.get_module(name)
            if current is None:
                state.update_module(name, version, ModuleState.resolved)
            elif current.state != ModuleState.resolved.value and can_transition(current.state, ModuleState.resolved):
                state.update_module(name, version, ModuleState.resolved)
        return plan

    def unmet_requirements(self, plan: InstallPlan) -> Dict[str, List[str]]:
        out: Dict[str, List[str]] = {}
        for name in plan.order:
            problems = check_hardware_requirements(plan.modules[name].manifest, self.profile)
            if problems:
                out[name] = problems
        return out

    def allowed_modes(self) -> Optional[List[str]]:
        """Execution modes named by the capability set's runtimes, or None when it names none."""
        modes = sorted(r for r in self.capabilities.runtimes if r in EXECUTION_MODES)
        return modes or None

    def start_module(self, record: ModuleRecord, spec: ModuleSpec) -> Status:
        state, _, supervisor = self._require_started()
        current = state.get_module(record.name)
        if current is not None:
            validate_transition(current.state, ModuleState.running)

        mode = select_execution_mode(record.manifest.runtime, self.allowed_modes(), spec.mode, self.config.runtime)
        status = supervisor.start(spec.model_copy(update={"mode": mode}))
        state.update_module(record.name, str(record.version), ModuleState.running)
        return status

    def stop_module(self, name: str) -> Status:
        state, _, supervisor = self._require_started()
        status = supervisor.stop(name)
        current = state.get_module(name)
        if current is not None and can_transition(current.state, ModuleState.stopped):
            state.update_module(name, current.version, ModuleState.stopped)
        return status
