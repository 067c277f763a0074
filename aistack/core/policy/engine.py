from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from aistack.core.errors import PolicyEvaluationError
from aistack.core.hardware.models import HardwareProfile, NormalizedHardwareProfile
from aistack.core.hardware.normalize import normalize_profile
from aistack.core.ops_log import OpsLogger
from aistack.core.policy.matcher import PolicyMatcher, UNLIMITED_MODEL_SIZE, model_size_limit
from aistack.core.policy.models import CapabilitySet, PolicyDefinition, PolicySet


class PolicyEngine:
    """
    Folds every policy whose hardware conditions hold into one CapabilitySet.
    Holds no mutable state after construction; safe to share between callers.
    """

    def __init__(
        self,
        *,
        policy_set: PolicySet,
        source: str = "",
        matcher: Optional[PolicyMatcher] = None,
        ops: Optional[OpsLogger] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.policy_set = policy_set
        self.source = str(source or "")
        self.matcher = matcher or PolicyMatcher()
        self.ops = ops
        self.logger = logger or logging.getLogger("aistack.policy")

    def status(self) -> Dict[str, Any]:
        return {"source": self.source, "policies": len(self.policy_set.policies)}

    def policies(self) -> list[dict]:
        return [p.model_dump() for p in self.policy_set.policies]

    def get_policy(self, name: str) -> Optional[dict]:
        for p in self.policy_set.policies:
            if p.name == name:
                return p.model_dump()
        return None

    def evaluate(self, profile: Optional[HardwareProfile]) -> CapabilitySet:
        if profile is None:
            raise PolicyEvaluationError("hardware profile is nil")
        return self.evaluate_normalized(normalize_profile(profile))

    def evaluate_normalized(self, profile: NormalizedHardwareProfile) -> CapabilitySet:
        if not self.policy_set.policies:
            raise PolicyEvaluationError("no matching policies: no policies loaded")

        matched: List[PolicyDefinition] = [p for p in self.policy_set.policies if self.matcher.matches(profile, p.conditions)]
        if not matched:
            self._emit(profile, None)
            raise PolicyEvaluationError("no matching policies for hardware profile", gpu_count=profile.gpu_count)

        max_model = UNLIMITED_MODEL_SIZE
        max_model_raw = "unlimited"
        runtimes: set[str] = set()
        features: set[str] = set()
        denied: set[str] = set()

        for policy in matched:
            if policy.allow.max_model_size:
                current = model_size_limit(policy.allow.max_model_size)
                # smaller budget wins; ties keep the first one seen
                if current < max_model:
                    max_model = current
                    max_model_raw = policy.allow.max_model_size
            runtimes.update(policy.allow.runtimes)
            features.update(policy.allow.features)
            denied.update(policy.deny)

        caps = CapabilitySet(
            matched_policies=sorted(p.name for p in matched),
            max_model_size=max_model_raw,
            runtimes=sorted(runtimes - denied),
            features=sorted(features - denied),
            denied=sorted(denied),
        )
        self._emit(profile, caps)
        return caps

    # ---- internals ----
    def _emit(self, profile: NormalizedHardwareProfile, caps: Optional[CapabilitySet]) -> None:
        if caps is None:
            self.logger.warning(f"No policy matched hardware profile (gpus={profile.gpu_count}, vram={profile.max_gpu_vram_bytes}, ram={profile.memory_total_bytes})")
        else:
            self.logger.info(f"Policies matched: {', '.join(caps.matched_policies)}")
        if self.ops is None:
            return
        self.ops.log(
            event="policy.evaluate",
            outcome="matched" if caps is not None else "no_match",
            details={
                "gpu_count": profile.gpu_count,
                "max_gpu_vram_bytes": profile.max_gpu_vram_bytes,
                "memory_total_bytes": profile.memory_total_bytes,
                "matched_policies": list(caps.matched_policies) if caps else [],
                "max_model_size": caps.max_model_size if caps else "",
            },
        )
