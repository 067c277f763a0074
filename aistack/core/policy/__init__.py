from aistack.core.policy.engine import PolicyEngine
from aistack.core.policy.loader import load_policy_engine, parse_policy_set
from aistack.core.policy.matcher import PolicyMatcher, model_size_limit, parse_bytes
from aistack.core.policy.models import CapabilitySet, PolicyAllow, PolicyConditions, PolicyDefinition, PolicySet

__all__ = [
    "CapabilitySet",
    "PolicyAllow",
    "PolicyConditions",
    "PolicyDefinition",
    "PolicyEngine",
    "PolicyMatcher",
    "PolicySet",
    "load_policy_engine",
    "model_size_limit",
    "parse_bytes",
    "parse_policy_set",
]
