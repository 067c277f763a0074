from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from aistack.core.errors import ConfigError
from aistack.core.ops_log import OpsLogger
from aistack.core.policy.engine import PolicyEngine
from aistack.core.policy.models import PolicySet


def parse_policy_set(raw: Any, *, source: str = "<memory>") -> PolicySet:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"parse policy file: {source} must contain a mapping", path=source)
    try:
        return PolicySet.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"parse policy file: {e}", path=source) from e


def load_policy_engine(path: str | Path, *, ops: Optional[OpsLogger] = None, logger=None) -> PolicyEngine:
    p = Path(path)
    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"read policy file: {e}", path=str(p)) from e
    try:
        raw = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigError(f"parse policy file: {e}", path=str(p)) from e
    return PolicyEngine(policy_set=parse_policy_set(raw, source=str(p)), source=str(p), ops=ops, logger=logger)
