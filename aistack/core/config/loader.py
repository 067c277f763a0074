"""Configuration loading.

Precedence (last wins): built-in defaults -> YAML file -> ENV (AISTACK__*).
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import ValidationError

from aistack.core.config.models import AppConfig
from aistack.core.errors import ConfigError

ENV_PREFIX = "AISTACK__"


def _load_yaml_if_exists(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"parse config file {path}: {e}", path=str(path)) from e
    except OSError as e:
        raise ConfigError(f"read config file {path}: {e}", path=str(path)) from e
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping", path=str(path))
    return data


def apply_env_overrides(cfg: Dict[str, Any], env: Mapping[str, str]) -> Dict[str, Any]:
    prefix_len = len(ENV_PREFIX)
    for env_key, value in env.items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        path_parts = [p for p in env_key[prefix_len:].lower().split("__") if p]
        if not path_parts:
            continue
        target = cfg
        for part in path_parts[:-1]:
            if part not in target or not isinstance(target[part], dict):
                target[part] = {}
            target = target[part]
        # raw strings; pydantic coerces "true" / "10" / "1.5" into the field types
        target[path_parts[-1]] = value
    return cfg


def load_config(path: Optional[str | Path] = None, env: Optional[Mapping[str, str]] = None) -> AppConfig:
    raw: Dict[str, Any] = {}
    if path:
        raw = _load_yaml_if_exists(Path(path))
    raw = apply_env_overrides(raw, os.environ if env is None else env)
    try:
        return AppConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}", path=str(path or "")) from e
