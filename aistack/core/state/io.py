from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from aistack.core.state.models import STATE_SCHEMA_VERSION


@dataclass(frozen=True)
class StatePaths:
    data_dir: str
    state_file: str = "state.json"

    @property
    def state_path(self) -> str:
        return os.path.join(self.data_dir, self.state_file)

    @property
    def tmp_path(self) -> str:
        return self.state_path + ".tmp"


def read_json(path: str) -> Tuple[bool, Dict[str, Any], Optional[str]]:
    """(ok, data, error); error is "missing", "not_object" or "corrupt_json:<detail>"."""
    if not os.path.exists(path):
        return False, {}, "missing"
    with open(path, "r", encoding="utf-8") as f:
        text = f.read()
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as e:
        return False, {}, f"corrupt_json:{e}"
    if not isinstance(obj, dict):
        return False, {}, "not_object"
    return True, obj, None


def atomic_write_json(path: str, obj: Dict[str, Any], *, tmp_path: Optional[str] = None) -> None:
    """Write to a sibling temp file, fsync, then rename over ``path``."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    tmp = tmp_path or (path + ".tmp")
    try:
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(obj, f, indent=2, ensure_ascii=False)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            try:
                os.remove(tmp)
            except OSError:
                pass


def migrate(data: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
    """Fill keys older files lack. Returns (data, changed)."""
    changed = False
    out = dict(data)
    if "schema_version" not in out:
        out["schema_version"] = STATE_SCHEMA_VERSION
        changed = True
    if out.get("modules") is None:
        out["modules"] = {}
        changed = True
    if out.get("history") is None:
        out["history"] = []
        changed = True
    return out, changed
