from __future__ import annotations

import logging
import os
import threading
import time
from typing import Dict, List, Optional

from pydantic import ValidationError

from aistack.core.errors import ConfigError, PersistenceError, SnapshotNotFoundError
from aistack.core.modules.models import ModuleState
from aistack.core.modules.state_machine import is_valid_state
from aistack.core.ops_log import OpsLogger
from aistack.core.state.io import StatePaths, atomic_write_json, migrate, read_json
from aistack.core.state.models import (
    MAX_HISTORY_ENTRIES,
    ModuleStateRecord,
    StateCorrection,
    StateSnapshot,
    SystemState,
    utcnow,
)


class StateManager:
    """
    Persisted module lifecycle state with bounded snapshot history.

    One lock serializes every read and every read-modify-snapshot-write cycle.
    Transition legality is the caller's job (see modules.state_machine);
    ``reconcile`` repairs entries that slipped through.
    """

    def __init__(self, data_dir: str, *, ops: Optional[OpsLogger] = None, logger: Optional[logging.Logger] = None, max_history: int = MAX_HISTORY_ENTRIES):
        if not str(data_dir or "").strip():
            raise ConfigError("state data directory is empty")
        try:
            os.makedirs(data_dir, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"create state directory: {e}", data_dir=data_dir) from e

        self.paths = StatePaths(data_dir=str(data_dir))
        self.ops = ops
        self.logger = logger or logging.getLogger("aistack.state")
        self.max_history = int(max_history)

        self._lock = threading.Lock()
        self._state = SystemState()
        self._last_snapshot_ns = 0

        self.load()

    # ---- lifecycle ----
    def load(self) -> SystemState:
        with self._lock:
            try:
                ok, data, err = read_json(self.paths.state_path)
            except OSError as e:
                raise PersistenceError(f"read state file: {e}", path=self.paths.state_path) from e
            if not ok:
                if err == "missing":
                    self._state = SystemState()
                    self._save_locked()
                    self.logger.info(f"Created state file {self.paths.state_path}")
                    return self._state.model_copy(deep=True)
                raise PersistenceError(f"parse state file: {err}", path=self.paths.state_path)
            data, _changed = migrate(data)
            try:
                self._state = SystemState.model_validate(data)
            except ValidationError as e:
                raise PersistenceError(f"parse state file: {e}", path=self.paths.state_path) from e
            return self._state.model_copy(deep=True)

    def save(self) -> None:
        with self._lock:
            self._save_locked()

    # ---- queries ----
    def get_state(self) -> SystemState:
        with self._lock:
            return self._state.model_copy(deep=True)

    def get_module(self, name: str) -> Optional[ModuleStateRecord]:
        with self._lock:
            rec = self._state.modules.get(name)
            return rec.model_copy() if rec is not None else None

    def list_snapshots(self) -> List[StateSnapshot]:
        with self._lock:
            return [s.model_copy(deep=True) for s in self._state.history]

    # ---- mutations ----
    def update_module(self, name: str, version: str, state: "ModuleState | str") -> ModuleStateRecord:
        if not str(name or "").strip():
            raise ConfigError("module name is required")
        state_value = str(getattr(state, "value", state))
        with self._lock:
            previous = self._state.modules.get(name)
            self._push_snapshot_locked(f"update module {name}")
            rec = ModuleStateRecord(name=name, version=str(version or ""), state=state_value, updated_at=utcnow())
            self._state.modules[name] = rec
            self._save_locked()
        self._ops(
            "state.update",
            "ok",
            {"module": name, "version": rec.version, "from": previous.state if previous else None, "to": state_value},
        )
        return rec.model_copy()

    def rollback_to(self, snapshot_id: str) -> StateSnapshot:
        with self._lock:
            target = next((s for s in self._state.history if s.id == snapshot_id), None)
            if target is None:
                raise SnapshotNotFoundError(f"snapshot {snapshot_id} not found", snapshot_id=snapshot_id)
            target = target.model_copy(deep=True)
            self._push_snapshot_locked("pre-rollback")
            self._state.modules = {k: v.model_copy() for k, v in target.modules.items()}
            self._save_locked()
        self._ops("state.rollback", "ok", {"snapshot_id": target.id, "reason": target.reason})
        return target

    def rollback_last(self) -> StateSnapshot:
        with self._lock:
            if not self._state.history:
                raise SnapshotNotFoundError("no snapshots available")
            target = self._state.history[-1].model_copy(deep=True)
            self._push_snapshot_locked("pre-rollback")
            self._state.modules = {k: v.model_copy() for k, v in target.modules.items()}
            self._save_locked()
        self._ops("state.rollback", "ok", {"snapshot_id": target.id, "reason": target.reason})
        return target

    def reconcile(self) -> List[StateCorrection]:
        corrections: List[StateCorrection] = []
        with self._lock:
            now = utcnow()
            for name in sorted(self._state.modules):
                rec = self._state.modules[name]
                if not is_valid_state(rec.state):
                    corrections.append(StateCorrection(module_name=name, previous=rec.state, corrected=ModuleState.failed.value))
                    rec.state = ModuleState.failed.value
                    rec.updated_at = now
                if not rec.version:
                    rec.version = "unknown"
                    rec.updated_at = now
            if corrections:
                self._push_snapshot_locked("reconcile")
                self._save_locked()
        if corrections:
            self.logger.warning(f"Reconciled {len(corrections)} module state(s): {[c.module_name for c in corrections]}")
            self._ops("state.reconcile", "corrected", {"corrections": [c.model_dump() for c in corrections]})
        return corrections

    # ---- internals ----
    def _next_snapshot_id_locked(self) -> str:
        ns = max(time.time_ns(), self._last_snapshot_ns + 1)
        self._last_snapshot_ns = ns
        return str(ns)

    def _push_snapshot_locked(self, reason: str) -> None:
        snap = StateSnapshot(
            id=self._next_snapshot_id_locked(),
            reason=reason,
            created_at=utcnow(),
            modules={k: v.model_copy() for k, v in self._state.modules.items()},
        )
        self._state.history.append(snap)
        if len(self._state.history) > self.max_history:
            self._state.history = self._state.history[-self.max_history :]

    def _save_locked(self) -> None:
        self._state.updated_at = utcnow()
        obj = self._state.model_dump(mode="json")
        try:
            atomic_write_json(self.paths.state_path, obj, tmp_path=self.paths.tmp_path)
        except OSError as e:
            raise PersistenceError(f"write state file: {e}", path=self.paths.state_path) from e

    def _ops(self, event: str, outcome: str, details: Dict[str, object]) -> None:
        if self.ops is None:
            return
        self.ops.log(trace_id="state", event=event, outcome=outcome, details=dict(details))
