from __future__ import annotations

import json
import os
import threading

import pytest

from aistack.core.errors import ConfigError, PersistenceError, SnapshotNotFoundError
from aistack.core.modules.models import ModuleState
from aistack.core.state.io import atomic_write_json, migrate, read_json
from aistack.core.state.manager import StateManager
from aistack.core.state.models import MAX_HISTORY_ENTRIES


def _state_file(tmp_path) -> str:
    return os.path.join(str(tmp_path), "state.json")


def test_creates_state_file(tmp_path):
    data_dir = str(tmp_path / "data")
    StateManager(data_dir)
    with open(os.path.join(data_dir, "state.json"), "r", encoding="utf-8") as f:
        text = f.read()
    obj = json.loads(text)
    assert obj["schema_version"] == 1
    assert obj["modules"] == {}
    assert obj["history"] == []
    # two-space indentation
    assert '\n  "schema_version"' in text


def test_empty_data_dir_rejected():
    with pytest.raises(ConfigError):
        StateManager("")


def test_update_persists_across_instances(tmp_path):
    sm = StateManager(str(tmp_path))
    rec = sm.update_module("ollama", "0.3.1", ModuleState.installed)
    assert rec.state == "installed"

    sm2 = StateManager(str(tmp_path))
    got = sm2.get_module("ollama")
    assert got is not None
    assert got.version == "0.3.1"
    assert got.state == "installed"
    assert sm2.list_snapshots()[0].reason == "update module ollama"


def test_update_requires_name(tmp_path):
    sm = StateManager(str(tmp_path))
    with pytest.raises(ConfigError):
        sm.update_module("", "1.0.0", ModuleState.installed)


def test_rollback_last_restores_previous_state(tmp_path):
    sm = StateManager(str(tmp_path))
    sm.update_module("x", "1.0.0", ModuleState.installed)
    sm.update_module("x", "1.0.0", ModuleState.running)
    assert sm.get_module("x").state == "running"

    snap = sm.rollback_last()
    assert snap.reason == "update module x"
    assert sm.get_module("x").state == "installed"
    assert sm.list_snapshots()[-1].reason == "pre-rollback"
    assert StateManager(str(tmp_path)).get_module("x").state == "installed"


def test_rollback_of_first_update_removes_module(tmp_path):
    sm = StateManager(str(tmp_path))
    sm.update_module("x", "1.0.0", ModuleState.running)
    sm.rollback_last()
    assert sm.get_module("x") is None


def test_rollback_to_specific_snapshot(tmp_path):
    sm = StateManager(str(tmp_path))
    sm.update_module("a", "1.0.0", ModuleState.installed)
    sm.update_module("b", "1.0.0", ModuleState.installed)
    sm.update_module("a", "1.0.0", ModuleState.running)
    target = sm.list_snapshots()[1]  # taken before "b" was added
    sm.rollback_to(target.id)
    state = sm.get_state()
    assert sorted(state.modules) == ["a"]
    assert state.modules["a"].state == "installed"


def test_rollback_errors(tmp_path):
    sm = StateManager(str(tmp_path))
    with pytest.raises(SnapshotNotFoundError):
        sm.rollback_last()
    sm.update_module("a", "1.0.0", ModuleState.installed)
    with pytest.raises(SnapshotNotFoundError):
        sm.rollback_to("does-not-exist")


def test_history_is_capped(tmp_path):
    sm = StateManager(str(tmp_path))
    for i in range(MAX_HISTORY_ENTRIES + 15):
        sm.update_module("m", f"1.0.{i}", ModuleState.installed)
    snaps = sm.list_snapshots()
    assert len(snaps) == MAX_HISTORY_ENTRIES
    # oldest dropped first: the surviving oldest snapshot saw version 1.0.14
    assert snaps[0].modules["m"].version == "1.0.14"


def test_snapshot_ids_are_unique_and_increasing(tmp_path):
    sm = StateManager(str(tmp_path))
    for _ in range(10):
        sm.update_module("m", "1.0.0", ModuleState.installed)
    ids = [int(s.id) for s in sm.list_snapshots()]
    assert ids == sorted(ids)
    assert len(set(ids)) == len(ids)


def _write_raw(tmp_path, modules):
    atomic_write_json(
        _state_file(tmp_path),
        {"schema_version": 1, "updated_at": "2024-01-01T00:00:00Z", "modules": modules, "history": []},
    )


def test_reconcile_forces_invalid_state_to_failed(tmp_path, ops):
    _write_raw(
        tmp_path,
        {
            "bad": {"name": "bad", "version": "1.0.0", "state": "exploded", "updated_at": "2024-01-01T00:00:00Z"},
            "good": {"name": "good", "version": "1.0.0", "state": "running", "updated_at": "2024-01-01T00:00:00Z"},
        },
    )
    sm = StateManager(str(tmp_path), ops=ops)
    corrections = sm.reconcile()
    assert len(corrections) == 1
    c = corrections[0]
    assert (c.module_name, c.previous, c.corrected) == ("bad", "exploded", "failed")
    assert sm.get_module("bad").state == "failed"
    assert sm.get_module("good").state == "running"
    assert sm.list_snapshots()[-1].reason == "reconcile"
    assert StateManager(str(tmp_path)).get_module("bad").state == "failed"
    assert [e["event"] for e in ops.read()] == ["state.reconcile"]


def test_reconcile_noop_returns_empty_list(tmp_path):
    sm = StateManager(str(tmp_path))
    sm.update_module("a", "1.0.0", ModuleState.installed)
    before = len(sm.list_snapshots())
    assert sm.reconcile() == []
    assert len(sm.list_snapshots()) == before


def test_reconcile_fills_missing_version(tmp_path):
    _write_raw(tmp_path, {"a": {"name": "a", "version": "", "state": "installed", "updated_at": "2024-01-01T00:00:00Z"}})
    sm = StateManager(str(tmp_path))
    assert sm.reconcile() == []
    assert sm.get_module("a").version == "unknown"


def test_corrupt_state_file_is_persistence_error(tmp_path):
    with open(_state_file(tmp_path), "w", encoding="utf-8") as f:
        f.write("{not json")
    with pytest.raises(PersistenceError):
        StateManager(str(tmp_path))


def test_state_file_with_wrong_shape_is_persistence_error(tmp_path):
    with open(_state_file(tmp_path), "w", encoding="utf-8") as f:
        f.write('{"modules": {"a": {"state": 3}}}')
    with pytest.raises(PersistenceError):
        StateManager(str(tmp_path))


def test_get_state_is_a_copy(tmp_path):
    sm = StateManager(str(tmp_path))
    sm.update_module("a", "1.0.0", ModuleState.installed)
    st = sm.get_state()
    st.modules["a"].state = "running"
    st.modules.clear()
    assert sm.get_module("a").state == "installed"


def test_concurrent_updates_are_serialized(tmp_path):
    sm = StateManager(str(tmp_path))

    def worker(i: int) -> None:
        for j in range(5):
            sm.update_module(f"m{i}", f"1.0.{j}", ModuleState.installed)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    state = StateManager(str(tmp_path)).get_state()
    assert sorted(state.modules) == ["m0", "m1", "m2", "m3"]
    assert all(r.version == "1.0.4" for r in state.modules.values())
    assert not os.path.exists(_state_file(tmp_path) + ".tmp")


def test_update_is_recorded_in_ops_log(tmp_path, ops):
    sm = StateManager(str(tmp_path), ops=ops)
    sm.update_module("a", "1.0.0", ModuleState.installed)
    sm.update_module("a", "1.0.0", ModuleState.running)
    sm.rollback_last()
    events = ops.read()
    assert [e["event"] for e in events] == ["state.update", "state.update", "state.rollback"]
    assert events[1]["details"]["from"] == "installed"
    assert events[1]["details"]["to"] == "running"


def test_io_helpers(tmp_path):
    path = os.path.join(str(tmp_path), "x.json")
    assert read_json(path) == (False, {}, "missing")
    atomic_write_json(path, {"a": 1})
    assert read_json(path) == (True, {"a": 1}, None)
    with open(path, "w", encoding="utf-8") as f:
        f.write("[1, 2]")
    assert read_json(path)[2] == "not_object"

    data, changed = migrate({})
    assert changed
    assert data == {"schema_version": 1, "modules": {}, "history": []}
    assert migrate(data) == (data, False)
