from __future__ import annotations

import logging
import os

from aistack.core.errors import (
    AIStackError,
    CircularDependencyError,
    ConfigError,
    ModuleAlreadyRunningError,
    RuntimeStartError,
    Severity,
    StopTimeoutError,
)
from aistack.core.logger import setup_logging
from aistack.core.ops_log import OpsLogger, redact


def test_ops_log_appends_jsonl_and_redacts(tmp_path):
    ops = OpsLogger(path=os.path.join(str(tmp_path), "ops", "ops.jsonl"))
    ops.log(event="state.update", outcome="ok", details={"module": "a", "api_key": "sk-123", "nested": {"token": "t"}})
    ops.log(trace_id="runtime", event="runtime.start", outcome="ok")
    rows = ops.read()
    assert [r["event"] for r in rows] == ["state.update", "runtime.start"]
    assert rows[0]["trace_id"] == "control"
    assert rows[0]["details"]["api_key"] == "***REDACTED***"
    assert rows[0]["details"]["nested"]["token"] == "***REDACTED***"
    assert rows[0]["details"]["module"] == "a"
    assert ops.read(limit=1)[0]["event"] == "runtime.start"


def test_ops_log_read_missing_file(tmp_path):
    assert OpsLogger(path=str(tmp_path / "none.jsonl")).read() == []


def test_redact_lists():
    assert redact([{"password": "x"}, 1]) == [{"password": "***REDACTED***"}, 1]


def test_error_taxonomy():
    e = CircularDependencyError("a")
    assert str(e) == "circular dependency detected at a"
    assert e.code == "circular_dependency"
    assert isinstance(e, AIStackError)

    running = ModuleAlreadyRunningError("svc")
    assert isinstance(running, RuntimeStartError)
    assert "already running" in str(running)

    timeout = StopTimeoutError("svc", 2.5)
    assert timeout.context == {"module": "svc", "timeout_seconds": 2.5}


def test_error_to_dict_redacts_context():
    d = ConfigError("bad config", token="secret", path="/etc/x").to_dict()
    assert d["code"] == "config_error"
    assert d["severity"] == Severity.CRITICAL.value
    assert d["recoverable"] is False
    assert d["context"] == {"token": "***REDACTED***", "path": "/etc/x"}


def test_setup_logging_writes_file(tmp_path, clean_aistack_logger):
    log_dir = str(tmp_path / "logs")
    logger = setup_logging(log_dir, "debug", console=False)
    logging.getLogger("aistack.state").info("state saved")
    for h in logger.handlers:
        h.flush()
    assert logger.level == logging.DEBUG
    assert os.path.exists(os.path.join(log_dir, "aistack.log"))
