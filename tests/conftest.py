from __future__ import annotations

import logging
import os

import pytest

from aistack.core.config.models import RuntimeConfig
from aistack.core.ops_log import OpsLogger

from .helpers.fakes import DummyLogger, FakeContainerRuntime


@pytest.fixture
def ops(tmp_path):
    return OpsLogger(path=os.path.join(str(tmp_path), "logs", "ops.jsonl"))


@pytest.fixture
def logger():
    return DummyLogger()


@pytest.fixture
def runtime_config(tmp_path):
    return RuntimeConfig(log_dir=str(tmp_path / "runtime"), stop_timeout_seconds=5.0)


@pytest.fixture
def fake_runtime():
    return FakeContainerRuntime()


@pytest.fixture
def clean_aistack_logger():
    lg = logging.getLogger("aistack")

    def _reset() -> None:
        for h in list(lg.handlers):
            lg.removeHandler(h)
            h.close()

    _reset()
    yield lg
    _reset()
