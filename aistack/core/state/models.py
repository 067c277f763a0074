from __future__ import annotations

import datetime as dt
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field


STATE_SCHEMA_VERSION = 1
MAX_HISTORY_ENTRIES = 25


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class ModuleStateRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    version: str = ""
    # plain string: a hand-edited file may carry values outside ModuleState (see reconcile)
    state: str
    updated_at: dt.datetime = Field(default_factory=utcnow)


class StateSnapshot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    reason: str = ""
    created_at: dt.datetime = Field(default_factory=utcnow)
    modules: Dict[str, ModuleStateRecord] = Field(default_factory=dict)


class SystemState(BaseModel):
    model_config = ConfigDict(extra="forbid")

    schema_version: int = Field(default=STATE_SCHEMA_VERSION, ge=1)
    updated_at: dt.datetime = Field(default_factory=utcnow)
    modules: Dict[str, ModuleStateRecord] = Field(default_factory=dict)
    history: List[StateSnapshot] = Field(default_factory=list)


class StateCorrection(BaseModel):
    model_config = ConfigDict(extra="forbid")

    module_name: str
    previous: str
    corrected: str
