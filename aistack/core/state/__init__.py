"""
Persisted module lifecycle state (single JSON file per data directory).

Atomic temp-file + rename writes, bounded snapshot history, rollback and
reconciliation.
"""

from aistack.core.state.manager import StateManager
from aistack.core.state.models import ModuleStateRecord, StateCorrection, StateSnapshot, SystemState

__all__ = ["ModuleStateRecord", "StateCorrection", "StateManager", "StateSnapshot", "SystemState"]
