"""Persistence exports."""

from flowline.storage.base import (
    ContactStore,
    EngineStore,
    ExecutionRepository,
    FlowRepository,
)
from flowline.storage.sqlite_store import SQLiteFlowStore
from flowline.storage.transition_store import ExecutionTransitionStore

__all__ = [
    "ContactStore",
    "EngineStore",
    "ExecutionRepository",
    "ExecutionTransitionStore",
    "FlowRepository",
    "SQLiteFlowStore",
]
