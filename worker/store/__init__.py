from worker.store.base import StateStore, SyncRun
from worker.store.memory import InMemoryStateStore
from worker.store.sql import SqlStateStore

__all__ = ["InMemoryStateStore", "SqlStateStore", "StateStore", "SyncRun"]
