from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from worker.models import ProcessingRecord


@dataclass
class SyncRun:
    id: str
    status: str
    force: bool
    started_at: datetime
    items_total: int = 0
    items_processed: int = 0
    items_skipped: int = 0
    items_failed: int = 0
    error_summary: str | None = None
    finished_at: datetime | None = None


class StateStore(ABC):
    """Durable item id -> ProcessingRecord mapping plus sweep run bookkeeping.

    Opened once at process start and closed at shutdown. Individual calls are
    atomic per item id; callers serialise work on one id themselves.
    """

    def open(self) -> None:
        return None

    def close(self) -> None:
        return None

    @abstractmethod
    def get(self, item_id: str) -> ProcessingRecord | None:
        raise NotImplementedError

    @abstractmethod
    def upsert(self, record: ProcessingRecord) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, item_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def count(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def start_run(self, force: bool) -> SyncRun:
        raise NotImplementedError

    @abstractmethod
    def finish_run(self, run: SyncRun) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_runs(self, limit: int = 50) -> list[SyncRun]:
        raise NotImplementedError
