from __future__ import annotations

from copy import deepcopy
from datetime import datetime, timezone
from uuid import uuid4

from worker.models import ProcessingRecord
from worker.store.base import StateStore, SyncRun


class InMemoryStateStore(StateStore):
    def __init__(self) -> None:
        self._records: dict[str, ProcessingRecord] = {}
        self._runs: list[SyncRun] = []
        self.writes = 0

    def get(self, item_id: str) -> ProcessingRecord | None:
        record = self._records.get(str(item_id))
        return deepcopy(record) if record else None

    def upsert(self, record: ProcessingRecord) -> None:
        self._records[str(record.item_id)] = deepcopy(record)
        self.writes += 1

    def delete(self, item_id: str) -> bool:
        return self._records.pop(str(item_id), None) is not None

    def count(self) -> int:
        return len(self._records)

    def start_run(self, force: bool) -> SyncRun:
        run = SyncRun(id=str(uuid4()), status="running", force=force, started_at=datetime.now(timezone.utc))
        self._runs.append(run)
        return run

    def finish_run(self, run: SyncRun) -> None:
        for index, existing in enumerate(self._runs):
            if existing.id == run.id:
                self._runs[index] = run
                return
        self._runs.append(run)

    def list_runs(self, limit: int = 50) -> list[SyncRun]:
        return sorted(self._runs, key=lambda run: run.started_at, reverse=True)[:limit]
