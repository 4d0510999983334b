from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.engine import Engine

from worker.db import Base, make_engine, make_session_factory
from worker.models import ProcessingRecord
from worker.store.base import StateStore, SyncRun
from worker.store.entities import ProcessingRecordRow, SyncRunRow

logger = logging.getLogger(__name__)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on the way back out.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SqlStateStore(StateStore):
    def __init__(self, database_url: str | None = None, engine: Engine | None = None) -> None:
        if engine is None and database_url is None:
            raise ValueError("SqlStateStore needs a database_url or an engine")
        self.engine = engine or make_engine(database_url)
        self.SessionLocal = make_session_factory(self.engine)

    def open(self) -> None:
        Base.metadata.create_all(bind=self.engine)
        logger.info("State store opened at %s", self.engine.url.render_as_string(hide_password=True))

    def close(self) -> None:
        self.engine.dispose()

    def get(self, item_id: str) -> ProcessingRecord | None:
        with self.SessionLocal() as db:
            row = db.get(ProcessingRecordRow, str(item_id))
            if row is None:
                return None
            return ProcessingRecord(
                item_id=row.item_id,
                last_processed_at=_as_utc(row.last_processed_at),
                content_fingerprint=row.content_fingerprint,
                external_refs=dict(row.external_refs or {}),
            )

    def upsert(self, record: ProcessingRecord) -> None:
        with self.SessionLocal() as db:
            row = db.get(ProcessingRecordRow, str(record.item_id))
            if row is None:
                row = ProcessingRecordRow(item_id=str(record.item_id))
                db.add(row)
            row.last_processed_at = record.last_processed_at
            row.content_fingerprint = record.content_fingerprint
            row.external_refs = dict(record.external_refs)
            db.commit()

    def delete(self, item_id: str) -> bool:
        with self.SessionLocal() as db:
            row = db.get(ProcessingRecordRow, str(item_id))
            if row is None:
                return False
            db.delete(row)
            db.commit()
            return True

    def count(self) -> int:
        with self.SessionLocal() as db:
            return int(db.execute(select(func.count()).select_from(ProcessingRecordRow)).scalar_one())

    def start_run(self, force: bool) -> SyncRun:
        with self.SessionLocal() as db:
            row = SyncRunRow(status="running", force=force)
            db.add(row)
            db.commit()
            return self._to_run(row)

    def finish_run(self, run: SyncRun) -> None:
        with self.SessionLocal() as db:
            row = db.get(SyncRunRow, run.id)
            if row is None:
                row = SyncRunRow(id=run.id, started_at=run.started_at)
                db.add(row)
            row.status = run.status
            row.force = run.force
            row.items_total = run.items_total
            row.items_processed = run.items_processed
            row.items_skipped = run.items_skipped
            row.items_failed = run.items_failed
            row.error_summary = run.error_summary
            row.finished_at = run.finished_at
            db.commit()

    def list_runs(self, limit: int = 50) -> list[SyncRun]:
        with self.SessionLocal() as db:
            rows = db.execute(select(SyncRunRow).order_by(SyncRunRow.started_at.desc()).limit(limit)).scalars()
            return [self._to_run(row) for row in rows]

    @staticmethod
    def _to_run(row: SyncRunRow) -> SyncRun:
        return SyncRun(
            id=row.id,
            status=row.status,
            force=bool(row.force),
            started_at=_as_utc(row.started_at),
            items_total=row.items_total or 0,
            items_processed=row.items_processed or 0,
            items_skipped=row.items_skipped or 0,
            items_failed=row.items_failed or 0,
            error_summary=row.error_summary,
            finished_at=_as_utc(row.finished_at),
        )
