from __future__ import annotations

import logging
from collections import deque
from datetime import timezone
from pathlib import Path

from fastapi import BackgroundTasks

from app.core.errors import conflict, not_found
from app.schemas.admin import ProcessingRecordOut, ReprocessResponse, StatusOut, SweepStartedResponse, SyncRunOut
from worker.factory import Components
from worker.models import EventKind, EventSource
from worker.reconciliation import SweepAlreadyRunning
from worker.store import SyncRun

logger = logging.getLogger(__name__)


def start_sweep(components: Components, force: bool, background_tasks: BackgroundTasks) -> SweepStartedResponse:
    try:
        components.core.claim_sweep()
    except SweepAlreadyRunning:
        raise conflict("sweep_running", "A sweep is already running") from None
    background_tasks.add_task(run_sweep, components, force, True)
    return SweepStartedResponse(status="started", force=force)


async def run_sweep(components: Components, force: bool, claimed: bool = False) -> None:
    try:
        await components.core.sweep(components.storefront.iter_pages(), force=force, claimed=claimed)
    except SweepAlreadyRunning:
        logger.info("Sweep request ignored: another sweep is running")
    except Exception:
        logger.exception("Sweep could not start")


def start_reprocess(components: Components, item_id: str, background_tasks: BackgroundTasks) -> ReprocessResponse:
    background_tasks.add_task(reprocess_item, components, item_id)
    return ReprocessResponse(status="started", item_id=item_id)


async def reprocess_item(components: Components, item_id: str) -> None:
    try:
        item = await components.storefront.get_item(item_id)
    except Exception:
        logger.exception("Could not fetch item %s for reprocessing", item_id)
        return
    outcome = await components.core.handle_event(item, EventKind.UPDATED, source=EventSource.SWEEP, force=True)
    logger.info("Manual reprocess of item %s finished: %s", item_id, outcome.action.value)


def list_sync_runs(components: Components, limit: int = 50) -> list[SyncRunOut]:
    return [_run_out(run) for run in components.store.list_runs(limit=limit)]


def get_record(components: Components, item_id: str) -> ProcessingRecordOut:
    record = components.store.get(item_id)
    if record is None:
        raise not_found("Processing record not found", item_id=item_id)
    return ProcessingRecordOut(
        item_id=record.item_id,
        last_processed_at=record.last_processed_at.astimezone(timezone.utc).isoformat(),
        content_fingerprint=record.content_fingerprint,
        external_refs=record.external_refs,
    )


def get_status(components: Components) -> StatusOut:
    runs = components.store.list_runs(limit=1)
    return StatusOut(
        status="ok",
        records=components.store.count(),
        sweep_running=components.core.sweep_running,
        in_flight=sorted(components.core.in_flight),
        last_run=_run_out(runs[0]) if runs else None,
    )


def tail_log(log_file: Path | None, lines: int) -> str:
    if log_file is None or not log_file.exists():
        raise not_found("Log file not found")
    with log_file.open(encoding="utf-8", errors="replace") as handle:
        return "".join(deque(handle, maxlen=lines))


def _run_out(run: SyncRun) -> SyncRunOut:
    started = run.started_at.astimezone(timezone.utc).isoformat() if run.started_at else ""
    finished = run.finished_at.astimezone(timezone.utc).isoformat() if run.finished_at else None
    return SyncRunOut(
        id=run.id,
        status=run.status,
        force=run.force,
        items_total=run.items_total,
        items_processed=run.items_processed,
        items_skipped=run.items_skipped,
        items_failed=run.items_failed,
        error_summary=run.error_summary,
        started_at=started,
        finished_at=finished,
    )
