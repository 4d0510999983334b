"""Decides whether a catalog item needs processing and runs it at most once at a time.

Webhook deliveries and sweep passes both end up in ``handle_event``. The
storefront delivers webhooks at least once and echoes our own writes back as
``updated`` events, so the decision table below is what keeps the pipeline
from looping on itself:

1. no ProcessingRecord               -> process
2. forced (sweep only)               -> process
3. marker tag present, from webhook  -> skip
4. inside the coalesce window        -> skip
5. fingerprint unchanged             -> skip
6. otherwise                         -> process
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from worker.models import (
    CatalogItem,
    EventKind,
    EventSource,
    ItemStatus,
    ProcessingRecord,
    content_fingerprint,
)
from worker.pipeline import ItemPipeline
from worker.publish import Publisher
from worker.store import StateStore, SyncRun

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Action(str, Enum):
    PROCESSED = "processed"
    SKIPPED = "skipped"
    DROPPED = "dropped"
    FAILED = "failed"
    RETRACTED = "retracted"
    MARKED_UNAVAILABLE = "marked_unavailable"


@dataclass(frozen=True)
class Decision:
    process: bool
    reason: str


@dataclass(frozen=True)
class EventOutcome:
    item_id: str
    action: Action
    reason: str = ""


class SweepAlreadyRunning(RuntimeError):
    pass


class ReconciliationCore:
    def __init__(
        self,
        store: StateStore,
        pipeline: ItemPipeline,
        publisher: Publisher,
        marker_tag: str,
        coalesce_window_seconds: float,
        sweep_item_delay_seconds: float = 0.0,
        reprocess_tagged_on_change: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.pipeline = pipeline
        self.publisher = publisher
        self.marker_tag = marker_tag
        self.coalesce_window = timedelta(seconds=coalesce_window_seconds)
        self.sweep_item_delay_seconds = max(0.0, sweep_item_delay_seconds)
        self.reprocess_tagged_on_change = reprocess_tagged_on_change
        self.clock = clock
        self._in_flight: set[str] = set()
        self._deleted_in_flight: set[str] = set()
        self._notices: dict[str, datetime] = {}
        self._sweep_running = False

    @property
    def sweep_running(self) -> bool:
        return self._sweep_running

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    def should_process(
        self,
        item: CatalogItem,
        source: EventSource = EventSource.WEBHOOK,
        force: bool = False,
    ) -> Decision:
        record = self.store.get(item.id)
        if record is None:
            return Decision(True, "no_record")
        if force:
            return Decision(True, "forced")

        fingerprint_matches = record.content_fingerprint is not None and record.content_fingerprint == content_fingerprint(item)
        if source == EventSource.WEBHOOK and item.has_tag(self.marker_tag):
            if not self.reprocess_tagged_on_change or fingerprint_matches:
                return Decision(False, "marker_present")
        if self.clock() - record.last_processed_at < self.coalesce_window:
            return Decision(False, "coalesced")
        if fingerprint_matches:
            return Decision(False, "unchanged")
        return Decision(True, "stale")

    async def handle_event(
        self,
        item: CatalogItem,
        kind: EventKind,
        source: EventSource = EventSource.WEBHOOK,
        force: bool = False,
    ) -> EventOutcome:
        try:
            if kind == EventKind.DELETED:
                return await self._retract(item.id)
            if item.status != ItemStatus.ACTIVE:
                return await self._mark_unavailable(item)

            decision = self.should_process(item, source=source, force=force)
            if not decision.process:
                logger.debug("Skipping item %s from %s: %s", item.id, source.value, decision.reason)
                return EventOutcome(item.id, Action.SKIPPED, decision.reason)
            return await self._process(item, decision, source)
        except Exception:
            logger.exception("Handling %s event for item %s failed", kind.value, item.id)
            return EventOutcome(item.id, Action.FAILED, "error")

    def claim_sweep(self) -> None:
        """Reserve the sweep slot ahead of a deferred ``sweep(..., claimed=True)`` call."""
        if self._sweep_running:
            raise SweepAlreadyRunning("A sweep is already running")
        self._sweep_running = True

    async def sweep(
        self,
        pages: AsyncIterable[list[CatalogItem]] | Iterable[list[CatalogItem]],
        force: bool = False,
        claimed: bool = False,
    ) -> SyncRun:
        if not claimed:
            self.claim_sweep()
        try:
            run = self.store.start_run(force)
            logger.info("Sweep %s started (force=%s)", run.id, force)
            try:
                first = True
                async for page in _aiter(pages):
                    for item in page:
                        if not first and self.sweep_item_delay_seconds:
                            await asyncio.sleep(self.sweep_item_delay_seconds)
                        first = False
                        await self._sweep_item(run, item, force)
                run.status = "completed"
            except Exception as exc:
                # Pagination failures end this pass only; records already written stay valid.
                logger.exception("Sweep %s aborted", run.id)
                run.status = "failed"
                run.error_summary = str(exc)
            finally:
                run.finished_at = self.clock()
                self.store.finish_run(run)
            logger.info(
                "Sweep %s %s: total=%s processed=%s skipped=%s failed=%s",
                run.id,
                run.status,
                run.items_total,
                run.items_processed,
                run.items_skipped,
                run.items_failed,
            )
            return run
        finally:
            self._sweep_running = False

    async def _sweep_item(self, run: SyncRun, item: CatalogItem, force: bool) -> None:
        run.items_total += 1
        outcome = await self.handle_event(item, EventKind.UPDATED, source=EventSource.SWEEP, force=force)
        if outcome.action == Action.FAILED:
            run.items_failed += 1
        elif outcome.action in (Action.SKIPPED, Action.DROPPED):
            run.items_skipped += 1
        else:
            run.items_processed += 1

    async def _process(self, item: CatalogItem, decision: Decision, source: EventSource) -> EventOutcome:
        if item.id in self._in_flight:
            logger.info("Item %s already in flight, dropping duplicate %s trigger", item.id, source.value)
            return EventOutcome(item.id, Action.DROPPED, "in_flight")

        self._in_flight.add(item.id)
        try:
            logger.info("Processing item %s (%s, %s)", item.id, source.value, decision.reason)
            existing = self.store.get(item.id)
            try:
                result = await self.pipeline.run(item, existing.external_refs if existing else None)
            except Exception:
                logger.exception("Pipeline failed for item %s; record left unchanged", item.id)
                return EventOutcome(item.id, Action.FAILED, "pipeline_error")

            if item.id in self._deleted_in_flight:
                logger.warning("Item %s was deleted while processing; not recording it", item.id)
                known = existing.external_refs if existing else {}
                fresh = {key: value for key, value in result.external_refs.items() if known.get(key) != value}
                try:
                    await self.publisher.retract(fresh)
                except Exception as exc:
                    logger.error("Retraction for item %s deleted mid-run failed: %s", item.id, exc)
                return EventOutcome(item.id, Action.SKIPPED, "deleted")

            fingerprint = None if result.translated.degraded else content_fingerprint(result.published_state)
            self.store.upsert(
                ProcessingRecord(
                    item_id=item.id,
                    last_processed_at=self.clock(),
                    content_fingerprint=fingerprint,
                    external_refs=result.external_refs,
                )
            )
            return EventOutcome(item.id, Action.PROCESSED, decision.reason)
        finally:
            self._in_flight.discard(item.id)
            self._deleted_in_flight.discard(item.id)

    async def _retract(self, item_id: str) -> EventOutcome:
        if item_id in self._in_flight:
            self._deleted_in_flight.add(item_id)
        self._notices.pop(item_id, None)

        record = self.store.get(item_id)
        if record is None:
            logger.info("Delete for item %s with no processing record", item_id)
            return EventOutcome(item_id, Action.SKIPPED, "no_record")

        try:
            await self.publisher.retract(record.external_refs)
        except Exception as exc:
            logger.error("Retraction for deleted item %s failed: %s", item_id, exc)
        finally:
            self.store.delete(item_id)
        logger.info("Item %s deleted upstream; record removed", item_id)
        return EventOutcome(item_id, Action.RETRACTED)

    async def _mark_unavailable(self, item: CatalogItem) -> EventOutcome:
        now = self.clock()
        last_notice = self._notices.get(item.id)
        if last_notice is not None and now - last_notice < self.coalesce_window:
            return EventOutcome(item.id, Action.SKIPPED, "coalesced")
        if item.id in self._in_flight:
            return EventOutcome(item.id, Action.DROPPED, "in_flight")

        self._in_flight.add(item.id)
        try:
            await self.publisher.mark_unavailable(item)
            self._notices[item.id] = now
        finally:
            self._in_flight.discard(item.id)
        return EventOutcome(item.id, Action.MARKED_UNAVAILABLE, item.status.value)


async def _aiter(pages: AsyncIterable[list[CatalogItem]] | Iterable[list[CatalogItem]]):
    if isinstance(pages, AsyncIterable):
        async for page in pages:
            yield page
    else:
        for page in pages:
            yield page
