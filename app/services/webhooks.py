from __future__ import annotations

import logging

from fastapi import BackgroundTasks

from app.schemas.webhooks import WebhookAck
from worker.models import CatalogItem, EventKind, EventSource
from worker.reconciliation import ReconciliationCore

logger = logging.getLogger(__name__)


def accept_event(
    core: ReconciliationCore,
    item: CatalogItem,
    kind: EventKind,
    background_tasks: BackgroundTasks,
) -> WebhookAck:
    # The outcome is only observable through logs and the state store.
    background_tasks.add_task(core.handle_event, item, kind, EventSource.WEBHOOK)
    logger.info("Accepted %s webhook for item %s", kind.value, item.id)
    return WebhookAck(status="accepted", item_id=item.id, event=kind.value)
