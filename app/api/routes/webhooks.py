from fastapi import APIRouter, BackgroundTasks, Depends

from app.api.deps import get_core, verify_shopify_webhook
from app.schemas.webhooks import WebhookAck
from app.services.webhooks import accept_event
from worker.models import CatalogItem, EventKind
from worker.payloads import DeletedProductPayload, ShopifyProductPayload
from worker.reconciliation import ReconciliationCore

router = APIRouter(prefix="/webhooks/products", tags=["webhooks"], dependencies=[Depends(verify_shopify_webhook)])


@router.post("/create", response_model=WebhookAck)
def product_created(
    payload: ShopifyProductPayload,
    background_tasks: BackgroundTasks,
    core: ReconciliationCore = Depends(get_core),
) -> WebhookAck:
    return accept_event(core, payload.to_item(), EventKind.CREATED, background_tasks)


@router.post("/update", response_model=WebhookAck)
def product_updated(
    payload: ShopifyProductPayload,
    background_tasks: BackgroundTasks,
    core: ReconciliationCore = Depends(get_core),
) -> WebhookAck:
    return accept_event(core, payload.to_item(), EventKind.UPDATED, background_tasks)


@router.post("/delete", response_model=WebhookAck)
def product_deleted(
    payload: DeletedProductPayload,
    background_tasks: BackgroundTasks,
    core: ReconciliationCore = Depends(get_core),
) -> WebhookAck:
    return accept_event(core, CatalogItem(id=str(payload.id), title=""), EventKind.DELETED, background_tasks)
