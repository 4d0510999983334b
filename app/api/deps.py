import base64
import hashlib
import hmac

from fastapi import Header, Request

from app.core.config import get_settings
from app.core.errors import unauthorized
from worker.config import get_settings as get_worker_settings
from worker.factory import Components, build_components
from worker.reconciliation import ReconciliationCore


def require_admin_token(x_admin_token: str | None = Header(default=None)) -> None:
    settings = get_settings()
    if x_admin_token != settings.admin_token:
        raise unauthorized("unauthorized", "Invalid admin token")


async def verify_shopify_webhook(request: Request, x_shopify_hmac_sha256: str | None = Header(default=None)) -> None:
    secret = get_settings().shopify_webhook_secret
    if not secret:
        return
    body = await request.body()
    digest = base64.b64encode(hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()).decode("ascii")
    if not x_shopify_hmac_sha256 or not hmac.compare_digest(digest, x_shopify_hmac_sha256):
        raise unauthorized("invalid_signature", "Webhook signature mismatch")


async def get_components(request: Request) -> Components:
    components = getattr(request.app.state, "components", None)
    if components is None:
        components = build_components(get_worker_settings())
        request.app.state.components = components
    return components


async def get_core(request: Request) -> ReconciliationCore:
    components = await get_components(request)
    return components.core
