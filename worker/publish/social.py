from __future__ import annotations

import logging
from typing import Any

import httpx

from worker.config import WorkerSettings
from worker.errors import SocialPublishError
from worker.models import TranslatedItem
from worker.transform.normalization import strip_html

logger = logging.getLogger(__name__)

INSTAGRAM_REF = "ig_media_id"
FACEBOOK_REF = "fb_post_id"
SOCIAL_REF_KEYS = (INSTAGRAM_REF, FACEBOOK_REF)
CAPTION_MAX_LENGTH = 2000


class MetaPublisher:
    """Cross-posts items to Instagram (and optionally a Facebook page) via the Graph API."""

    def __init__(self, settings: WorkerSettings, client: httpx.AsyncClient | None = None) -> None:
        self.graph_url = settings.meta_graph_url.rstrip("/")
        self.access_token = settings.meta_access_token
        self.ig_business_id = settings.meta_ig_business_id
        self.page_id = settings.meta_page_id
        self.sync_to_facebook = settings.sync_to_facebook
        self.client = client or httpx.AsyncClient(timeout=settings.meta_timeout_seconds)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def publish(self, translated: TranslatedItem, image_url: str) -> dict[str, str]:
        caption = self.caption(translated)
        refs: dict[str, str] = {}

        container = await self._post(
            f"/{self.ig_business_id}/media",
            {"image_url": image_url, "caption": caption},
        )
        published = await self._post(
            f"/{self.ig_business_id}/media_publish",
            {"creation_id": container["id"]},
        )
        refs[INSTAGRAM_REF] = str(published.get("id") or container["id"])
        logger.info("Published item %s to Instagram as %s", translated.item_id, refs[INSTAGRAM_REF])

        if self.sync_to_facebook and self.page_id:
            try:
                post = await self._post(f"/{self.page_id}/photos", {"url": image_url, "caption": caption})
            except SocialPublishError as exc:
                raise SocialPublishError(f"Facebook post failed after Instagram post {refs[INSTAGRAM_REF]}: {exc}", refs=refs) from exc
            refs[FACEBOOK_REF] = str(post.get("post_id") or post["id"])
            logger.info("Published item %s to Facebook as %s", translated.item_id, refs[FACEBOOK_REF])

        return refs

    async def retract(self, refs: dict[str, str]) -> list[str]:
        removed: list[str] = []
        failures: list[str] = []
        for key in SOCIAL_REF_KEYS:
            post_id = refs.get(key)
            if not post_id:
                continue
            try:
                response = await self.client.delete(f"{self.graph_url}/{post_id}", params={"access_token": self.access_token})
                response.raise_for_status()
            except httpx.HTTPError as exc:
                failures.append(f"{key}={post_id}: {exc}")
                continue
            removed.append(post_id)
        if failures:
            raise SocialPublishError("Retraction failed for " + "; ".join(failures))
        return removed

    @staticmethod
    def caption(translated: TranslatedItem) -> str:
        body = strip_html(translated.description)
        return f"{translated.title}\n\n{body}"[:CAPTION_MAX_LENGTH]

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self.client.post(
                f"{self.graph_url}{path}",
                data={**payload, "access_token": self.access_token},
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise SocialPublishError(f"POST {path} failed: {exc}") from exc
        body = response.json()
        if "id" not in body:
            raise SocialPublishError(f"POST {path} returned no id: {body}")
        return body
