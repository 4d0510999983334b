from __future__ import annotations

import logging

from worker.errors import DuplicateVariantError, SocialPublishError, TooManyVariantsError
from worker.models import CatalogItem, TranslatedItem
from worker.publish.shopify import ShopifyClient
from worker.publish.social import SOCIAL_REF_KEYS, MetaPublisher

logger = logging.getLogger(__name__)

METAFIELD_NAMESPACE = "custom"
AVAILABILITY_NOTICE_KEY = "availability_notice"


def has_social_refs(refs: dict[str, str] | None) -> bool:
    return any((refs or {}).get(key) for key in SOCIAL_REF_KEYS)


class Publisher:
    def __init__(self, storefront: ShopifyClient, social: MetaPublisher | None = None) -> None:
        self.storefront = storefront
        self.social = social

    async def publish(
        self,
        item: CatalogItem,
        translated: TranslatedItem,
        existing_refs: dict[str, str] | None = None,
    ) -> dict[str, str]:
        refs = await self._write_storefront(translated)

        if self.social is None or translated.degraded:
            return refs
        if has_social_refs(existing_refs):
            logger.debug("Item %s already cross-posted, skipping social publish", item.id)
            return refs
        if not item.image_url:
            logger.info("Item %s has no image, skipping social publish", item.id)
            return refs

        try:
            refs.update(await self.social.publish(translated, item.image_url))
        except SocialPublishError as exc:
            refs.update(exc.refs)
            logger.error("Social publish failed for item %s: %s (kept %s)", item.id, exc, sorted(exc.refs))
        except Exception as exc:
            # The storefront write stands even when the cross-post fails.
            logger.error("Social publish failed for item %s: %s", item.id, exc)
        return refs

    async def retract(self, refs: dict[str, str]) -> None:
        if self.social is None or not has_social_refs(refs):
            return
        removed = await self.social.retract(refs)
        logger.info("Retracted social posts %s", removed)

    async def mark_unavailable(self, item: CatalogItem) -> None:
        await self.storefront.set_metafields(
            item.id,
            [
                {
                    "namespace": METAFIELD_NAMESPACE,
                    "key": AVAILABILITY_NOTICE_KEY,
                    "type": "single_line_text_field",
                    "value": f"unavailable:{item.status.value}",
                }
            ],
        )
        logger.info("Marked item %s unavailable (status=%s)", item.id, item.status.value)

    async def _write_storefront(self, translated: TranslatedItem) -> dict[str, str]:
        try:
            try:
                return await self.storefront.update_item(translated)
            except TooManyVariantsError as exc:
                logger.warning("Item %s: %s; retrying through productSet", translated.item_id, exc)
                return await self.storefront.set_product(translated)
        except DuplicateVariantError as exc:
            logger.warning(
                "Item %s: storefront rejected variants (%s); writing content without options",
                translated.item_id,
                exc,
            )
            return await self.storefront.update_item(translated, include_variants=False)
