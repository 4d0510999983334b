from __future__ import annotations

import logging
from dataclasses import dataclass

from worker.classify import CategoryClassifier
from worker.models import CatalogItem, TranslatedItem, apply_translation, merge_tags
from worker.publish import Publisher
from worker.transform import ContentTransformer, OptionTranslator
from worker.transform.normalization import extract_delivery_days

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    translated: TranslatedItem
    external_refs: dict[str, str]
    published_state: CatalogItem


class ItemPipeline:
    def __init__(
        self,
        transformer: ContentTransformer,
        option_translator: OptionTranslator,
        classifier: CategoryClassifier,
        publisher: Publisher,
        marker_tag: str,
        retry_marker_tag: str,
    ) -> None:
        self.transformer = transformer
        self.option_translator = option_translator
        self.classifier = classifier
        self.publisher = publisher
        self.marker_tag = marker_tag
        self.retry_marker_tag = retry_marker_tag

    async def run(self, item: CatalogItem, existing_refs: dict[str, str] | None = None) -> PipelineResult:
        translated = await self.build(item)
        refs = await self.publisher.publish(item, translated, existing_refs)
        merged_refs = {**(existing_refs or {}), **refs}
        logger.info(
            "Item %s published as %r in %r (degraded=%s, dropped variants=%s)",
            item.id,
            translated.title,
            translated.category,
            translated.degraded,
            translated.dropped_variant_ids,
        )
        return PipelineResult(
            translated=translated,
            external_refs=merged_refs,
            published_state=apply_translation(item, translated),
        )

    async def build(self, item: CatalogItem) -> TranslatedItem:
        content = await self.transformer.transform(item.title, item.description)
        options = await self.option_translator.translate(item)
        classification = await self.classifier.classify(content.title, content.description)
        logger.debug(
            "Item %s classified as %r via %s (score=%s)",
            item.id,
            classification.category,
            classification.source,
            classification.score,
        )

        generated_tags: list[str] = []
        if not content.degraded:
            generated_tags = await self.transformer.generate_tags(content.title, content.description)

        marker = self.retry_marker_tag if content.degraded else self.marker_tag
        own_markers = {self.marker_tag.lower(), self.retry_marker_tag.lower()}
        source_tags = [tag for tag in item.tags if tag.strip().lower() not in own_markers]
        tags = merge_tags(source_tags, generated_tags, [classification.category], [marker])

        metafields = [
            {
                "namespace": "custom",
                "key": "collection_detected",
                "type": "single_line_text_field",
                "value": classification.category,
            }
        ]
        delivery = extract_delivery_days(item.description)
        if delivery:
            metafields.append(
                {
                    "namespace": "custom",
                    "key": "delivery_days",
                    "type": "single_line_text_field",
                    "value": f"{delivery[0]}-{delivery[1]}",
                }
            )

        return TranslatedItem(
            item_id=item.id,
            title=content.title,
            description=content.description,
            options=options.options,
            variants=options.variants,
            seo_title=content.seo_title,
            seo_description=content.seo_description,
            slug=content.slug,
            category=classification.category,
            product_type=classification.product_type,
            tags=tags,
            metafields=metafields,
            degraded=content.degraded,
            dropped_variant_ids=options.dropped_variant_ids,
        )
