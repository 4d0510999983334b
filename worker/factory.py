from __future__ import annotations

from dataclasses import dataclass

from worker.cache import TranslationCache
from worker.classify import CategoryClassifier
from worker.config import WorkerSettings
from worker.generation import OpenAITextGenerator, TextGenerator
from worker.pipeline import ItemPipeline
from worker.publish import MetaPublisher, Publisher, ShopifyClient
from worker.reconciliation import ReconciliationCore
from worker.store import SqlStateStore, StateStore
from worker.transform import ContentTransformer, OptionTranslator


@dataclass
class Components:
    settings: WorkerSettings
    store: StateStore
    generator: TextGenerator
    storefront: ShopifyClient
    social: MetaPublisher | None
    core: ReconciliationCore

    async def aclose(self) -> None:
        await self.generator.aclose()
        await self.storefront.aclose()
        if self.social is not None:
            await self.social.aclose()
        self.store.close()


def build_components(
    settings: WorkerSettings,
    store: StateStore | None = None,
    generator: TextGenerator | None = None,
) -> Components:
    store = store or SqlStateStore(settings.database_url)
    store.open()
    generator = generator or OpenAITextGenerator(settings)
    storefront = ShopifyClient(settings)
    social = MetaPublisher(settings) if settings.social_enabled else None
    publisher = Publisher(storefront, social)

    pipeline = ItemPipeline(
        transformer=ContentTransformer(generator, max_title_length=settings.max_title_length),
        option_translator=OptionTranslator(generator, cache=TranslationCache(settings)),
        classifier=CategoryClassifier.from_file(
            settings.categories_path,
            generator=generator,
            min_confidence=settings.category_min_confidence,
        ),
        publisher=publisher,
        marker_tag=settings.processing_marker_tag,
        retry_marker_tag=settings.retry_marker_tag,
    )
    core = ReconciliationCore(
        store=store,
        pipeline=pipeline,
        publisher=publisher,
        marker_tag=settings.processing_marker_tag,
        coalesce_window_seconds=settings.coalesce_window_seconds,
        sweep_item_delay_seconds=settings.sweep_item_delay_seconds,
        reprocess_tagged_on_change=settings.reprocess_tagged_on_change,
    )
    return Components(
        settings=settings,
        store=store,
        generator=generator,
        storefront=storefront,
        social=social,
        core=core,
    )
