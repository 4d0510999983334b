import asyncio
import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from worker.classify import CategoryClassifier
from worker.config import DEFAULT_CATEGORIES_PATH, WorkerSettings
from worker.errors import SocialPublishError, StorefrontError
from worker.factory import Components
from worker.generation import PromptKind, TextGenerator
from worker.models import CatalogItem, ItemOption, ItemVariant
from worker.pipeline import ItemPipeline
from worker.publish import Publisher
from worker.reconciliation import ReconciliationCore
from worker.store import InMemoryStateStore
from worker.transform import ContentTransformer, OptionTranslator

MARKER = "AI-Optimized"
RETRY_MARKER = "AI-Pending"


class FakeGenerator(TextGenerator):
    """Scripted replies per prompt kind. A reply may be a string, an exception or a callable."""

    def __init__(self, replies=None, labels=None) -> None:
        self.labels = labels or {}
        self.replies = {
            PromptKind.TITLE: "Portable Bluetooth Speaker",
            PromptKind.DESCRIPTION: "<p>Compact speaker with deep bass.</p>",
            PromptKind.SEO: json.dumps({"seo_title": "Bluetooth Speaker", "seo_description": "Compact speaker with deep bass."}),
            PromptKind.OPTION_LABELS: self._translate_labels,
            PromptKind.TAGS: json.dumps({"tags": ["speaker", "bluetooth", "audio"]}),
            PromptKind.CATEGORY: "",
        }
        self.replies.update(replies or {})
        self.calls = []

    def _translate_labels(self, payload):
        return json.dumps({"items": [self.labels.get(label, f"{label}-ar") for label in payload["labels"]]})

    async def generate(self, kind, payload):
        self.calls.append((kind, payload))
        reply = self.replies[kind]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(payload)
        return reply

    def calls_for(self, kind):
        return [payload for called, payload in self.calls if called == kind]


class FakeStorefront:
    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.updates = []
        self.product_sets = []
        self.metafield_writes = []
        self.items = {}
        self.pages = []
        self.fail_ids = set()
        self.active = 0
        self.max_active = 0

    async def update_item(self, translated, include_variants=True):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if translated.item_id in self.fail_ids:
                raise StorefrontError(f"PUT /products/{translated.item_id}.json returned 500")
            self.updates.append((translated, include_variants))
            return {"shopify_product_id": translated.item_id}
        finally:
            self.active -= 1

    async def set_product(self, translated):
        self.product_sets.append(translated)
        return {"shopify_product_id": translated.item_id}

    async def set_metafields(self, item_id, metafields):
        self.metafield_writes.append((item_id, metafields))

    async def get_item(self, item_id):
        return self.items[item_id]

    async def iter_pages(self):
        for page in self.pages:
            yield page

    async def aclose(self):
        return None


class FakeSocial:
    def __init__(self) -> None:
        self.published = []
        self.retracted = []
        self.fail_publish = False
        self.fail_retract = False

    async def publish(self, translated, image_url):
        if self.fail_publish:
            raise SocialPublishError("POST /media failed")
        self.published.append((translated.item_id, image_url))
        return {"ig_media_id": f"ig-{translated.item_id}"}

    async def retract(self, refs):
        if self.fail_retract:
            raise SocialPublishError("Retraction failed")
        self.retracted.append(dict(refs))
        return list(refs.values())

    async def aclose(self):
        return None


class FakeClock:
    def __init__(self) -> None:
        self.now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@dataclass
class Harness:
    store: InMemoryStateStore
    generator: FakeGenerator
    storefront: FakeStorefront
    social: FakeSocial | None
    publisher: Publisher
    pipeline: ItemPipeline
    core: ReconciliationCore
    clock: FakeClock


def build_harness(
    generator=None,
    storefront=None,
    social=None,
    coalesce_window_seconds=120.0,
    reprocess_tagged_on_change=False,
    sweep_item_delay_seconds=0.0,
):
    store = InMemoryStateStore()
    generator = generator or FakeGenerator()
    storefront = storefront or FakeStorefront()
    clock = FakeClock()
    publisher = Publisher(storefront, social)
    pipeline = ItemPipeline(
        transformer=ContentTransformer(generator),
        option_translator=OptionTranslator(generator),
        classifier=CategoryClassifier.from_file(DEFAULT_CATEGORIES_PATH, generator=generator),
        publisher=publisher,
        marker_tag=MARKER,
        retry_marker_tag=RETRY_MARKER,
    )
    core = ReconciliationCore(
        store=store,
        pipeline=pipeline,
        publisher=publisher,
        marker_tag=MARKER,
        coalesce_window_seconds=coalesce_window_seconds,
        reprocess_tagged_on_change=reprocess_tagged_on_change,
        sweep_item_delay_seconds=sweep_item_delay_seconds,
        clock=clock,
    )
    return Harness(store, generator, storefront, social, publisher, pipeline, core, clock)


def make_item(item_id="42", **overrides) -> CatalogItem:
    values = {
        "id": item_id,
        "title": "Wireless Bluetooth Speaker",
        "description": "<p>Portable speaker. Delivery 3-5 days.</p>",
        "options": [ItemOption(name="Color", values=["Red", "Blue"])],
        "variants": [ItemVariant(id="1", options=("Red",), price="10.00"), ItemVariant(id="2", options=("Blue",), price="10.00")],
        "tags": ["summer"],
        "image_url": "https://cdn.example.com/speaker.jpg",
    }
    values.update(overrides)
    return CatalogItem(**values)


@pytest.fixture()
def harness() -> Harness:
    return build_harness()


@pytest.fixture()
def social_harness() -> Harness:
    return build_harness(social=FakeSocial())


@pytest.fixture()
def worker_settings(tmp_path) -> WorkerSettings:
    return WorkerSettings(
        _env_file=None,
        database_url=f"sqlite:///{tmp_path / 'state.db'}",
        cache_enabled=False,
        shopify_store_url="https://example.myshopify.com",
        shopify_access_token="shpat_test",
        meta_graph_url="https://graph.example.com/v19.0",
        meta_access_token="meta-token",
        meta_ig_business_id="ig-business",
        meta_page_id="page-1",
        log_file=tmp_path / "actions.log",
    )


@pytest.fixture()
def components(harness: Harness, worker_settings: WorkerSettings) -> Components:
    return Components(
        settings=worker_settings,
        store=harness.store,
        generator=harness.generator,
        storefront=harness.storefront,
        social=None,
        core=harness.core,
    )


@pytest.fixture()
def client(components: Components, monkeypatch):
    from app.api.deps import get_components, get_core
    from app.main import app

    monkeypatch.setattr("app.main.configure_logging", lambda *args, **kwargs: None)

    async def _get_components() -> Components:
        return components

    async def _get_core() -> ReconciliationCore:
        return components.core

    app.dependency_overrides[get_components] = _get_components
    app.dependency_overrides[get_core] = _get_core
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    return {"X-Admin-Token": "dev-admin-token"}

