import asyncio

from tests.conftest import FakeGenerator
from worker.classify import Category, CategoryClassifier
from worker.config import DEFAULT_CATEGORIES_PATH
from worker.errors import GenerationError
from worker.generation import PromptKind

PHONES = Category(title="Phones", keywords=("phone", "case"), product_type="Phone")
AUDIO = Category(title="Audio Gear", keywords=("speaker", "bluetooth", "case"), product_type="Audio")
MISC = Category(title="Miscellaneous", keywords=(), product_type="Misc")


def _classifier(generator=None):
    return CategoryClassifier([PHONES, AUDIO], MISC, generator=generator, min_confidence=5)


def test_title_matches_outweigh_description():
    best, score = _classifier().score("Bluetooth Speaker", "<p>Works with any phone</p>")

    assert best == AUDIO
    assert score == 6


def test_keywords_match_whole_words_only():
    _, score = _classifier().score("Headphones", "Earphones and microphones")

    assert score == 0


def test_ties_keep_catalog_order():
    best, score = _classifier().score("Leather case", "")

    assert best == PHONES
    assert score == 3


def test_confident_match_skips_model():
    generator = FakeGenerator()

    result = asyncio.run(_classifier(generator).classify("Bluetooth Speaker", "Loud speaker"))

    assert result.category == "Audio Gear"
    assert result.product_type == "Audio"
    assert result.source == "keywords"
    assert generator.calls == []


def test_low_score_asks_model_and_fuzzy_matches_answer():
    generator = FakeGenerator({PromptKind.CATEGORY: "The Audio Gear"})

    result = asyncio.run(_classifier(generator).classify("Desk lamp", "Warm light"))

    assert result.category == "Audio Gear"
    assert result.source == "ai"
    assert generator.calls_for(PromptKind.CATEGORY)[0]["categories"] == ["Phones", "Audio Gear"]


def test_unknown_answer_or_failure_uses_catch_all():
    unknown = asyncio.run(_classifier(FakeGenerator({PromptKind.CATEGORY: "Furniture"})).classify("Desk lamp", ""))
    failed = asyncio.run(_classifier(FakeGenerator({PromptKind.CATEGORY: GenerationError("down")})).classify("Desk lamp", ""))
    offline = asyncio.run(_classifier().classify("Desk lamp", ""))

    for result in (unknown, failed, offline):
        assert result.category == "Miscellaneous"
        assert result.source == "fallback"


def test_bundled_catalog_loads():
    classifier = CategoryClassifier.from_file(DEFAULT_CATEGORIES_PATH)

    assert classifier.catch_all.title == "منتجات متنوعة"
    best, score = classifier.score("سماعة بلوتوث لاسلكية", "")
    assert best is not None
    assert best.product_type == "سماعات"
    assert score == 6
