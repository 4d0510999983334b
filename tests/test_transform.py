import asyncio
import json
import logging

from tests.conftest import FakeGenerator, make_item
from worker.errors import GenerationError
from worker.generation import PromptKind, parse_json_reply
from worker.models import ItemOption, ItemVariant
from worker.transform import ContentTransformer, OptionTranslator
from worker.transform.normalization import extract_delivery_days, slugify, strip_html, strip_markdown, truncate_text


def test_slugify_and_truncate():
    assert slugify("Wireless  Bluetooth Speaker -- 2024!") == "wireless-bluetooth-speaker-2024"
    assert slugify("سماعة") == ""
    assert len(slugify("word " * 40)) <= 70

    truncated = truncate_text("Portable waterproof bluetooth speaker with deep bass and long battery life", 40)
    assert len(truncated) <= 40
    assert truncated == "Portable waterproof bluetooth speaker"


def test_markup_cleanup():
    assert strip_html("<p>Deep <b>bass</b></p><ul><li>IPX7</li></ul>") == "Deep bass IPX7"
    assert strip_markdown("## **Speaker**") == "Speaker"
    assert parse_json_reply('```json\n{"seo_title": "x"}\n```') == {"seo_title": "x"}


def test_extract_delivery_days():
    assert extract_delivery_days("<p>Ships in 2-4 business days</p>") == (2, 4)
    assert extract_delivery_days("Arrives in 5 to 7 days") == (5, 7)
    assert extract_delivery_days("No delivery info") is None


def test_title_is_cut_to_max_length():
    generator = FakeGenerator({PromptKind.TITLE: "Portable " + "waterproof " * 10 + "speaker"})
    transformer = ContentTransformer(generator, max_title_length=60)

    result = asyncio.run(transformer.transform("Speaker", "<p>Deep bass</p>"))

    assert len(result.title) <= 60
    assert result.degraded is False
    assert result.slug == "speaker"


def test_generation_failure_keeps_source_content():
    generator = FakeGenerator(
        {
            PromptKind.TITLE: GenerationError("timeout"),
            PromptKind.DESCRIPTION: GenerationError("timeout"),
            PromptKind.SEO: GenerationError("timeout"),
        }
    )
    transformer = ContentTransformer(generator)
    source_title = "Wireless Bluetooth Speaker with an unusually long source title that is not shortened"

    result = asyncio.run(transformer.transform(source_title, "<p>Deep bass</p>"))

    assert result.degraded is True
    assert result.title == source_title
    assert result.description == "<p>Deep bass</p>"
    assert len(result.seo_title) <= 70
    assert result.seo_description == "Deep bass"


def test_malformed_seo_reply_falls_back_to_content():
    generator = FakeGenerator({PromptKind.SEO: "not json"})

    result = asyncio.run(ContentTransformer(generator).transform("Speaker", "<p>Deep bass</p>"))

    assert result.degraded is False
    assert result.seo_title == "Portable Bluetooth Speaker"
    assert result.seo_description == "Compact speaker with deep bass."


def test_generated_tags_are_filtered():
    tags = ["speaker", "New", "sale", "bass", "speaker", "2024 model", "x"] + [f"tag{chr(97 + i)}" for i in range(12)]
    generator = FakeGenerator({PromptKind.TAGS: json.dumps({"tags": tags})})

    result = asyncio.run(ContentTransformer(generator).generate_tags("Speaker", "Deep bass"))

    assert result[:2] == ["speaker", "bass"]
    assert "New" not in result
    assert "2024 model" not in result
    assert len(result) == 10


def test_tag_failure_returns_empty_list():
    generator = FakeGenerator({PromptKind.TAGS: GenerationError("down")})

    assert asyncio.run(ContentTransformer(generator).generate_tags("Speaker", "")) == []


def test_variants_sharing_a_value_share_its_translation():
    generator = FakeGenerator(labels={"Color": "اللون", "Size": "المقاس", "Red": "أحمر", "Blue": "أزرق"})
    item = make_item(
        options=[ItemOption(name="Color", values=["Red", "Blue"]), ItemOption(name="Size", values=["S", "M"])],
        variants=[
            ItemVariant(id="1", options=("Red", "S")),
            ItemVariant(id="2", options=("Blue", "S")),
            ItemVariant(id="3", options=("Red", "M")),
        ],
    )

    result = asyncio.run(OptionTranslator(generator).translate(item))

    assert [option.name for option in result.options] == ["اللون", "المقاس"]
    assert [variant.options for variant in result.variants] == [("أحمر", "S"), ("أزرق", "S"), ("أحمر", "M")]
    assert [variant.id for variant in result.variants] == ["1", "2", "3"]
    assert result.dropped_variant_ids == []
    # Size codes never reach the model.
    sent = [label for payload in generator.calls_for(PromptKind.OPTION_LABELS) for label in payload["labels"]]
    assert "S" not in sent
    assert "M" not in sent


def test_translation_collision_drops_later_variant(caplog):
    generator = FakeGenerator(labels={"Red": "أحمر", "Crimson": "أحمر"})
    item = make_item(
        options=[ItemOption(name="Color", values=["Red", "Crimson"])],
        variants=[ItemVariant(id="1", options=("Red",)), ItemVariant(id="2", options=("Crimson",))],
    )

    with caplog.at_level(logging.WARNING):
        result = asyncio.run(OptionTranslator(generator).translate(item))

    assert [variant.id for variant in result.variants] == ["1"]
    assert result.dropped_variant_ids == ["2"]
    assert result.options[0].values == ["أحمر"]
    assert "Dropping variant 2 of item 42" in caplog.text


def test_value_count_mismatch_keeps_original_values():
    def reply(payload):
        if payload["labels"] == ["Color"]:
            return json.dumps({"items": ["اللون"]})
        return json.dumps({"items": ["أحمر"]})

    generator = FakeGenerator({PromptKind.OPTION_LABELS: reply})
    item = make_item()

    result = asyncio.run(OptionTranslator(generator).translate(item))

    assert result.options[0].name == "اللون"
    assert result.options[0].values == ["Red", "Blue"]
    assert [variant.options for variant in result.variants] == [("Red",), ("Blue",)]


def test_item_without_options_passes_variants_through():
    generator = FakeGenerator()
    item = make_item(options=[], variants=[ItemVariant(id="9", options=("Default Title",))])

    result = asyncio.run(OptionTranslator(generator).translate(item))

    assert result.options == []
    assert [variant.id for variant in result.variants] == ["9"]
    assert generator.calls == []


def test_repeated_source_value_uses_one_translation():
    generator = FakeGenerator(labels={"Red": "أحمر", "Blue": "أزرق"})
    item = make_item(
        variants=[
            ItemVariant(id="1", options=("Red",)),
            ItemVariant(id="2", options=("Blue",)),
            ItemVariant(id="3", options=("Red",)),
        ],
    )

    result = asyncio.run(OptionTranslator(generator).translate(item))

    value_calls = [payload["labels"] for payload in generator.calls_for(PromptKind.OPTION_LABELS)][1:]
    assert value_calls == [["Red", "Blue"]]
    assert result.options[0].values == ["أحمر", "أزرق"]
    assert [variant.options for variant in result.variants] == [("أحمر",), ("أزرق",)]
    assert result.dropped_variant_ids == ["3"]
