"""Instruction templates for the generative text service.

Each prompt kind has a fixed system instruction and receives its structured
input as JSON. Kinds marked ``json_reply`` must answer with a JSON object so
the caller can validate field counts instead of guessing from free text.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum


class PromptKind(str, Enum):
    TITLE = "title"
    DESCRIPTION = "description"
    SEO = "seo"
    OPTION_LABELS = "option_labels"
    TAGS = "tags"
    CATEGORY = "category"


@dataclass(frozen=True)
class PromptTemplate:
    system: str
    json_reply: bool
    temperature: float
    max_tokens: int


TEMPLATES: dict[PromptKind, PromptTemplate] = {
    PromptKind.TITLE: PromptTemplate(
        system=(
            "You are a product copywriter writing in {language}. Rewrite the product title so it clearly and "
            "accurately names the real product (phone, headphones, fridge, camera...). No marketing phrases, "
            "no quotes, at most {max_length} characters. Reply with the title only."
        ),
        json_reply=False,
        temperature=0.3,
        max_tokens=150,
    ),
    PromptKind.DESCRIPTION: PromptTemplate(
        system=(
            "You are an e-commerce marketing writer. Translate and rewrite the product description into clear, "
            "professional {language} of at most 250 words. Use simple HTML paragraphs and lists only, "
            "no markdown symbols. Reply with the HTML only."
        ),
        json_reply=False,
        temperature=0.7,
        max_tokens=800,
    ),
    PromptKind.SEO: PromptTemplate(
        system=(
            "You write search metadata in {language}. Return a JSON object with exactly two string keys: "
            '"seo_title" (at most 70 characters) and "seo_description" (at most 160 characters). '
            "No retail terms such as price, sale or buy."
        ),
        json_reply=True,
        temperature=0.4,
        max_tokens=300,
    ),
    PromptKind.OPTION_LABELS: PromptTemplate(
        system=(
            "Translate each product option label into {language}. Return a JSON object "
            '{{"items": [...]}} where "items" has exactly one translated string per input label, in the same '
            "order. Keep sizes, model codes and numbers unchanged. No explanations."
        ),
        json_reply=True,
        temperature=0.0,
        max_tokens=600,
    ),
    PromptKind.TAGS: PromptTemplate(
        system=(
            "You are an e-commerce SEO specialist. Extract precise search keywords in {language} that describe "
            "the product itself: type, category, use, features, technology, materials. Exclude generic words "
            "(new, great, original, for sale), store names, cities, symbols and numbers. Return a JSON object "
            '{{"tags": [...]}} with at most 10 short keywords.'
        ),
        json_reply=True,
        temperature=0.3,
        max_tokens=300,
    ),
    PromptKind.CATEGORY: PromptTemplate(
        system=(
            "You are a product classification assistant. Choose exactly one category for the product from the "
            "provided list. Reply with the category name only, copied exactly from the list."
        ),
        json_reply=False,
        temperature=0.0,
        max_tokens=40,
    ),
}


def build_messages(kind: PromptKind, payload: dict[str, object], language: str, max_length: int = 70) -> list[dict[str, str]]:
    template = TEMPLATES[kind]
    system = template.system.format(language=language, max_length=max_length)
    user = "Input:\n" + json.dumps(payload, ensure_ascii=False, indent=2)
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]
