from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum


class ItemStatus(str, Enum):
    ACTIVE = "active"
    DRAFT = "draft"
    ARCHIVED = "archived"


class EventKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class EventSource(str, Enum):
    WEBHOOK = "webhook"
    SWEEP = "sweep"


MAX_VARIANT_OPTIONS = 3


@dataclass
class ItemOption:
    name: str
    values: list[str] = field(default_factory=list)


@dataclass
class ItemVariant:
    id: str
    options: tuple[str | None, ...] = ()
    price: str | None = None
    sku: str | None = None
    extra: dict[str, object] = field(default_factory=dict)


@dataclass
class CatalogItem:
    id: str
    title: str
    description: str = ""
    options: list[ItemOption] = field(default_factory=list)
    variants: list[ItemVariant] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    status: ItemStatus = ItemStatus.ACTIVE
    image_url: str | None = None
    vendor: str | None = None
    product_type: str | None = None

    def has_tag(self, tag: str) -> bool:
        wanted = tag.strip().lower()
        return any(existing.strip().lower() == wanted for existing in self.tags)


@dataclass
class TranslatedItem:
    item_id: str
    title: str
    description: str
    options: list[ItemOption]
    variants: list[ItemVariant]
    seo_title: str
    seo_description: str
    slug: str
    category: str
    product_type: str
    tags: list[str]
    metafields: list[dict[str, str]] = field(default_factory=list)
    degraded: bool = False
    dropped_variant_ids: list[str] = field(default_factory=list)


@dataclass
class ProcessingRecord:
    item_id: str
    last_processed_at: datetime
    content_fingerprint: str | None = None
    external_refs: dict[str, str] = field(default_factory=dict)


def merge_tags(*groups: list[str]) -> list[str]:
    merged: list[str] = []
    seen: set[str] = set()
    for group in groups:
        for tag in group:
            clean = tag.strip()
            key = clean.lower()
            if not clean or key in seen:
                continue
            seen.add(key)
            merged.append(clean)
    return merged


def apply_translation(item: CatalogItem, translated: TranslatedItem) -> CatalogItem:
    """Return the item as the storefront holds it after ``translated`` is written."""
    return replace(
        item,
        title=translated.title,
        description=translated.description,
        options=[ItemOption(name=option.name, values=list(option.values)) for option in translated.options],
        variants=list(translated.variants),
        tags=list(translated.tags),
        product_type=translated.product_type,
    )


def content_fingerprint(item: CatalogItem) -> str:
    body = {
        "title": _squash(item.title),
        "description": _squash(item.description),
        "options": [[_squash(option.name), [_squash(value) for value in option.values]] for option in item.options],
        "variants": [[_squash(value or "") for value in variant.options] for variant in item.variants],
        "tags": sorted({tag.strip().lower() for tag in item.tags if tag.strip()}),
    }
    return hashlib.sha256(json.dumps(body, sort_keys=True, ensure_ascii=False).encode("utf-8")).hexdigest()


def _squash(value: str) -> str:
    return re.sub(r"\s+", " ", value or "").strip()
