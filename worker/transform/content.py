from __future__ import annotations

import logging
from dataclasses import dataclass

from worker.generation import PromptKind, TextGenerator, parse_json_reply, parse_string_list
from worker.transform.normalization import clean_text, single_line, slugify, strip_html, strip_markdown, truncate_text

logger = logging.getLogger(__name__)

SEO_TITLE_MAX_LENGTH = 70
SEO_DESCRIPTION_MAX_LENGTH = 160
MAX_GENERATED_TAGS = 10
BANNED_TAG_WORDS = {
    "new", "great", "excellent", "original", "available", "guaranteed", "sale", "discount", "price",
    "buy", "delivery", "free", "offer", "store", "shop", "product", "local", "general",
    "جميل", "رائع", "جديد", "ممتاز", "متوفر", "اصلي", "مضمون", "محلي", "عام", "متجر",
    "منتج", "خصم", "سعر", "شراء", "توصيل", "مجاني", "عرض",
}


@dataclass
class ContentResult:
    title: str
    description: str
    seo_title: str
    seo_description: str
    slug: str
    degraded: bool = False


class ContentTransformer:
    def __init__(self, generator: TextGenerator, max_title_length: int = 70) -> None:
        self.generator = generator
        self.max_title_length = max_title_length

    async def transform(self, source_title: str, source_description: str) -> ContentResult:
        degraded = False
        slug = slugify(source_title)

        try:
            title = await self._rewrite_title(source_title, source_description)
        except Exception as exc:
            logger.warning("Title generation failed, keeping source title %r: %s", source_title, exc)
            title = source_title
            degraded = True

        try:
            description = await self._rewrite_description(source_title, source_description)
        except Exception as exc:
            logger.warning("Description generation failed for %r, keeping source text: %s", source_title, exc)
            description = source_description
            degraded = True

        seo_title, seo_description = await self._seo_fields(title, description)
        return ContentResult(
            title=title,
            description=description,
            seo_title=seo_title,
            seo_description=seo_description,
            slug=slug,
            degraded=degraded,
        )

    async def generate_tags(self, title: str, description: str) -> list[str]:
        try:
            reply = await self.generator.generate(PromptKind.TAGS, {"text": clean_text(f"{title} {description}")})
            candidates = parse_string_list(reply, "tags")
        except Exception as exc:
            logger.warning("Tag generation failed for %r: %s", title, exc)
            return []

        tags: list[str] = []
        seen: set[str] = set()
        for candidate in candidates:
            tag = single_line(candidate).strip(",،. ")
            key = tag.lower()
            if len(tag) <= 1 or key in BANNED_TAG_WORDS or key in seen or any(char.isdigit() for char in tag):
                continue
            seen.add(key)
            tags.append(tag)
            if len(tags) >= MAX_GENERATED_TAGS:
                break
        return tags

    async def _rewrite_title(self, source_title: str, source_description: str) -> str:
        reply = await self.generator.generate(
            PromptKind.TITLE,
            {"title": source_title, "description": strip_html(source_description)[:1500]},
        )
        title = truncate_text(strip_markdown(reply), self.max_title_length)
        if not title:
            raise ValueError("empty title after cleanup")
        return title

    async def _rewrite_description(self, source_title: str, source_description: str) -> str:
        reply = await self.generator.generate(
            PromptKind.DESCRIPTION,
            {"title": source_title, "description": source_description},
        )
        description = strip_markdown(reply)
        if not description:
            raise ValueError("empty description after cleanup")
        return description

    async def _seo_fields(self, title: str, description: str) -> tuple[str, str]:
        plain_description = strip_html(description)
        try:
            reply = await self.generator.generate(
                PromptKind.SEO,
                {"title": title, "description": plain_description[:1500]},
            )
            data = parse_json_reply(reply)
            seo_title = str(data.get("seo_title") or "").strip() or title
            seo_description = str(data.get("seo_description") or "").strip() or plain_description
        except Exception as exc:
            logger.warning("SEO generation failed for %r, deriving from content: %s", title, exc)
            seo_title, seo_description = title, plain_description
        return (
            truncate_text(seo_title, SEO_TITLE_MAX_LENGTH),
            truncate_text(seo_description, SEO_DESCRIPTION_MAX_LENGTH),
        )
