from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path

from rapidfuzz import fuzz, process

from worker.generation import PromptKind, TextGenerator
from worker.transform.normalization import single_line, strip_html

logger = logging.getLogger(__name__)

TITLE_WEIGHT = 3
DESCRIPTION_WEIGHT = 1
AI_MATCH_CUTOFF = 90


@dataclass(frozen=True)
class Category:
    title: str
    keywords: tuple[str, ...]
    product_type: str


@dataclass
class Classification:
    category: str
    product_type: str
    score: int
    source: str


def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    return re.compile(rf"(?<!\w){re.escape(keyword.strip())}(?!\w)", re.IGNORECASE)


class CategoryClassifier:
    def __init__(
        self,
        categories: list[Category],
        catch_all: Category,
        generator: TextGenerator | None = None,
        min_confidence: int = 5,
    ) -> None:
        if not categories:
            raise ValueError("Category catalog is empty")
        self.categories = categories
        self.catch_all = catch_all
        self.generator = generator
        self.min_confidence = min_confidence
        self._patterns = {
            category.title: [_keyword_pattern(keyword) for keyword in category.keywords if keyword.strip()]
            for category in categories
        }
        self._by_name = {category.title.lower(): category for category in categories}

    @classmethod
    def from_file(cls, path: Path, generator: TextGenerator | None = None, min_confidence: int = 5) -> CategoryClassifier:
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        categories = [
            Category(
                title=str(entry["title"]),
                keywords=tuple(str(keyword) for keyword in entry.get("keywords", [])),
                product_type=str(entry.get("product_type") or entry["title"]),
            )
            for entry in payload["categories"]
        ]
        fallback = payload["catch_all"]
        catch_all = Category(
            title=str(fallback["title"]),
            keywords=(),
            product_type=str(fallback.get("product_type") or fallback["title"]),
        )
        return cls(categories, catch_all, generator=generator, min_confidence=min_confidence)

    def score(self, title: str, description: str) -> tuple[Category | None, int]:
        best: Category | None = None
        best_score = 0
        plain_description = strip_html(description)
        for category in self.categories:
            total = 0
            for pattern in self._patterns[category.title]:
                if pattern.search(title):
                    total += TITLE_WEIGHT
                if pattern.search(plain_description):
                    total += DESCRIPTION_WEIGHT
            # Strictly greater: ties keep the earlier category.
            if total > best_score:
                best, best_score = category, total
        return best, best_score

    async def classify(self, title: str, description: str) -> Classification:
        best, best_score = self.score(title, description)
        if best is not None and best_score >= self.min_confidence:
            return Classification(category=best.title, product_type=best.product_type, score=best_score, source="keywords")

        chosen = await self._ask_model(title, description)
        if chosen is not None:
            return Classification(category=chosen.title, product_type=chosen.product_type, score=best_score, source="ai")

        return Classification(
            category=self.catch_all.title,
            product_type=self.catch_all.product_type,
            score=best_score,
            source="fallback",
        )

    async def _ask_model(self, title: str, description: str) -> Category | None:
        if self.generator is None:
            return None
        try:
            reply = await self.generator.generate(
                PromptKind.CATEGORY,
                {
                    "categories": [category.title for category in self.categories],
                    "title": title,
                    "description": strip_html(description)[:1500],
                },
            )
        except Exception as exc:
            logger.warning("Category fallback call failed for %r: %s", title, exc)
            return None
        return self.match_name(reply)

    def match_name(self, answer: str) -> Category | None:
        name = single_line(answer).lstrip("-•* ").rstrip(".")
        if not name:
            return None
        exact = self._by_name.get(name.lower())
        if exact is not None:
            return exact
        match = process.extractOne(
            name,
            [category.title for category in self.categories],
            scorer=fuzz.token_set_ratio,
            score_cutoff=AI_MATCH_CUTOFF,
        )
        if match is None:
            logger.info("Category answer %r matches no catalog entry", answer)
            return None
        return self._by_name[match[0].lower()]
