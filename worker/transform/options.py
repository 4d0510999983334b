from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace

from worker.cache import TranslationCache
from worker.errors import MalformedResponseError
from worker.generation import PromptKind, TextGenerator, parse_string_list
from worker.models import CatalogItem, ItemOption, ItemVariant

logger = logging.getLogger(__name__)

# Size and model codes such as "XL", "M", "A12" stay untranslated.
KEEP_AS_IS_RE = re.compile(r"^[A-Za-z0-9]{1,3}$")


@dataclass
class OptionTranslation:
    options: list[ItemOption]
    variants: list[ItemVariant]
    dropped_variant_ids: list[str] = field(default_factory=list)


class OptionTranslator:
    """Translates option names and the distinct option values used by variants.

    Each option gets one substitution map, so variants sharing a source value
    always share the translated value. Variants that collapse onto the same
    translated combination are dropped after the first one.
    """

    def __init__(self, generator: TextGenerator, cache: TranslationCache | None = None) -> None:
        self.generator = generator
        self.cache = cache

    async def translate(self, item: CatalogItem) -> OptionTranslation:
        if not item.options:
            return OptionTranslation(options=[], variants=list(item.variants))

        names = await self._translate_names(item)
        options: list[ItemOption] = []
        mappings: list[dict[str, str]] = []
        for index, option in enumerate(item.options):
            source_values = self._distinct_values(item, index)
            mapping = await self._translate_values(item, option.name, source_values)
            mappings.append(mapping)
            options.append(ItemOption(name=names[index], values=_dedupe([mapping.get(value, value) for value in source_values])))

        variants, dropped = self._rehydrate(item, mappings)
        return OptionTranslation(options=options, variants=variants, dropped_variant_ids=dropped)

    async def _translate_names(self, item: CatalogItem) -> list[str]:
        names = [option.name for option in item.options]
        try:
            translated = await self._translate_labels(names)
        except Exception as exc:
            logger.warning("Option name translation failed for item %s, keeping originals: %s", item.id, exc)
            return names
        if len({name.lower() for name in translated}) != len(translated):
            logger.warning("Translated option names collide for item %s, keeping originals: %s", item.id, translated)
            return names
        return translated

    async def _translate_values(self, item: CatalogItem, option_name: str, values: list[str]) -> dict[str, str]:
        try:
            translated = await self._translate_labels(values)
        except Exception as exc:
            logger.warning(
                "Value translation for option %r of item %s failed, keeping originals: %s", option_name, item.id, exc
            )
            return {value: value for value in values}
        return dict(zip(values, translated))

    async def _translate_labels(self, labels: list[str]) -> list[str]:
        resolved: dict[str, str] = {}
        pending: list[str] = []
        cached = self.cache.get_many(labels) if self.cache else {}
        for label in labels:
            if label in resolved or label in pending:
                continue
            if not label.strip() or KEEP_AS_IS_RE.match(label.strip()):
                resolved[label] = label
            elif label in cached:
                resolved[label] = cached[label]
            else:
                pending.append(label)

        if pending:
            reply = await self.generator.generate(PromptKind.OPTION_LABELS, {"labels": pending})
            translated = parse_string_list(reply, "items")
            if len(translated) != len(pending):
                raise MalformedResponseError(f"expected {len(pending)} labels, got {len(translated)}")
            if any(not value for value in translated):
                raise MalformedResponseError("reply contains empty labels")
            for label, value in zip(pending, translated):
                resolved[label] = value
                if self.cache:
                    self.cache.set(label, value)

        return [resolved[label] for label in labels]

    @staticmethod
    def _distinct_values(item: CatalogItem, index: int) -> list[str]:
        values: list[str] = []
        for variant in item.variants:
            if index < len(variant.options) and variant.options[index] is not None:
                values.append(variant.options[index])
        # Values listed on the option but unused by any variant still need a label.
        values.extend(item.options[index].values)
        return _dedupe(values)

    @staticmethod
    def _rehydrate(item: CatalogItem, mappings: list[dict[str, str]]) -> tuple[list[ItemVariant], list[str]]:
        variants: list[ItemVariant] = []
        dropped: list[str] = []
        seen: dict[tuple[str | None, ...], str] = {}
        for variant in item.variants:
            translated = tuple(
                mappings[index].get(value, value) if value is not None and index < len(mappings) else value
                for index, value in enumerate(variant.options)
            )
            if translated in seen:
                dropped.append(variant.id)
                logger.warning(
                    "Dropping variant %s of item %s: duplicates variant %s after translation %s",
                    variant.id,
                    item.id,
                    seen[translated],
                    translated,
                )
                continue
            seen[translated] = variant.id
            variants.append(replace(variant, options=translated))
        return variants, dropped


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered
