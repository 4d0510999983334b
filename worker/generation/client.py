from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from openai import AsyncOpenAI, OpenAIError

from worker.config import WorkerSettings
from worker.errors import GenerationError, MalformedResponseError
from worker.generation.prompts import TEMPLATES, PromptKind, build_messages

logger = logging.getLogger(__name__)


class TextGenerator(ABC):
    """Stateless text generation. Replies are not stable across calls."""

    @abstractmethod
    async def generate(self, kind: PromptKind, payload: dict[str, object]) -> str:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


class OpenAITextGenerator(TextGenerator):
    def __init__(self, settings: WorkerSettings, client: AsyncOpenAI | None = None) -> None:
        self.model = settings.openai_model
        self.timeout_seconds = settings.openai_timeout_seconds
        self.language = settings.target_language
        self.max_title_length = settings.max_title_length
        self._api_key = settings.openai_api_key
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not self._api_key:
                raise GenerationError("OPENAI_API_KEY is not configured")
            # Retries happen through the next webhook or sweep, not here.
            self._client = AsyncOpenAI(api_key=self._api_key, timeout=self.timeout_seconds, max_retries=0)
        return self._client

    async def generate(self, kind: PromptKind, payload: dict[str, object]) -> str:
        template = TEMPLATES[kind]
        request: dict[str, Any] = {
            "model": self.model,
            "messages": build_messages(kind, payload, self.language, self.max_title_length),
            "temperature": template.temperature,
            "max_tokens": template.max_tokens,
        }
        if template.json_reply:
            request["response_format"] = {"type": "json_object"}

        try:
            response = await self._get_client().chat.completions.create(**request)
        except OpenAIError as exc:
            raise GenerationError(f"{kind.value} generation failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise GenerationError(f"{kind.value} generation returned an empty reply")
        return content.strip()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()


def parse_json_reply(content: str) -> dict[str, Any]:
    text = content.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    text = text.strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        logger.debug("Unparsable JSON reply: %s", content)
        raise MalformedResponseError(f"Invalid JSON reply: {exc}") from exc
    if not isinstance(data, dict):
        raise MalformedResponseError("JSON reply is not an object")
    return data


def parse_string_list(content: str, key: str) -> list[str]:
    data = parse_json_reply(content)
    values = data.get(key)
    if not isinstance(values, list) or not all(isinstance(value, str) for value in values):
        raise MalformedResponseError(f"JSON reply has no string list under {key!r}")
    return [value.strip() for value in values]
