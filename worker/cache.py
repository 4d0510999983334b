from __future__ import annotations

import hashlib
import logging

from redis import Redis
from redis.exceptions import RedisError

from worker.config import WorkerSettings

logger = logging.getLogger(__name__)


class TranslationCache:
    """Remembers translated option labels per target language.

    Backed by redis when reachable, otherwise by a per-process dict.
    """

    def __init__(self, settings: WorkerSettings, redis_client: Redis | None = None) -> None:
        self.language = settings.target_language
        self.ttl_seconds = settings.cache_ttl_seconds
        self._fallback: dict[str, str] = {}
        self._redis: Redis | None = redis_client
        if self._redis is None and settings.cache_enabled:
            try:
                self._redis = Redis.from_url(settings.redis_url, decode_responses=True)
                self._redis.ping()
            except RedisError as exc:
                logger.info("Redis unavailable (%s); using in-process translation cache", exc)
                self._redis = None

    def get(self, text: str) -> str | None:
        key = self._key(text)
        try:
            if self._redis:
                return self._redis.get(key)
        except RedisError:
            pass
        return self._fallback.get(key)

    def get_many(self, texts: list[str]) -> dict[str, str]:
        found: dict[str, str] = {}
        for text in texts:
            value = self.get(text)
            if value is not None:
                found[text] = value
        return found

    def set(self, text: str, translated: str) -> None:
        key = self._key(text)
        try:
            if self._redis:
                self._redis.setex(key, self.ttl_seconds, translated)
                return
        except RedisError:
            pass
        self._fallback[key] = translated

    def _key(self, text: str) -> str:
        digest = hashlib.sha1(text.strip().encode("utf-8")).hexdigest()
        return f"catalog-sync:translation:{self.language.lower()}:{digest}"
