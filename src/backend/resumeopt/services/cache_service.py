"""Redis caching for LLM analysis results.

Identical resume text (and job description) under the same prompt version
gets the same answer, so re-running an analysis skips the model call. The key
hashes the inputs, so an edit to either invalidates it.
"""

import hashlib
import logging

import redis.asyncio as redis
from pydantic import BaseModel

logger = logging.getLogger(__name__)


def cache_key(kind: str, prompt_version: str, *parts: str) -> str:
    digest = hashlib.sha256("\x1f".join(parts).encode()).hexdigest()[:32]
    return f"analysis:{kind}:{prompt_version}:{digest}"


class AnalysisCache:
    def __init__(self, redis_url: str, ttl: int) -> None:
        self.ttl = ttl
        self._client: redis.Redis | None = None
        self._redis_url = redis_url

    def _redis(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(self._redis_url, decode_responses=True)
        return self._client

    async def get(self, key: str, model: type[BaseModel]) -> BaseModel | None:
        if self.ttl <= 0:
            return None
        try:
            data = await self._redis().get(key)
        except redis.RedisError as exc:
            logger.warning("Analysis cache read failed: %s", exc)
            return None
        if data is None:
            return None
        return model.model_validate_json(data)

    async def set(self, key: str, value: BaseModel) -> None:
        if self.ttl <= 0:
            return
        try:
            await self._redis().set(key, value.model_dump_json(by_alias=True), ex=self.ttl)
        except redis.RedisError as exc:
            logger.warning("Analysis cache write failed: %s", exc)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
