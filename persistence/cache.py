import json
import logging
from typing import Optional, TypeVar

from pydantic import BaseModel
from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.settings import settings

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class ProviderCache:
    """JSON cache for external provider lookups.

    Disabled when no redis URL is configured. Redis failures behave like a
    cache miss.
    """

    def __init__(self, client: Optional[Redis] = None, prefix: str = "pharmassist"):
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_settings(cls) -> "ProviderCache":
        if not settings.REDIS_URL:
            return cls()
        return cls(Redis.from_url(settings.REDIS_URL, decode_responses=True))

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def _key(self, namespace: str, key: str) -> str:
        return f"{self.prefix}:{namespace}:{key.strip().lower()}"

    async def get_model(
        self, namespace: str, key: str, model: type[ModelT]
    ) -> Optional[ModelT]:
        if self.client is None:
            return None
        try:
            data = await self.client.get(self._key(namespace, key))
        except RedisError as exc:
            logger.warning("Cache read failed for %s/%s: %s", namespace, key, exc)
            return None
        if data is None:
            return None
        try:
            return model.model_validate(json.loads(data))
        except (json.JSONDecodeError, ValueError):
            return None

    async def set_model(
        self, namespace: str, key: str, value: BaseModel, ttl: int
    ) -> None:
        await self._set(namespace, key, value.model_dump_json(), ttl)

    async def _set(self, namespace: str, key: str, payload: str, ttl: int) -> None:
        if self.client is None:
            return
        try:
            await self.client.set(self._key(namespace, key), payload, ex=ttl)
        except RedisError as exc:
            logger.warning("Cache write failed for %s/%s: %s", namespace, key, exc)

