"""Redis cache of the full goods listing."""

from __future__ import annotations

import json
import logging
from contextlib import suppress
from datetime import timedelta
from typing import Any

from redis.exceptions import RedisError

from hezzlgoods.errors import CacheMissError, InternalServerError
from hezzlgoods.models import Goods

CACHE_KEY = "goods"
CACHE_TTL = timedelta(minutes=1)


class GoodsCache:
    """Keeps every goods record under one key and serves pages from it."""

    def __init__(
        self,
        client: Any,
        repository: Any,
        logger: logging.Logger | None = None,
        key: str = CACHE_KEY,
        ttl: timedelta = CACHE_TTL,
    ) -> None:
        self._client = client
        self._repository = repository
        self._logger = logger or logging.getLogger(__name__)
        self._key = key
        self._ttl = ttl

    def get(self, limit: int, offset: int) -> list[Goods]:
        """Return a page of the cached listing; a page inside it holds limit + 1 records."""
        try:
            raw = self._client.get(self._key)
        except RedisError as exc:
            self._logger.error("Failed to get from cache", exc_info=exc)
            raise InternalServerError() from exc
        if raw is None:
            raise CacheMissError()
        try:
            goods = [Goods.from_dict(item) for item in json.loads(raw) or []]
        except (ValueError, TypeError, AttributeError) as exc:
            self._logger.error("Failed to unmarshal data", exc_info=exc)
            raise InternalServerError() from exc

        if offset >= len(goods):
            return []
        if offset + limit > len(goods):
            return goods[offset:]
        return goods[offset : offset + limit + 1]

    def set(self) -> None:
        """Load every record from the repository and store it in the cache."""
        payload = json.dumps([g.to_dict() for g in self._repository.get_goods_sort_id()])
        try:
            self._client.set(self._key, payload, ex=self._ttl)
        except RedisError as exc:
            self._logger.error("Failed to set cache", exc_info=exc)
            raise InternalServerError() from exc

    def invalidate(self) -> None:
        """Drop the cached listing; failures are ignored."""
        with suppress(RedisError):
            self._client.delete(self._key)