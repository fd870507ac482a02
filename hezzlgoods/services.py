"""Use cases of the goods service."""

from __future__ import annotations

import logging
from typing import Protocol

from hezzlgoods import helpers
from hezzlgoods.dto import (
    GetGoodsResponse,
    GoodsResponse,
    RemoveGoodsResponse,
    ReprioritizeResponse,
)
from hezzlgoods.errors import CacheMissError, ServiceError
from hezzlgoods.eventlog import EventLogger
from hezzlgoods.models import Goods


class _Repository(Protocol):
    def create_goods(self, project_id: int, name: str) -> int: ...
    def get_good(self, id: int) -> Goods: ...
    def get_goods_sort_priority(self) -> list[Goods]: ...
    def get_goods_with_limit(self, limit: int, offset: int) -> list[Goods]: ...
    def update_good(self, id: int, project_id: int, name: str, description: str) -> None: ...
    def remove_goods(self, id: int, project_id: int) -> None: ...


class _Cache(Protocol):
    def get(self, limit: int, offset: int) -> list[Goods]: ...
    def set(self) -> None: ...
    def invalidate(self) -> None: ...


class Services:
    """Coordinates storage, cache and event publishing for each request."""

    def __init__(
        self,
        repository: _Repository,
        cache: _Cache,
        events: EventLogger,
        logger: logging.Logger | None = None,
    ) -> None:
        self._repository = repository
        self._cache = cache
        self._events = events
        self._logger = logger or events.logger

    def _publish(self, goods: Goods, removed: bool | None = None) -> None:
        self._events.info_nats(
            goods.id,
            goods.project_id,
            goods.name,
            goods.description,
            goods.priority,
            goods.removed if removed is None else removed,
        )

    def create_goods(self, project_id: int, name: str) -> GoodsResponse:
        """Create a record in a project and return it as stored."""
        new_id = self._repository.create_goods(project_id, name)
        goods = self._repository.get_good(new_id)
        self._publish(goods)
        return GoodsResponse.from_goods(goods)

    def update_goods(
        self, id: int, project_id: int, name: str, description: str
    ) -> GoodsResponse:
        """Change name and description of a record and return it as stored."""
        self._repository.update_good(id, project_id, name, description)
        goods = self._repository.get_good(id)
        self._publish(goods)
        response = GoodsResponse.from_goods(goods)
        self._cache.invalidate()
        return response

    def remove_goods(self, id: int, project_id: int) -> RemoveGoodsResponse:
        """Mark a record as removed."""
        goods = self._repository.get_good(id)
        self._repository.remove_goods(id, project_id)
        self._publish(goods, removed=True)
        self._cache.invalidate()
        return RemoveGoodsResponse(id=id, project_id=project_id, removed=True)

    def reprioritize(
        self, id: int, project_id: int, new_priority: int
    ) -> list[ReprioritizeResponse]:
        """Compute the priorities after moving one record and report them."""
        goods = self._repository.get_goods_sort_priority()
        updated = helpers.reprioritize(goods, id, project_id, new_priority)
        for item in updated:
            self._publish(item)
        response = [ReprioritizeResponse(id=item.id, priority=item.priority) for item in updated]
        self._cache.invalidate()
        return response

    def get_goods(self, limit: int, offset: int) -> GetGoodsResponse:
        """Return a page of records, from the cache when it holds them."""
        try:
            goods = self._cache.get(limit, offset)
        except CacheMissError:
            pass
        except ServiceError as exc:
            self._logger.error("Redis error: %s", exc)
        else:
            self._logger.info("Took from Redis")
            return helpers.get_goods_response(goods, limit, offset)

        try:
            self._cache.set()
        except ServiceError as exc:
            self._logger.error("Redis error: %s", exc)

        try:
            goods = self._repository.get_goods_with_limit(limit, offset)
        except ServiceError:
            self._logger.info("Took from Postgres")
            raise
        return helpers.get_goods_response(goods, limit, offset)