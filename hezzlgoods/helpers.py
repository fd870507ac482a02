"""Pure operations on lists of goods."""

from __future__ import annotations

from dataclasses import replace
from operator import attrgetter
from typing import Iterable

from hezzlgoods.dto import GetGoodsResponse, GoodsResponse, Meta
from hezzlgoods.errors import GoodsNotFoundError
from hezzlgoods.models import Goods


def reprioritize(
    goods: Iterable[Goods], id: int, project_id: int, new_priority: int
) -> list[Goods]:
    """Move one record to a new priority, shifting the records in between.

    The input is left untouched. When the priority changes the result is
    sorted by id; when it does not, the records come back in input order.
    Raises GoodsNotFoundError when no record matches id and project_id.
    """
    items = list(goods)
    target = next(
        (index for index, item in enumerate(items) if item.project_id == project_id and item.id == id),
        None,
    )
    if target is None:
        raise GoodsNotFoundError()

    old_priority = items[target].priority
    if old_priority == new_priority:
        return items

    def shifted(index: int, item: Goods) -> int:
        if index == target:
            return new_priority
        if old_priority < new_priority and old_priority < item.priority <= new_priority:
            return item.priority - 1
        if new_priority < old_priority and new_priority <= item.priority < old_priority:
            return item.priority + 1
        return item.priority

    result = [replace(item, priority=shifted(index, item)) for index, item in enumerate(items)]
    result.sort(key=attrgetter("id"))
    return result


def get_goods_response(goods: Iterable[Goods], limit: int, offset: int) -> GetGoodsResponse:
    """Wrap a page of goods with counts and the paging parameters."""
    items = [GoodsResponse.from_goods(item) for item in goods]
    meta = Meta(
        total=len(items),
        removed=sum(1 for item in items if item.removed),
        limit=limit,
        offset=offset,
    )
    return GetGoodsResponse(meta=meta, goods=items)