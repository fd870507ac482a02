"""Request and response shapes of the HTTP interface."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Mapping

from hezzlgoods.models import Goods, _format_time


def _body(data: Any, type_name: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{type_name}: request body must be a JSON object")
    return data


def _string(data: Mapping[str, Any], key: str, type_name: str, required: bool) -> str:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise ValueError(f"{type_name}.{key}: must be a string")
    if required and not value:
        raise ValueError(f"{type_name}.{key}: field is required")
    return value or ""


@dataclass(frozen=True)
class CreateGoodsRequest:
    """Body of a create request."""

    name: str

    @classmethod
    def from_json(cls, data: Any) -> CreateGoodsRequest:
        body = _body(data, cls.__name__)
        return cls(name=_string(body, "name", cls.__name__, True))


@dataclass(frozen=True)
class UpdateGoodsRequest:
    """Body of an update request."""

    name: str
    description: str = ""

    @classmethod
    def from_json(cls, data: Any) -> UpdateGoodsRequest:
        body = _body(data, cls.__name__)
        return cls(
            name=_string(body, "name", cls.__name__, True),
            description=_string(body, "description", cls.__name__, False),
        )


@dataclass(frozen=True)
class ReprioritizeRequest:
    """Body of a reprioritize request; a zero or missing priority is rejected."""

    priority: int

    @classmethod
    def from_json(cls, data: Any) -> ReprioritizeRequest:
        value = _body(data, cls.__name__).get("newPriority")
        if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
            raise ValueError(f"{cls.__name__}.newPriority: must be an integer")
        if not value:
            raise ValueError(f"{cls.__name__}.newPriority: field is required")
        return cls(priority=value)


@dataclass(frozen=True)
class GoodsResponse:
    """A goods record as returned to clients."""

    id: int
    project_id: int
    name: str
    description: str
    priority: int
    removed: bool
    created_at: datetime

    @classmethod
    def from_goods(cls, goods: Goods) -> GoodsResponse:
        return cls(**asdict(goods))

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "created_at": _format_time(self.created_at)}


@dataclass(frozen=True)
class RemoveGoodsResponse:
    id: int
    project_id: int
    removed: bool = True

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ReprioritizeResponse:
    id: int
    priority: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Meta:
    total: int
    removed: int
    limit: int
    offset: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class GetGoodsResponse:
    """A page of goods with its metadata."""

    meta: Meta
    goods: list[GoodsResponse] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"meta": self.meta.to_dict(), "goods": [g.to_dict() for g in self.goods]}