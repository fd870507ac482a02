"""HTTP interface of the goods service."""

from __future__ import annotations

import json
import re
from typing import Any, Protocol, TypeVar

from flask import Flask, jsonify, request

from hezzlgoods.dto import (
    CreateGoodsRequest,
    GetGoodsResponse,
    GoodsResponse,
    RemoveGoodsResponse,
    ReprioritizeRequest,
    ReprioritizeResponse,
    UpdateGoodsRequest,
)
from hezzlgoods.errors import GoodsNotFoundError, ProjectNotFoundError, ServiceError

DEFAULT_LIMIT = "10"
DEFAULT_OFFSET = "1"

_INTEGER = re.compile(r"[+-]?[0-9]+")
_INT_MIN = -(2**63)
_INT_MAX = 2**63 - 1

_NOT_FOUND_BODY = {"code": 3, "message": "errors.common.notFound", "details": ""}

_Request = TypeVar("_Request")


class _Services(Protocol):
    def create_goods(self, project_id: int, name: str) -> GoodsResponse: ...
    def update_goods(
        self, id: int, project_id: int, name: str, description: str
    ) -> GoodsResponse: ...
    def remove_goods(self, id: int, project_id: int) -> RemoveGoodsResponse: ...
    def reprioritize(
        self, id: int, project_id: int, new_priority: int
    ) -> list[ReprioritizeResponse]: ...
    def get_goods(self, limit: int, offset: int) -> GetGoodsResponse: ...


class _ApiError(Exception):
    """Ends a request with a JSON error body."""

    def __init__(self, status: int, body: dict[str, Any]) -> None:
        super().__init__(body.get("message", ""))
        self.status = status
        self.body = body


def _error(status: int, message: str, details: str = "") -> _ApiError:
    return _ApiError(status, {"code": status, "message": message, "details": details})


def _not_found() -> _ApiError:
    return _ApiError(404, dict(_NOT_FOUND_BODY))


def _internal(exc: Exception) -> _ApiError:
    return _error(500, "Internal server error", str(exc))


def _parse_int(text: str) -> int:
    """Parse a signed decimal integer that fits in 64 bits."""
    if not _INTEGER.fullmatch(text):
        raise ValueError(f"parsing {json.dumps(text)}: invalid syntax")
    value = int(text)
    if not _INT_MIN <= value <= _INT_MAX:
        raise ValueError(f"parsing {json.dumps(text)}: value out of range")
    return value


def _query_int(name: str, message: str, default: str = "") -> int:
    raw = request.args.get(name, "") or default
    try:
        return _parse_int(raw)
    except ValueError as exc:
        raise _error(400, message, str(exc)) from exc


def _ids() -> tuple[int, int]:
    id = _query_int("id", "id must be an integer")
    project_id = _query_int("projectId", "projectId must be an integer")
    if id <= 0 or project_id <= 0:
        raise _error(400, "id and projectId must be greater than zero")
    return id, project_id


def _parse_body(request_type: type[_Request]) -> _Request:
    try:
        data = json.loads(request.get_data())
        return request_type.from_json(data)  # type: ignore[attr-defined]
    except ValueError as exc:
        raise _error(400, "Incorrect body", str(exc)) from exc


def create_app(services: _Services) -> Flask:
    """Build the web application serving the goods endpoints."""
    app = Flask(__name__)
    app.json.sort_keys = False  # type: ignore[attr-defined]

    @app.errorhandler(_ApiError)
    def _api_error(exc: _ApiError) -> Any:
        return jsonify(exc.body), exc.status

    @app.get("/ping")
    def ping() -> Any:
        return jsonify({})

    @app.post("/good/create")
    def create_goods() -> Any:
        project_id = _query_int("projectId", "projectId must be an integer")
        if project_id <= 0:
            raise _error(400, "projectId must be greater than zero")
        body = _parse_body(CreateGoodsRequest)
        try:
            goods = services.create_goods(project_id, body.name)
        except ProjectNotFoundError as exc:
            raise _error(404, "Project with this ID does not exist", str(exc)) from exc
        except ServiceError as exc:
            raise _internal(exc) from exc
        return jsonify(goods.to_dict()), 201

    @app.patch("/good/update")
    def update_goods() -> Any:
        id, project_id = _ids()
        body = _parse_body(UpdateGoodsRequest)
        try:
            goods = services.update_goods(id, project_id, body.name, body.description)
        except GoodsNotFoundError as exc:
            raise _not_found() from exc
        except ServiceError as exc:
            raise _internal(exc) from exc
        return jsonify(goods.to_dict()), 200

    @app.delete("/good/remove")
    def remove_goods() -> Any:
        id, project_id = _ids()
        try:
            result = services.remove_goods(id, project_id)
        except GoodsNotFoundError as exc:
            raise _not_found() from exc
        except ServiceError as exc:
            raise _internal(exc) from exc
        return jsonify(result.to_dict()), 200

    @app.get("/good/list")
    def get_goods() -> Any:
        limit = _query_int("limit", "Limit must be an integer", DEFAULT_LIMIT)
        offset = _query_int("offset", "offset must be an integer", DEFAULT_OFFSET)
        if limit < 0 or offset < 0:
            raise _error(400, "Limit and offset must be greater than zero")
        try:
            page = services.get_goods(limit, offset)
        except ServiceError as exc:
            raise _internal(exc) from exc
        return jsonify(page.to_dict()), 200

    @app.patch("/good/reprioritize")
    def reprioritize_goods() -> Any:
        id, project_id = _ids()
        body = _parse_body(ReprioritizeRequest)
        try:
            priorities = services.reprioritize(id, project_id, body.priority)
        except GoodsNotFoundError as exc:
            raise _not_found() from exc
        except ServiceError as exc:
            raise _internal(exc) from exc
        return jsonify({"priorities": [item.to_dict() for item in priorities]}), 200

    return app