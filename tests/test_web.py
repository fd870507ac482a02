from datetime import datetime, timezone

import pytest

from hezzlgoods.dto import GoodsResponse, RemoveGoodsResponse, ReprioritizeResponse
from hezzlgoods.errors import (
    GoodsNotFoundError,
    InternalServerError,
    ProjectNotFoundError,
)
from hezzlgoods.helpers import get_goods_response
from hezzlgoods.models import Goods
from hezzlgoods.web import create_app

CREATED = datetime(2025, 6, 14, tzinfo=timezone.utc)


class FakeServices:
    def __init__(self, errors=None):
        self.calls = []
        self.errors = errors or {}

    def _record(self, name, *args):
        self.calls.append((name, *args))
        if name in self.errors:
            raise self.errors[name]

    def create_goods(self, project_id, name):
        self._record("create", project_id, name)
        return GoodsResponse(7, project_id, name, "", 1, False, CREATED)

    def update_goods(self, id, project_id, name, description):
        self._record("update", id, project_id, name, description)
        return GoodsResponse(id, project_id, name, description, 1, False, CREATED)

    def remove_goods(self, id, project_id):
        self._record("remove", id, project_id)
        return RemoveGoodsResponse(id=id, project_id=project_id, removed=True)

    def reprioritize(self, id, project_id, new_priority):
        self._record("reprioritize", id, project_id, new_priority)
        return [ReprioritizeResponse(id=id, priority=new_priority)]

    def get_goods(self, limit, offset):
        self._record("list", limit, offset)
        goods = [Goods(id=1, project_id=1, name="apple", created_at=CREATED)]
        return get_goods_response(goods, limit, offset)


def client_for(services):
    return create_app(services).test_client()


def test_ping_returns_empty_object():
    response = client_for(FakeServices()).get("/ping")
    assert response.status_code == 200
    assert response.get_json() == {}


def test_create_goods_returns_created_record():
    services = FakeServices()
    response = client_for(services).post("/good/create?projectId=1", json={"name": "apple"})
    assert response.status_code == 201
    assert response.get_json() == GoodsResponse(7, 1, "apple", "", 1, False, CREATED).to_dict()
    assert services.calls == [("create", 1, "apple")]


@pytest.mark.parametrize("query", ["", "?projectId=abc", "?projectId=1.5"])
def test_create_goods_rejects_non_integer_project(query):
    services = FakeServices()
    response = client_for(services).post("/good/create" + query, json={"name": "apple"})
    assert response.status_code == 400
    assert response.get_json()["message"] == "projectId must be an integer"
    assert services.calls == []


def test_create_goods_rejects_zero_project():
    response = client_for(FakeServices()).post("/good/create?projectId=0", json={"name": "x"})
    body = response.get_json()
    assert response.status_code == 400
    assert body["message"] == "projectId must be greater than zero"
    assert body["details"] == ""


@pytest.mark.parametrize("data", [b"{}", b"not json", b"", b'{"name": ""}', b"[1]"])
def test_create_goods_rejects_bad_body(data):
    services = FakeServices()
    response = client_for(services).post(
        "/good/create?projectId=1", data=data, content_type="application/json"
    )
    assert response.status_code == 400
    assert response.get_json()["message"] == "Incorrect body"
    assert services.calls == []


def test_create_goods_project_not_found():
    services = FakeServices({"create": ProjectNotFoundError()})
    response = client_for(services).post("/good/create?projectId=9", json={"name": "apple"})
    body = response.get_json()
    assert response.status_code == 404
    assert body["message"] == "Project with this ID does not exist"
    assert body["details"] == "project not found"


def test_create_goods_internal_error():
    services = FakeServices({"create": InternalServerError()})
    response = client_for(services).post("/good/create?projectId=1", json={"name": "apple"})
    body = response.get_json()
    assert response.status_code == 500
    assert body["message"] == "Internal server error"
    assert body["details"] == "internal server error"


def test_update_goods_passes_fields():
    services = FakeServices()
    response = client_for(services).patch(
        "/good/update?id=3&projectId=1", json={"name": "pear", "description": "green"}
    )
    assert response.status_code == 200
    assert response.get_json()["description"] == "green"
    assert services.calls == [("update", 3, 1, "pear", "green")]


def test_update_goods_accepts_signed_integer():
    services = FakeServices()
    response = client_for(services).patch("/good/update?id=%2B3&projectId=1", json={"name": "pear"})
    assert response.status_code == 200
    assert services.calls == [("update", 3, 1, "pear", "")]


def test_update_goods_checks_id_before_project():
    response = client_for(FakeServices()).patch("/good/update?id=x&projectId=y", json={"name": "a"})
    assert response.status_code == 400
    assert response.get_json()["message"] == "id must be an integer"


def test_update_goods_rejects_out_of_range_id():
    response = client_for(FakeServices()).patch(
        "/good/update?id=99999999999999999999&projectId=1", json={"name": "a"}
    )
    assert response.status_code == 400
    assert response.get_json()["message"] == "id must be an integer"


def test_update_goods_rejects_negative_ids():
    response = client_for(FakeServices()).patch("/good/update?id=-1&projectId=1", json={"name": "a"})
    assert response.status_code == 400
    assert response.get_json()["message"] == "id and projectId must be greater than zero"


def test_update_goods_not_found():
    services = FakeServices({"update": GoodsNotFoundError()})
    response = client_for(services).patch("/good/update?id=3&projectId=1", json={"name": "a"})
    assert response.status_code == 404
    assert response.get_json() == {"code": 3, "message": "errors.common.notFound", "details": ""}


def test_remove_goods_returns_removed_flag():
    services = FakeServices()
    response = client_for(services).delete("/good/remove?id=3&projectId=1")
    assert response.status_code == 200
    assert response.get_json() == {"id": 3, "project_id": 1, "removed": True}
    assert services.calls == [("remove", 3, 1)]


def test_remove_goods_missing_project():
    response = client_for(FakeServices()).delete("/good/remove?id=3")
    assert response.status_code == 400
    assert response.get_json()["message"] == "projectId must be an integer"


def test_remove_goods_not_found():
    services = FakeServices({"remove": GoodsNotFoundError()})
    response = client_for(services).delete("/good/remove?id=3&projectId=1")
    assert response.status_code == 404
    assert response.get_json()["message"] == "errors.common.notFound"


def test_list_uses_default_paging():
    services = FakeServices()
    response = client_for(services).get("/good/list")
    body = response.get_json()
    assert response.status_code == 200
    assert services.calls == [("list", 10, 1)]
    assert body["meta"]["limit"] == 10
    assert body["meta"]["offset"] == 1
    assert [item["name"] for item in body["goods"]] == ["apple"]


def test_list_passes_explicit_paging():
    services = FakeServices()
    client_for(services).get("/good/list?limit=5&offset=0")
    assert services.calls == [("list", 5, 0)]


@pytest.mark.parametrize(
    "query, message",
    [
        ("?limit=x", "Limit must be an integer"),
        ("?offset=x", "offset must be an integer"),
        ("?limit=-1", "Limit and offset must be greater than zero"),
        ("?offset=-2", "Limit and offset must be greater than zero"),
    ],
)
def test_list_rejects_bad_paging(query, message):
    services = FakeServices()
    response = client_for(services).get("/good/list" + query)
    assert response.status_code == 400
    assert response.get_json()["message"] == message
    assert services.calls == []


def test_list_reports_every_error_as_internal():
    services = FakeServices({"list": GoodsNotFoundError()})
    response = client_for(services).get("/good/list")
    assert response.status_code == 500
    assert response.get_json()["details"] == "goods not found"


def test_reprioritize_wraps_priorities():
    services = FakeServices()
    response = client_for(services).patch(
        "/good/reprioritize?id=2&projectId=1", json={"newPriority": 5}
    )
    assert response.status_code == 200
    assert response.get_json() == {"priorities": [{"id": 2, "priority": 5}]}
    assert services.calls == [("reprioritize", 2, 1, 5)]


@pytest.mark.parametrize("body", [{"newPriority": 0}, {}, {"newPriority": "5"}])
def test_reprioritize_rejects_bad_body(body):
    services = FakeServices()
    response = client_for(services).patch("/good/reprioritize?id=2&projectId=1", json=body)
    assert response.status_code == 400
    assert response.get_json()["message"] == "Incorrect body"
    assert services.calls == []


def test_reprioritize_not_found():
    services = FakeServices({"reprioritize": GoodsNotFoundError()})
    response = client_for(services).patch(
        "/good/reprioritize?id=2&projectId=1", json={"newPriority": 5}
    )
    assert response.status_code == 404
    assert response.get_json()["code"] == 3