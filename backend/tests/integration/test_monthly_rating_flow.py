from __future__ import annotations

import itertools
import json
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fastapi import status

from peer_rating.api.deps.engine import get_engine
from peer_rating.clients.leancloud import LeanCloudClient
from peer_rating.main import app
from peer_rating.services.rating_engine import Repositories, build_engine

IN_MARCH = {"__type": "Date", "iso": "2024-03-10T08:00:00.000Z"}
IN_FEBRUARY = {"__type": "Date", "iso": "2024-02-20T08:00:00.000Z"}


def _plain(value: Any) -> Any:
    if isinstance(value, dict) and value.get("__type") == "Date":
        return value.get("iso")
    return value


def _matches(row: dict[str, Any], where: dict[str, Any]) -> bool:
    for key, condition in where.items():
        if key == "$or":
            if not any(_matches(row, clause) for clause in condition):
                return False
            continue
        if key == "$and":
            if not all(_matches(row, clause) for clause in condition):
                return False
            continue
        value = _plain(row.get(key))
        if isinstance(condition, dict) and "__type" not in condition:
            for op, arg in condition.items():
                if op == "$in" and value not in arg:
                    return False
                if op == "$gte" and (value is None or value < _plain(arg)):
                    return False
                if op == "$lt" and (value is None or value >= _plain(arg)):
                    return False
            continue
        if value != _plain(condition):
            return False
    return True


class InMemoryLeanCloud:
    """Just enough of the LeanCloud REST API for the rating repositories."""

    def __init__(self) -> None:
        self.classes: dict[str, list[dict[str, Any]]] = {}
        self._ids = itertools.count(1)

    def seed(self, class_name: str, *rows: dict[str, Any]) -> None:
        self.classes.setdefault(class_name, []).extend(rows)

    def rows(self, class_name: str) -> list[dict[str, Any]]:
        return self.classes.get(class_name, [])

    def handler(self, request: httpx.Request) -> httpx.Response:
        parts = request.url.path.strip("/").split("/")
        if parts[:2] == ["1.1", "users"]:
            class_name, object_id = "_User", None
        else:
            class_name = parts[2]
            object_id = parts[3] if len(parts) > 3 else None

        if request.method == "GET" and object_id is None:
            if class_name not in self.classes:
                return httpx.Response(404, json={"code": 101, "error": "Class not found."})
            where = json.loads(request.url.params.get("where", "{}"))
            results = [row for row in self.classes[class_name] if _matches(row, where)]
            order = request.url.params.get("order")
            if order:
                field = order.lstrip("-")
                results.sort(key=lambda row: row.get(field), reverse=order.startswith("-"))
            skip = int(request.url.params.get("skip", 0))
            limit = request.url.params.get("limit")
            if limit is not None:
                results = results[skip : skip + int(limit)]
            return httpx.Response(200, json={"results": results})

        if request.method == "GET":
            for row in self.rows(class_name):
                if row["objectId"] == object_id:
                    return httpx.Response(200, json=row)
            return httpx.Response(404, json={"code": 101, "error": "Object not found."})

        payload = json.loads(request.content)
        if request.method == "POST":
            rows = self.classes.setdefault(class_name, [])
            if any(row.get("naturalKey") == payload.get("naturalKey") for row in rows):
                return httpx.Response(400, json={"code": 137, "error": "duplicate value"})
            object_id = f"{class_name.lower()}-{next(self._ids)}"
            rows.append({**payload, "objectId": object_id, "updatedAt": "2024-03-15T09:30:00.000Z"})
            return httpx.Response(
                201, json={"objectId": object_id, "createdAt": "2024-03-15T09:30:00.000Z"}
            )

        if request.method == "PUT":
            for row in self.rows(class_name):
                if row["objectId"] == object_id:
                    row.update(payload)
                    return httpx.Response(200, json={"updatedAt": "2024-03-15T09:31:00.000Z"})
            return httpx.Response(404, json={"code": 101, "error": "Object not found."})

        return httpx.Response(405)


def _template(object_id, *, department, position, version, is_active=True, fields=None):
    return {
        "objectId": object_id,
        "name": f"{department}/{position}",
        "department": department,
        "position": position,
        "version": version,
        "isActive": is_active,
        "schema": {
            "fields": fields
            or [{"id": "F1", "type": "rating", "label": "Quality", "order": 0}]
        },
    }


@pytest.fixture
def lean_store():
    store = InMemoryLeanCloud()
    store.seed(
        "Requirement",
        {
            "objectId": "w1",
            "createdBy": "R",
            "assigneeId": "E1",
            "status": "completed",
            "completedAt": IN_MARCH,
        },
        {
            "objectId": "w2",
            "createdBy": "R",
            "assigneeId": "E2",
            "status": "completed",
            "completedAt": IN_FEBRUARY,
        },
        {
            "objectId": "w3",
            "createdBy": "R",
            "assigneeId": "E4",
            "status": "in_progress",
            "completedAt": IN_MARCH,
        },
    )
    store.seed(
        "RequirementAssignee",
        {"objectId": "a1", "requirementId": "w1", "userId": "E3", "userPosition": "Analyst"},
    )
    store.seed(
        "_User",
        {"objectId": "E1", "fullName": "Ann", "department": "Technology", "position": "Developer"},
        {"objectId": "E2", "fullName": "Bob", "departmentCode": "tech", "positionCode": "dev"},
    )
    store.seed("Department", {"objectId": "d1", "code": "tech", "name": "Technology"})
    store.seed(
        "Position",
        {"objectId": "p1", "code": "dev", "name": "Developer"},
        {"objectId": "p2", "code": "ana", "name": "Analyst"},
    )
    store.seed(
        "RatingTemplate",
        _template("T1", department="tech", position="dev", version=1),
        _template(
            "T2",
            department="tech",
            position="dev",
            version=2,
            fields=[
                {"id": "F2", "type": "text", "label": "Comment", "order": 1},
                {"id": "F1", "type": "rating", "label": "Quality", "order": 0},
            ],
        ),
        _template("T3", department="tech", position="dev", version=3, is_active=False),
        _template("T4", department="general", position="general", version=1),
    )
    return store


@pytest_asyncio.fixture
async def client(required_env, lean_store, validator):
    lean_client = LeanCloudClient(
        app_id="app",
        app_key="key",
        master_key="master",
        server_url="https://api.leancloud.cn",
        transport=httpx.MockTransport(lean_store.handler),
    )
    engine = build_engine(Repositories.from_client(lean_client), validator=validator)
    app.dependency_overrides = {get_engine: lambda: engine}
    asgi_transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=asgi_transport, base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides = {}
    await lean_client.close()


def _submit(client, requester_id, entries, cycle_month="2024-03"):
    return client.post(
        "/api/ratings/session",
        json={"cycleMonth": cycle_month, "entries": entries},
        headers={"X-User-Id": requester_id},
    )


@pytest.mark.asyncio
async def test_monthly_rating_flow(client, lean_store):
    session = await client.get(
        "/api/ratings/session", params={"cycleMonth": "2024-03"}, headers={"X-User-Id": "R"}
    )
    assert session.status_code == status.HTTP_200_OK
    items = {item["executorId"]: item for item in session.json()["items"]}
    # E2 finished in February, E4's work item is not completed.
    assert set(items) == {"E1", "E3"}
    assert items["E1"]["template"]["id"] == "T2"
    assert [field["id"] for field in items["E1"]["template"]["fields"]] == ["F1", "F2"]
    assert items["E3"]["template"]["id"] == "T4"
    assert items["E1"]["instance"] is None

    first = await _submit(
        client,
        "R",
        [
            {
                "executorId": "E1",
                "templateId": "T2",
                "responses": [
                    {"field_id": "F1", "value_score": 3},
                    {"field_id": "F2", "value_text": "solid"},
                ],
            },
            {
                "executorId": "E3",
                "templateId": "T4",
                "responses": [{"field_id": "F1", "value_score": 5}],
            },
        ],
    )
    assert first.status_code == status.HTTP_204_NO_CONTENT

    edited = await _submit(
        client,
        "R",
        [
            {
                "executorId": "E1",
                "templateId": "T2",
                "responses": [{"field_id": "F1", "value_score": 5}],
            }
        ],
    )
    assert edited.status_code == status.HTTP_204_NO_CONTENT
    assert len(lean_store.rows("RatingInstance")) == 2
    assert len(lean_store.rows("RatingResponse")) == 3

    second_rater = await _submit(
        client,
        "R2",
        [
            {
                "executorId": "E1",
                "templateId": "T2",
                "responses": [{"field_id": "F1", "value_score": 4}],
            }
        ],
    )
    assert second_rater.status_code == status.HTTP_204_NO_CONTENT

    resumed = await client.get(
        "/api/ratings/session", params={"cycleMonth": "2024-03"}, headers={"X-User-Id": "R"}
    )
    items = {item["executorId"]: item for item in resumed.json()["items"]}
    assert items["E1"]["instance"]["templateId"] == "T2"
    responses = {item["fieldId"]: item for item in items["E1"]["responses"]}
    assert responses["F1"]["valueScore"] == 5
    assert responses["F2"]["valueText"] == "solid"

    pending = await client.get(
        "/api/ratings/pending", params={"cycleMonth": "2024-03"}, headers={"X-User-Id": "R"}
    )
    assert pending.json()["items"] == []

    admin = {"X-Admin-Token": "admin-token"}
    stats = await client.get(
        "/api/admin/ratings/executors/E1/stats",
        params={"cycleMonth": "2024-03"},
        headers=admin,
    )
    assert stats.json() == {
        "executorId": "E1",
        "cycleMonth": "2024-03",
        "overall_avg": 4.5,
        "field_avg": {"F1": 4.5},
        "rater_count": 2,
        "sample_size": 2,
    }

    overview = await client.get("/api/admin/ratings/overview", headers=admin)
    ranked = overview.json()["items"]
    assert [item["executorId"] for item in ranked] == ["E3", "E1"]
    assert ranked[1]["executorName"] == "Ann"
    assert ranked[1]["rater_count"] == 2


@pytest.mark.asyncio
async def test_stats_for_unrated_executor_before_any_submission(client):
    response = await client.get(
        "/api/admin/ratings/executors/E1/stats",
        params={"cycleMonth": "2024-03"},
        headers={"X-Admin-Token": "admin-token"},
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["overall_avg"] is None
    assert response.json()["sample_size"] == 0


@pytest.mark.asyncio
async def test_submission_with_unknown_template_writes_nothing(client, lean_store):
    response = await _submit(
        client,
        "R",
        [
            {
                "executorId": "E1",
                "templateId": "missing",
                "responses": [{"field_id": "F1", "value_score": 5}],
            }
        ],
    )

    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert lean_store.rows("RatingInstance") == []
