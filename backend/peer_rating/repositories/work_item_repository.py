from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from peer_rating.clients.leancloud import LeanCloudClient, date_value

COMPLETED = "completed"


@dataclass(frozen=True)
class WorkItemRecord:
    id: str
    created_by: str
    assignee_id: str | None
    status: str
    completed_at: str | None


@dataclass(frozen=True)
class WorkItemAssigneeRecord:
    requirement_id: str
    user_id: str
    user_position: str | None


def _normalize_date(raw: Any) -> str | None:
    if isinstance(raw, dict):
        return raw.get("iso")
    if isinstance(raw, str):
        return raw
    return None


def _work_item_from_lc(payload: dict[str, Any]) -> WorkItemRecord:
    return WorkItemRecord(
        id=payload["objectId"],
        created_by=payload.get("createdBy", ""),
        assignee_id=payload.get("assigneeId") or None,
        status=payload.get("status", ""),
        completed_at=_normalize_date(payload.get("completedAt")),
    )


def _assignee_from_lc(payload: dict[str, Any]) -> WorkItemAssigneeRecord:
    return WorkItemAssigneeRecord(
        requirement_id=payload.get("requirementId", ""),
        user_id=payload.get("userId", ""),
        user_position=payload.get("userPosition") or None,
    )


class WorkItemRepository:
    def __init__(self, client: LeanCloudClient) -> None:
        self._client = client

    async def list_completed_by_requester(
        self, requester_id: str, *, start: str, end: str
    ) -> list[WorkItemRecord]:
        """Completed requirements created by ``requester_id`` in ``[start, end)``."""
        where = {
            "status": COMPLETED,
            "createdBy": requester_id,
            "completedAt": {"$gte": date_value(start), "$lt": date_value(end)},
        }
        results = await self._client.query(
            "/1.1/classes/Requirement",
            where,
            keys=["createdBy", "assigneeId", "status", "completedAt"],
        )
        return [_work_item_from_lc(item) for item in results]

    async def list_assignees(
        self, requirement_ids: list[str]
    ) -> list[WorkItemAssigneeRecord]:
        if not requirement_ids:
            return []
        results = await self._client.query(
            "/1.1/classes/RequirementAssignee",
            {"requirementId": {"$in": requirement_ids}},
        )
        return [_assignee_from_lc(item) for item in results if item.get("userId")]
