from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from peer_rating.clients.leancloud import LeanCloudClient, date_value

INSTANCE_CLASS = "/1.1/classes/RatingInstance"


@dataclass(frozen=True)
class RatingInstanceRecord:
    id: str
    requester_id: str
    executor_id: str
    cycle_month: str
    template_id: str
    submitted_at: str | None
    updated_at: str | None


def _normalize_date(raw: Any) -> str | None:
    if isinstance(raw, dict) and raw.get("__type") == "Date":
        return raw.get("iso")
    if isinstance(raw, dict):
        return raw.get("iso") or raw.get("value")
    if isinstance(raw, str):
        return raw
    return None


def _instance_from_lc(payload: dict[str, Any]) -> RatingInstanceRecord:
    return RatingInstanceRecord(
        id=payload["objectId"],
        requester_id=payload.get("requesterId", ""),
        executor_id=payload.get("executorId", ""),
        cycle_month=payload.get("cycleMonth", ""),
        template_id=payload.get("templateId", ""),
        submitted_at=_normalize_date(payload.get("submittedAt")),
        updated_at=_normalize_date(payload.get("updatedAt")),
    )


class RatingInstanceRepository:
    def __init__(self, client: LeanCloudClient) -> None:
        self._client = client

    async def find_by_natural_key(
        self, *, requester_id: str, executor_id: str, cycle_month: str
    ) -> RatingInstanceRecord | None:
        results = await self._client.query(
            INSTANCE_CLASS,
            {
                "requesterId": requester_id,
                "executorId": executor_id,
                "cycleMonth": cycle_month,
            },
            limit=1,
        )
        if not results:
            return None
        return _instance_from_lc(results[0])

    async def list_for_executor(
        self, executor_id: str, cycle_month: str
    ) -> list[RatingInstanceRecord]:
        results = await self._client.query(
            INSTANCE_CLASS, {"executorId": executor_id, "cycleMonth": cycle_month}
        )
        return [_instance_from_lc(item) for item in results]

    async def list_for_requester(
        self, requester_id: str, cycle_month: str
    ) -> list[RatingInstanceRecord]:
        results = await self._client.query(
            INSTANCE_CLASS, {"requesterId": requester_id, "cycleMonth": cycle_month}
        )
        return [_instance_from_lc(item) for item in results]

    async def list_for_cycles(self, cycle_months: list[str]) -> list[RatingInstanceRecord]:
        results = await self._client.query(
            INSTANCE_CLASS, {"cycleMonth": {"$in": cycle_months}}
        )
        return [_instance_from_lc(item) for item in results]

    async def upsert(
        self,
        *,
        requester_id: str,
        executor_id: str,
        cycle_month: str,
        template_id: str,
        submitted_at: str,
    ) -> RatingInstanceRecord:
        record = await self._client.upsert(
            INSTANCE_CLASS,
            match={
                "requesterId": requester_id,
                "executorId": executor_id,
                "cycleMonth": cycle_month,
            },
            payload={
                "templateId": template_id,
                "submittedAt": date_value(submitted_at),
            },
        )
        return _instance_from_lc(record)
