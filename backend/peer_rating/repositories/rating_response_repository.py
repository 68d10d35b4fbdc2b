from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from peer_rating.clients.leancloud import LeanCloudClient

RESPONSE_CLASS = "/1.1/classes/RatingResponse"
IN_QUERY_CHUNK = 100


@dataclass(frozen=True)
class RatingResponseRecord:
    id: str
    instance_id: str
    field_id: str
    value_score: float | None
    value_text: str | None


def _normalize_score(raw: Any) -> float | None:
    # bool is an int subclass but never a score
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    return raw


def _response_from_lc(payload: dict[str, Any]) -> RatingResponseRecord:
    return RatingResponseRecord(
        id=payload["objectId"],
        instance_id=payload.get("instanceId", ""),
        field_id=payload.get("fieldId", ""),
        value_score=_normalize_score(payload.get("valueScore")),
        value_text=payload.get("valueText"),
    )


class RatingResponseRepository:
    def __init__(self, client: LeanCloudClient) -> None:
        self._client = client

    async def list_for_instance(self, instance_id: str) -> list[RatingResponseRecord]:
        results = await self._client.query(RESPONSE_CLASS, {"instanceId": instance_id})
        return [_response_from_lc(item) for item in results]

    async def list_for_instances(
        self, instance_ids: list[str]
    ) -> list[RatingResponseRecord]:
        records: list[RatingResponseRecord] = []
        for offset in range(0, len(instance_ids), IN_QUERY_CHUNK):
            chunk = instance_ids[offset : offset + IN_QUERY_CHUNK]
            results = await self._client.query(
                RESPONSE_CLASS, {"instanceId": {"$in": chunk}}
            )
            records.extend(_response_from_lc(item) for item in results)
        return records

    async def upsert(
        self,
        *,
        instance_id: str,
        field_id: str,
        value_score: float | None,
        value_text: str | None,
    ) -> RatingResponseRecord:
        record = await self._client.upsert(
            RESPONSE_CLASS,
            match={"instanceId": instance_id, "fieldId": field_id},
            payload={"valueScore": value_score, "valueText": value_text},
        )
        return _response_from_lc(record)
