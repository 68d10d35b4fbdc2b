from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from peer_rating.clients.leancloud import LeanCloudClient, LeanCloudError

TEMPLATE_CLASS = "/1.1/classes/RatingTemplate"


@dataclass(frozen=True)
class RatingOption:
    label: str
    score: float
    description: str | None = None


@dataclass(frozen=True)
class RatingField:
    id: str
    type: str
    label: str
    order: int
    description: str | None = None
    required: bool = False
    mode: str | None = None
    options: list[RatingOption] = field(default_factory=list)
    min: float | None = None
    max: float | None = None
    step: float | None = None

    @property
    def is_scored(self) -> bool:
        return self.type == "rating"


@dataclass(frozen=True)
class RatingTemplateRecord:
    id: str
    name: str
    department: str
    position: str
    version: int
    is_active: bool
    fields: list[RatingField]
    updated_at: str | None = None


def _option_from_lc(payload: dict[str, Any]) -> RatingOption:
    return RatingOption(
        label=payload.get("label", ""),
        score=payload.get("score", 0),
        description=payload.get("description"),
    )


def _field_from_lc(payload: dict[str, Any], index: int) -> RatingField:
    return RatingField(
        id=payload.get("id", ""),
        type=payload.get("type", "rating"),
        label=payload.get("label", ""),
        order=int(payload.get("order", index) or 0),
        description=payload.get("description"),
        required=bool(payload.get("required", False)),
        mode=payload.get("mode"),
        options=[_option_from_lc(item) for item in payload.get("options") or []],
        min=payload.get("min"),
        max=payload.get("max"),
        step=payload.get("step"),
    )


def _template_from_lc(payload: dict[str, Any]) -> RatingTemplateRecord:
    schema = payload.get("schema") or {}
    raw_fields = (schema.get("fields") or []) if isinstance(schema, dict) else []
    fields = [_field_from_lc(item, index) for index, item in enumerate(raw_fields)]
    return RatingTemplateRecord(
        id=payload["objectId"],
        name=payload.get("name", ""),
        department=payload.get("department", ""),
        position=payload.get("position", ""),
        version=int(payload.get("version", 1) or 1),
        is_active=bool(payload.get("isActive", False)),
        fields=sorted(fields, key=lambda item: item.order),
        updated_at=payload.get("updatedAt"),
    )


class RatingTemplateRepository:
    def __init__(self, client: LeanCloudClient) -> None:
        self._client = client

    async def find_latest_active(
        self, *, departments: list[str], positions: list[str]
    ) -> RatingTemplateRecord | None:
        where = {
            "isActive": True,
            "department": {"$in": departments},
            "position": {"$in": positions},
        }
        results = await self._client.query(
            TEMPLATE_CLASS, where, order="-version", limit=1
        )
        if not results:
            return None
        return _template_from_lc(results[0])

    async def get_template(self, template_id: str) -> RatingTemplateRecord | None:
        try:
            payload = await self._client.get_json(f"{TEMPLATE_CLASS}/{template_id}")
        except LeanCloudError as exc:
            if exc.status_code == 404:
                return None
            raise
        if not payload:
            return None
        return _template_from_lc(payload)
