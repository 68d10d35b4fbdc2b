from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from peer_rating.clients.leancloud import LeanCloudClient

DEPARTMENT_CLASS = "/1.1/classes/Department"
POSITION_CLASS = "/1.1/classes/Position"
USER_PATH = "/1.1/users"


@dataclass(frozen=True)
class UserProfileRecord:
    id: str
    full_name: str | None
    title: str | None
    department: str | None
    position: str | None
    department_code: str | None
    position_code: str | None


@dataclass(frozen=True)
class OrgUnitRecord:
    code: str | None
    name: str | None


def _user_from_lc(payload: dict[str, Any]) -> UserProfileRecord:
    return UserProfileRecord(
        id=payload["objectId"],
        full_name=payload.get("fullName") or None,
        title=payload.get("title") or None,
        department=payload.get("department") or None,
        position=payload.get("position") or None,
        department_code=payload.get("departmentCode") or None,
        position_code=payload.get("positionCode") or None,
    )


def _unit_from_lc(payload: dict[str, Any]) -> OrgUnitRecord:
    return OrgUnitRecord(
        code=payload.get("code") or None,
        name=payload.get("name") or None,
    )


class OrgDirectoryRepository:
    """Read-only access to users and the department/position directory."""

    def __init__(self, client: LeanCloudClient) -> None:
        self._client = client

    async def get_users(self, user_ids: list[str]) -> list[UserProfileRecord]:
        if not user_ids:
            return []
        results = await self._client.query(
            USER_PATH, {"objectId": {"$in": user_ids}}
        )
        return [_user_from_lc(item) for item in results]

    async def list_user_ids_by_org(
        self,
        *,
        department: str | None = None,
        position: str | None = None,
    ) -> set[str]:
        clauses: list[dict[str, Any]] = []
        if department:
            clauses.append(
                {"$or": [{"department": department}, {"departmentCode": department}]}
            )
        if position:
            clauses.append(
                {"$or": [{"position": position}, {"positionCode": position}]}
            )
        where: dict[str, Any] = {"$and": clauses} if clauses else {}
        results = await self._client.query(USER_PATH, where, keys=["objectId"])
        return {item["objectId"] for item in results}

    async def departments_by_names(self, names: list[str]) -> list[OrgUnitRecord]:
        return await self._units_by(DEPARTMENT_CLASS, "name", names)

    async def positions_by_names(self, names: list[str]) -> list[OrgUnitRecord]:
        return await self._units_by(POSITION_CLASS, "name", names)

    async def positions_by_codes(self, codes: list[str]) -> list[OrgUnitRecord]:
        return await self._units_by(POSITION_CLASS, "code", codes)

    async def find_department(self, value: str) -> OrgUnitRecord | None:
        return await self._find_unit(DEPARTMENT_CLASS, value)

    async def find_position(self, value: str) -> OrgUnitRecord | None:
        return await self._find_unit(POSITION_CLASS, value)

    async def _units_by(
        self, class_path: str, field: str, values: list[str]
    ) -> list[OrgUnitRecord]:
        if not values:
            return []
        results = await self._client.query(
            class_path, {field: {"$in": values}}, keys=["code", "name"]
        )
        return [_unit_from_lc(item) for item in results]

    async def _find_unit(self, class_path: str, value: str) -> OrgUnitRecord | None:
        results = await self._client.query(
            class_path,
            {"$or": [{"code": value}, {"name": value}]},
            limit=1,
            keys=["code", "name"],
        )
        if not results:
            return None
        return _unit_from_lc(results[0])
