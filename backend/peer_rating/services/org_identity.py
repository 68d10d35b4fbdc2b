from __future__ import annotations

import asyncio

from peer_rating.repositories.org_directory_repository import (
    OrgDirectoryRepository,
    OrgUnitRecord,
)


def _candidates(value: str, unit: OrgUnitRecord | None) -> set[str]:
    candidates = {value}
    if unit:
        if unit.code:
            candidates.add(unit.code)
        if unit.name:
            candidates.add(unit.name)
    return candidates


def _name_to_code(units: list[OrgUnitRecord]) -> dict[str, str]:
    return {unit.name: unit.code for unit in units if unit.name and unit.code}


class OrgIdentityResolver:
    """Department/position code <-> display name reconciliation.

    Templates and org data are edited independently, so either side may be
    keyed by code or by display name. Every match against org identity goes
    through this class.
    """

    def __init__(self, directory: OrgDirectoryRepository) -> None:
        self._directory = directory

    async def department_candidates(self, department: str) -> set[str]:
        unit = await self._directory.find_department(department)
        return _candidates(department, unit)

    async def position_candidates(self, position: str) -> set[str]:
        unit = await self._directory.find_position(position)
        return _candidates(position, unit)

    async def candidates(self, department: str, position: str) -> tuple[set[str], set[str]]:
        departments, positions = await asyncio.gather(
            self.department_candidates(department),
            self.position_candidates(position),
        )
        return departments, positions

    async def department_codes(self, names: set[str]) -> dict[str, str]:
        if not names:
            return {}
        units = await self._directory.departments_by_names(sorted(names))
        return _name_to_code(units)

    async def position_codes(self, names: set[str]) -> dict[str, str]:
        if not names:
            return {}
        units = await self._directory.positions_by_names(sorted(names))
        return _name_to_code(units)

    async def position_names(self, codes: set[str]) -> dict[str, str]:
        if not codes:
            return {}
        units = await self._directory.positions_by_codes(sorted(codes))
        return {unit.code: unit.name for unit in units if unit.code and unit.name}
