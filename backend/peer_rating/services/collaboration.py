from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from peer_rating.repositories.org_directory_repository import (
    OrgDirectoryRepository,
    UserProfileRecord,
)
from peer_rating.repositories.work_item_repository import (
    WorkItemAssigneeRecord,
    WorkItemRepository,
)
from peer_rating.services.cycle_window import CycleWindowValidator
from peer_rating.services.org_identity import OrgIdentityResolver
from peer_rating.telemetry.tracing import emit_event

logger = logging.getLogger(__name__)

GENERAL = "general"


@dataclass(frozen=True)
class Collaborator:
    executor_id: str
    department: str
    position: str
    display_name: str | None = None
    display_title: str | None = None
    display_position: str | None = None


def _assignment_positions(
    assignees: list[WorkItemAssigneeRecord], position_codes: dict[str, str]
) -> dict[str, str]:
    # first mapped association wins; unmapped names are not codes
    positions: dict[str, str] = {}
    for row in assignees:
        code = position_codes.get(row.user_position) if row.user_position else None
        if code and row.user_id not in positions:
            positions[row.user_id] = code
    return positions


class CollaborationResolver:
    def __init__(
        self,
        work_items: WorkItemRepository,
        directory: OrgDirectoryRepository,
        identity: OrgIdentityResolver,
        validator: CycleWindowValidator,
    ) -> None:
        self._work_items = work_items
        self._directory = directory
        self._identity = identity
        self._validator = validator

    async def collaborator_ids(
        self, requester_id: str, cycle_month: str
    ) -> tuple[list[str], list[WorkItemAssigneeRecord]]:
        """Distinct executor ids from completed work items in the cycle window.

        Also returns the multi-assignee rows so callers can reuse the
        positions recorded on them.
        """
        self._validator.validate(cycle_month)
        start, end = self._validator.window(cycle_month)
        items = await self._work_items.list_completed_by_requester(
            requester_id, start=start, end=end
        )
        if not items:
            return [], []
        assignees = await self._work_items.list_assignees([item.id for item in items])
        candidates = [item.assignee_id for item in items if item.assignee_id]
        candidates.extend(row.user_id for row in assignees)
        return list(dict.fromkeys(candidates)), assignees

    async def resolve(self, requester_id: str, cycle_month: str) -> list[Collaborator]:
        executor_ids, assignees = await self.collaborator_ids(requester_id, cycle_month)
        if not executor_ids:
            return []

        users = await self._directory.get_users(executor_ids)
        department_names = {
            user.department for user in users if user.department and not user.department_code
        }
        position_names = {
            user.position for user in users if user.position and not user.position_code
        }
        position_names.update(row.user_position for row in assignees if row.user_position)
        department_codes, position_codes = await asyncio.gather(
            self._identity.department_codes(department_names),
            self._identity.position_codes(position_names),
        )
        fallback_positions = _assignment_positions(assignees, position_codes)

        by_id = {user.id: user for user in users}
        collaborators: list[Collaborator] = []
        for executor_id in executor_ids:
            user = by_id.get(executor_id)
            if user is None:
                self._report_fallback(executor_id, cycle_month, reason="user_missing")
                collaborators.append(
                    Collaborator(
                        executor_id=executor_id,
                        department=GENERAL,
                        position=GENERAL,
                    )
                )
                continue
            collaborators.append(
                self._collaborator(
                    user,
                    department_codes=department_codes,
                    position_codes=position_codes,
                    fallback_position=fallback_positions.get(executor_id),
                    cycle_month=cycle_month,
                )
            )
        logger.info(
            f"Resolved {len(collaborators)} executors for requester={requester_id} cycle={cycle_month}"
        )
        return collaborators

    def _collaborator(
        self,
        user: UserProfileRecord,
        *,
        department_codes: dict[str, str],
        position_codes: dict[str, str],
        fallback_position: str | None,
        cycle_month: str,
    ) -> Collaborator:
        department = (
            user.department_code
            or (department_codes.get(user.department) if user.department else None)
            or user.department
        )
        position = (
            user.position_code
            or (position_codes.get(user.position) if user.position else None)
            or user.position
            or fallback_position
        )
        if not department or not position:
            self._report_fallback(user.id, cycle_month, reason="org_incomplete")
        return Collaborator(
            executor_id=user.id,
            department=department or GENERAL,
            position=position or GENERAL,
            display_name=user.full_name or "",
            display_title=user.title,
            display_position=user.position,
        )

    def _report_fallback(self, executor_id: str, cycle_month: str, *, reason: str) -> None:
        logger.warning(
            f"Executor {executor_id} has incomplete org identity ({reason}); using '{GENERAL}'"
        )
        emit_event(
            "rating.identity_fallback",
            cycle_month=cycle_month,
            executor_id=executor_id,
            attributes={"reason": reason},
        )
