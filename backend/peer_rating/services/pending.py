from __future__ import annotations

from dataclasses import dataclass

from peer_rating.repositories.org_directory_repository import OrgDirectoryRepository
from peer_rating.repositories.rating_instance_repository import RatingInstanceRepository
from peer_rating.services.collaboration import CollaborationResolver


@dataclass(frozen=True)
class PendingExecutor:
    executor_id: str
    display_name: str | None


class PendingRatingsResolver:
    """Executors a requester collaborated with but has not rated yet.

    Feeds the reminder collaborator; delivering the reminder happens elsewhere.
    """

    def __init__(
        self,
        collaboration: CollaborationResolver,
        instances: RatingInstanceRepository,
        directory: OrgDirectoryRepository,
    ) -> None:
        self._collaboration = collaboration
        self._instances = instances
        self._directory = directory

    async def list_pending(self, requester_id: str, cycle_month: str) -> list[PendingExecutor]:
        executor_ids, _ = await self._collaboration.collaborator_ids(requester_id, cycle_month)
        if not executor_ids:
            return []
        rated = await self._instances.list_for_requester(requester_id, cycle_month)
        done = {item.executor_id for item in rated}
        pending_ids = [executor_id for executor_id in executor_ids if executor_id not in done]
        if not pending_ids:
            return []
        users = await self._directory.get_users(pending_ids)
        names = {user.id: user.full_name for user in users}
        return [
            PendingExecutor(executor_id=executor_id, display_name=names.get(executor_id))
            for executor_id in pending_ids
        ]
