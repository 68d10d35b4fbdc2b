from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from peer_rating.repositories.rating_instance_repository import (
    RatingInstanceRecord,
    RatingInstanceRepository,
)
from peer_rating.repositories.rating_response_repository import (
    RatingResponseRecord,
    RatingResponseRepository,
)
from peer_rating.repositories.rating_template_repository import RatingTemplateRecord
from peer_rating.services.collaboration import CollaborationResolver, Collaborator
from peer_rating.services.cycle_window import CycleWindowValidator
from peer_rating.services.template_resolver import TemplateResolver
from peer_rating.telemetry.otel import start_span
from peer_rating.telemetry.tracing import emit_event, emit_metric

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionItem:
    executor_id: str
    template: RatingTemplateRecord | None
    instance: RatingInstanceRecord | None
    responses: list[RatingResponseRecord] | None
    display_name: str | None = None
    display_title: str | None = None
    display_position: str | None = None


class SessionAssembler:
    def __init__(
        self,
        collaboration: CollaborationResolver,
        templates: TemplateResolver,
        instances: RatingInstanceRepository,
        responses: RatingResponseRepository,
        validator: CycleWindowValidator,
        *,
        max_concurrency: int = 8,
    ) -> None:
        self._collaboration = collaboration
        self._templates = templates
        self._instances = instances
        self._responses = responses
        self._validator = validator
        self._max_concurrency = max_concurrency

    async def assemble_session(self, requester_id: str, cycle_month: str) -> list[SessionItem]:
        self._validator.validate(cycle_month)
        with start_span(
            "rating.assemble_session",
            {"requester_id": requester_id, "cycle_month": cycle_month},
        ):
            collaborators = await self._collaboration.resolve(requester_id, cycle_month)
            semaphore = asyncio.Semaphore(self._max_concurrency)

            async def _bounded(collaborator: Collaborator) -> SessionItem:
                async with semaphore:
                    return await self._item(requester_id, cycle_month, collaborator)

            items = await asyncio.gather(*(_bounded(item) for item in collaborators))

        missing = sum(1 for item in items if item.template is None)
        emit_metric(
            "rating.session_assembled",
            len(items),
            cycle_month=cycle_month,
            requester_id=requester_id,
            attributes={"missing_templates": missing},
        )
        return list(items)

    async def _item(
        self, requester_id: str, cycle_month: str, collaborator: Collaborator
    ) -> SessionItem:
        lookup, instance = await asyncio.gather(
            self._templates.resolve(collaborator.department, collaborator.position),
            self._instances.find_by_natural_key(
                requester_id=requester_id,
                executor_id=collaborator.executor_id,
                cycle_month=cycle_month,
            ),
        )
        if not lookup.found:
            logger.info(
                f"No template for executor={collaborator.executor_id} "
                f"department={collaborator.department} position={collaborator.position}"
            )
            emit_event(
                "rating.template_missing",
                cycle_month=cycle_month,
                requester_id=requester_id,
                executor_id=collaborator.executor_id,
                attributes={
                    "department": collaborator.department,
                    "position": collaborator.position,
                },
            )
        responses = None
        if instance is not None:
            responses = await self._responses.list_for_instance(instance.id)
        return SessionItem(
            executor_id=collaborator.executor_id,
            template=lookup.template,
            instance=instance,
            responses=responses,
            display_name=collaborator.display_name,
            display_title=collaborator.display_title,
            display_position=collaborator.display_position,
        )
