from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone

from peer_rating.models.rating import RatingEntryInput
from peer_rating.repositories.rating_instance_repository import RatingInstanceRepository
from peer_rating.repositories.rating_response_repository import RatingResponseRepository
from peer_rating.services.cycle_window import CycleWindowValidator
from peer_rating.services.template_resolver import TemplateResolver
from peer_rating.telemetry.otel import start_span
from peer_rating.telemetry.tracing import emit_metric

logger = logging.getLogger(__name__)


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _gather_settled(*aws):
    # Every write settles before the first failure is raised.
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


class SubmissionCoordinator:
    """Persists a requester's ratings for a cycle.

    Every write is an upsert on a natural key, so a batch can be resubmitted
    or edited any number of times while the cycle is open and still leaves
    one instance per (requester, executor, cycle) and one response per
    (instance, field).
    """

    def __init__(
        self,
        templates: TemplateResolver,
        instances: RatingInstanceRepository,
        responses: RatingResponseRepository,
        validator: CycleWindowValidator,
        *,
        max_concurrency: int = 8,
    ) -> None:
        self._templates = templates
        self._instances = instances
        self._responses = responses
        self._validator = validator
        self._max_concurrency = max_concurrency

    async def submit(
        self,
        requester_id: str,
        cycle_month: str,
        entries: list[RatingEntryInput],
    ) -> None:
        self._validator.validate(cycle_month)
        if not entries:
            return
        with start_span(
            "rating.submit",
            {"requester_id": requester_id, "cycle_month": cycle_month},
        ):
            template_ids = sorted({entry.templateId for entry in entries})
            await asyncio.gather(*(self._templates.get_strict(item) for item in template_ids))

            semaphore = asyncio.Semaphore(self._max_concurrency)
            submitted_at = _utc_now()

            async def _bounded(entry: RatingEntryInput) -> None:
                async with semaphore:
                    await self._persist_entry(requester_id, cycle_month, entry, submitted_at)

            await _gather_settled(*(_bounded(entry) for entry in entries))

        emit_metric(
            "rating.submission_entries",
            len(entries),
            cycle_month=cycle_month,
            requester_id=requester_id,
            attributes={"responses": sum(len(entry.responses) for entry in entries)},
        )

    async def _persist_entry(
        self,
        requester_id: str,
        cycle_month: str,
        entry: RatingEntryInput,
        submitted_at: str,
    ) -> None:
        instance = await self._instances.upsert(
            requester_id=requester_id,
            executor_id=entry.executorId,
            cycle_month=cycle_month,
            template_id=entry.templateId,
            submitted_at=submitted_at,
        )
        await _gather_settled(
            *(
                self._responses.upsert(
                    instance_id=instance.id,
                    field_id=response.field_id,
                    value_score=response.value_score,
                    value_text=response.value_text,
                )
                for response in entry.responses
            )
        )
        logger.info(
            f"Saved rating instance={instance.id} executor={entry.executorId} "
            f"cycle={cycle_month} responses={len(entry.responses)}"
        )
