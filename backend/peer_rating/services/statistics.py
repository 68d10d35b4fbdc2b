from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from peer_rating.repositories.org_directory_repository import OrgDirectoryRepository
from peer_rating.repositories.rating_instance_repository import (
    RatingInstanceRecord,
    RatingInstanceRepository,
)
from peer_rating.repositories.rating_response_repository import RatingResponseRepository
from peer_rating.services.cycle_window import CycleWindowValidator
from peer_rating.services.org_identity import OrgIdentityResolver
from peer_rating.telemetry.tracing import emit_metric

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MonthlyStats:
    overall_avg: float | None = None
    field_avg: dict[str, float] = field(default_factory=dict)
    rater_count: int = 0
    sample_size: int = 0


@dataclass(frozen=True)
class ExecutorOverview:
    executor_id: str
    overall_avg: float
    rater_count: int
    sample_size: int
    executor_name: str | None = None
    position_name: str | None = None
    last_submitted: str | None = None


def round_one(value: float) -> float:
    """Round half-up to one decimal place (4.25 -> 4.3)."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _mean(values: list[float]) -> float:
    return round_one(sum(values) / len(values))


class StatisticsAggregator:
    def __init__(
        self,
        instances: RatingInstanceRepository,
        responses: RatingResponseRepository,
        directory: OrgDirectoryRepository,
        identity: OrgIdentityResolver,
        validator: CycleWindowValidator,
    ) -> None:
        self._instances = instances
        self._responses = responses
        self._directory = directory
        self._identity = identity
        self._validator = validator

    async def compute_executor_monthly_stats(
        self, executor_id: str, cycle_month: str
    ) -> MonthlyStats:
        self._validator.validate(cycle_month)
        instances = await self._instances.list_for_executor(executor_id, cycle_month)
        if not instances:
            return MonthlyStats()

        responses = await self._responses.list_for_instances([item.id for item in instances])
        scores: dict[str, list[float]] = defaultdict(list)
        for response in responses:
            if response.value_score is not None:
                scores[response.field_id].append(response.value_score)
        all_scores = [score for values in scores.values() for score in values]

        stats = MonthlyStats(
            overall_avg=_mean(all_scores) if all_scores else None,
            field_avg={field_id: _mean(values) for field_id, values in scores.items()},
            rater_count=len({item.requester_id for item in instances if item.requester_id}),
            sample_size=len(all_scores),
        )
        emit_metric(
            "rating.stats_computed",
            stats.sample_size,
            cycle_month=cycle_month,
            executor_id=executor_id,
            attributes={"rater_count": stats.rater_count},
        )
        return stats

    async def list_executors_overview(
        self,
        cycle_month: str | None = None,
        *,
        department: str | None = None,
        position: str | None = None,
    ) -> list[ExecutorOverview]:
        """Per-executor summary ranked by overall average, highest first.

        ``cycle_month=None`` covers every cycle that is still open for rating.
        Executors without any numeric score are left out.
        """
        if cycle_month is None:
            cycle_months = self._validator.allowed_cycle_months()
        else:
            self._validator.validate(cycle_month)
            cycle_months = [cycle_month]

        instances = await self._instances.list_for_cycles(cycle_months)
        if not instances:
            return []
        if department or position:
            allowed = await self._directory.list_user_ids_by_org(
                department=department, position=position
            )
            instances = [item for item in instances if item.executor_id in allowed]
            if not instances:
                return []

        responses = await self._responses.list_for_instances([item.id for item in instances])
        scores_by_instance: dict[str, list[float]] = defaultdict(list)
        for response in responses:
            if response.value_score is not None:
                scores_by_instance[response.instance_id].append(response.value_score)

        by_executor: dict[str, list[RatingInstanceRecord]] = defaultdict(list)
        for instance in instances:
            by_executor[instance.executor_id].append(instance)

        summaries: dict[str, tuple[list[float], set[str], str | None]] = {}
        for executor_id, executor_instances in by_executor.items():
            scores = [
                score
                for instance in executor_instances
                for score in scores_by_instance.get(instance.id, [])
            ]
            if not scores:
                continue
            raters = {item.requester_id for item in executor_instances if item.requester_id}
            submitted = [item.submitted_at for item in executor_instances if item.submitted_at]
            summaries[executor_id] = (scores, raters, max(submitted) if submitted else None)
        if not summaries:
            return []

        users = await self._directory.get_users(list(summaries))
        users_by_id = {user.id: user for user in users}
        position_names = await self._identity.position_names(
            {user.position for user in users if user.position}
        )

        overview: list[ExecutorOverview] = []
        for executor_id, (scores, raters, last_submitted) in summaries.items():
            user = users_by_id.get(executor_id)
            position_code = user.position if user else None
            overview.append(
                ExecutorOverview(
                    executor_id=executor_id,
                    overall_avg=_mean(scores),
                    rater_count=len(raters),
                    sample_size=len(scores),
                    executor_name=user.full_name if user else None,
                    position_name=(
                        position_names.get(position_code, position_code)
                        if position_code
                        else None
                    ),
                    last_submitted=last_submitted,
                )
            )
        overview.sort(key=lambda item: item.overall_avg, reverse=True)
        logger.info(f"Built overview for cycles={cycle_months} executors={len(overview)}")
        return overview
