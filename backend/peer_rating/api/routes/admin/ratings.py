from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from peer_rating.api.deps.admin_auth import AdminAuth
from peer_rating.api.deps.engine import get_engine
from peer_rating.services.rating_engine import RatingEngine
from peer_rating.services.statistics import ExecutorOverview, MonthlyStats

router = APIRouter(prefix="/ratings", tags=["admin-ratings"], dependencies=[AdminAuth])


def _stats_response(executor_id: str, cycle_month: str, stats: MonthlyStats) -> dict[str, Any]:
    return {
        "executorId": executor_id,
        "cycleMonth": cycle_month,
        "overall_avg": stats.overall_avg,
        "field_avg": stats.field_avg,
        "rater_count": stats.rater_count,
        "sample_size": stats.sample_size,
    }


def _overview_response(item: ExecutorOverview) -> dict[str, Any]:
    return {
        "executorId": item.executor_id,
        "executorName": item.executor_name,
        "positionName": item.position_name,
        "overall_avg": item.overall_avg,
        "rater_count": item.rater_count,
        "sample_size": item.sample_size,
        "lastSubmitted": item.last_submitted,
    }


@router.get("/executors/{executor_id}/stats")
async def get_executor_stats(
    executor_id: str,
    cycle_month: str = Query(..., alias="cycleMonth"),
    engine: RatingEngine = Depends(get_engine),
):
    stats = await engine.statistics.compute_executor_monthly_stats(executor_id, cycle_month)
    return _stats_response(executor_id, cycle_month, stats)


@router.get("/overview")
async def get_overview(
    cycle_month: str | None = Query(None, alias="cycleMonth"),
    department: str | None = None,
    position: str | None = None,
    engine: RatingEngine = Depends(get_engine),
):
    items = await engine.statistics.list_executors_overview(
        cycle_month, department=department, position=position
    )
    return {"cycleMonth": cycle_month, "items": [_overview_response(item) for item in items]}
