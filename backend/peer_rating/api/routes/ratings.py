from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, Response, status

from peer_rating.api.deps.engine import get_engine
from peer_rating.api.deps.requester import require_requester
from peer_rating.models.rating import SubmitSessionRequest
from peer_rating.repositories.rating_instance_repository import RatingInstanceRecord
from peer_rating.repositories.rating_response_repository import RatingResponseRecord
from peer_rating.repositories.rating_template_repository import (
    RatingField,
    RatingTemplateRecord,
)
from peer_rating.services.pending import PendingExecutor
from peer_rating.services.rating_engine import RatingEngine
from peer_rating.services.session_assembler import SessionItem

router = APIRouter(prefix="/ratings", tags=["ratings"])


def _field_response(item: RatingField) -> dict[str, Any]:
    return {
        "id": item.id,
        "type": item.type,
        "label": item.label,
        "description": item.description,
        "required": item.required,
        "order": item.order,
        "mode": item.mode,
        "options": [
            {"label": option.label, "score": option.score, "description": option.description}
            for option in item.options
        ],
        "min": item.min,
        "max": item.max,
        "step": item.step,
    }


def _template_response(record: RatingTemplateRecord | None) -> dict[str, Any] | None:
    if record is None:
        return None
    return {
        "id": record.id,
        "name": record.name,
        "department": record.department,
        "position": record.position,
        "version": record.version,
        "isActive": record.is_active,
        "fields": [_field_response(item) for item in record.fields],
    }


def _instance_response(record: RatingInstanceRecord | None) -> dict[str, Any] | None:
    if record is None:
        return None
    return {
        "id": record.id,
        "requesterId": record.requester_id,
        "executorId": record.executor_id,
        "cycleMonth": record.cycle_month,
        "templateId": record.template_id,
        "submittedAt": record.submitted_at,
        "updatedAt": record.updated_at,
    }


def _response_item(record: RatingResponseRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "instanceId": record.instance_id,
        "fieldId": record.field_id,
        "valueScore": record.value_score,
        "valueText": record.value_text,
    }


def _session_item_response(item: SessionItem) -> dict[str, Any]:
    return {
        "executorId": item.executor_id,
        "executorName": item.display_name,
        "executorTitle": item.display_title,
        "executorPosition": item.display_position,
        "template": _template_response(item.template),
        "instance": _instance_response(item.instance),
        "responses": (
            [_response_item(record) for record in item.responses]
            if item.responses is not None
            else None
        ),
    }


def _pending_response(item: PendingExecutor) -> dict[str, Any]:
    return {"executorId": item.executor_id, "executorName": item.display_name}


@router.get("/cycles")
async def get_cycles(engine: RatingEngine = Depends(get_engine)):
    return {
        "current": engine.validator.current_cycle_month(),
        "previous": engine.validator.previous_cycle_month(),
    }


@router.get("/session")
async def get_session(
    cycle_month: str = Query(..., alias="cycleMonth"),
    requester_id: str = Depends(require_requester),
    engine: RatingEngine = Depends(get_engine),
):
    items = await engine.sessions.assemble_session(requester_id, cycle_month)
    return {
        "cycleMonth": cycle_month,
        "items": [_session_item_response(item) for item in items],
    }


@router.post("/session", status_code=status.HTTP_204_NO_CONTENT)
async def submit_session(
    payload: SubmitSessionRequest,
    requester_id: str = Depends(require_requester),
    engine: RatingEngine = Depends(get_engine),
):
    await engine.submissions.submit(requester_id, payload.cycleMonth, payload.entries)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/pending")
async def list_pending(
    cycle_month: str = Query(..., alias="cycleMonth"),
    requester_id: str = Depends(require_requester),
    engine: RatingEngine = Depends(get_engine),
):
    items = await engine.pending.list_pending(requester_id, cycle_month)
    return {"cycleMonth": cycle_month, "items": [_pending_response(item) for item in items]}
