from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger("peer_rating.telemetry")


def build_event(
    name: str,
    *,
    cycle_month: str | None = None,
    requester_id: str | None = None,
    executor_id: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> dict[str, Any]:
    payload = {
        "type": "event",
        "name": name,
        "cycleMonth": cycle_month,
        "requesterId": requester_id,
        "executorId": executor_id,
        "attributes": attributes or {},
    }
    return payload


def emit_event(
    name: str,
    *,
    cycle_month: str | None = None,
    requester_id: str | None = None,
    executor_id: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> dict[str, Any]:
    payload = build_event(
        name,
        cycle_month=cycle_month,
        requester_id=requester_id,
        executor_id=executor_id,
        attributes=attributes,
    )
    logger.info(json.dumps(payload, sort_keys=True, ensure_ascii=False))
    return payload


def build_metric(
    name: str,
    value: float,
    *,
    cycle_month: str | None = None,
    requester_id: str | None = None,
    executor_id: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> dict[str, Any]:
    payload = {
        "type": "metric",
        "name": name,
        "value": value,
        "cycleMonth": cycle_month,
        "requesterId": requester_id,
        "executorId": executor_id,
        "attributes": attributes or {},
    }
    return payload


def emit_metric(
    name: str,
    value: float,
    *,
    cycle_month: str | None = None,
    requester_id: str | None = None,
    executor_id: str | None = None,
    attributes: dict[str, Any] | None = None,
) -> dict[str, Any]:
    payload = build_metric(
        name,
        value,
        cycle_month=cycle_month,
        requester_id=requester_id,
        executor_id=executor_id,
        attributes=attributes,
    )
    logger.info(json.dumps(payload, sort_keys=True, ensure_ascii=False))
    return payload
