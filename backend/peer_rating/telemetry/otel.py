from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any

logger = logging.getLogger("peer_rating.telemetry")


@contextmanager
def start_span(name: str, attributes: dict[str, Any] | None = None):
    span = {"name": name, "attributes": dict(attributes or {}), "status": "ok"}
    started = time.perf_counter()
    try:
        yield span
    except Exception:
        span["status"] = "error"
        raise
    finally:
        span["duration_ms"] = round((time.perf_counter() - started) * 1000, 3)
        logger.debug(
            "span %s status=%s duration_ms=%s", name, span["status"], span["duration_ms"]
        )
