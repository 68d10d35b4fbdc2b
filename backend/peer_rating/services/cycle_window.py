from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable

from peer_rating.errors import ValidationError

CYCLE_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _month_start(year: int, month: int) -> datetime:
    # month may overflow by one in either direction
    year += (month - 1) // 12
    month = (month - 1) % 12 + 1
    return datetime(year, month, 1, tzinfo=timezone.utc)


def _format(moment: datetime) -> str:
    return f"{moment.year:04d}-{moment.month:02d}"


def _to_iso(moment: datetime) -> str:
    return moment.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def parse_cycle_month(cycle_month: str) -> datetime:
    match = CYCLE_PATTERN.match(cycle_month or "")
    if not match:
        raise ValidationError(f"Invalid cycle month {cycle_month!r}; expected YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid cycle month {cycle_month!r}; month out of range")
    if year < 1:
        raise ValidationError(f"Invalid cycle month {cycle_month!r}; year out of range")
    return _month_start(year, month)


class CycleWindowValidator:
    """Ratings may only target the current or the previous UTC calendar month."""

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._clock = clock

    def _now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            return now.replace(tzinfo=timezone.utc)
        return now.astimezone(timezone.utc)

    def current_cycle_month(self) -> str:
        now = self._now()
        return _format(_month_start(now.year, now.month))

    def previous_cycle_month(self) -> str:
        now = self._now()
        return _format(_month_start(now.year, now.month - 1))

    def allowed_cycle_months(self) -> list[str]:
        return [self.current_cycle_month(), self.previous_cycle_month()]

    def validate(self, cycle_month: str) -> None:
        parse_cycle_month(cycle_month)
        if cycle_month not in self.allowed_cycle_months():
            raise ValidationError(
                f"Cycle {cycle_month} is closed; only the current or previous month can be rated"
            )

    def window(self, cycle_month: str) -> tuple[str, str]:
        """Half-open UTC window ``[start, next_start)`` as ISO-8601 strings."""
        start = parse_cycle_month(cycle_month)
        try:
            next_start = _month_start(start.year, start.month + 1)
        except ValueError as exc:
            raise ValidationError(f"Cycle {cycle_month} has no following month") from exc
        return _to_iso(start), _to_iso(next_start)
