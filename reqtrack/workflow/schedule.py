"""Duration and delay derivation for subtasks.

Durations are whole hours, rounded up. Delay status compares the actual
(or, for running subtasks, the current) time against the estimated end.

Timestamps are ISO 8601 strings. Offset-aware values are converted to
local time so they compare cleanly with naive ones and with datetime.now().
"""

import logging
import math
from dataclasses import replace
from datetime import datetime
from typing import Optional

from reqtrack.lib.constants import DELAY_MODE_LEGACY, DELAY_MODE_STRICT
from reqtrack.lib.types import DelayStatus, SubtaskStatus
from reqtrack.pm.models import Subtask

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600


class SubtaskIntegrityError(Exception):
    """Subtask data contradicts itself (e.g. completed with no actual end)."""

    def __init__(self, subtask_id: str, message: str):
        self.subtask_id = subtask_id
        super().__init__(f"[{subtask_id}] {message}")


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO 8601 date or datetime into a naive local datetime.

    Raises:
        ValueError: if the value is not ISO 8601
    """
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def calculate_duration_hours(start: Optional[str], end: Optional[str]) -> int:
    """Hours between two timestamps, rounded up. 0 unless both are set."""
    if not start or not end:
        return 0
    delta = parse_timestamp(end) - parse_timestamp(start)
    return math.ceil(abs(delta.total_seconds()) / SECONDS_PER_HOUR)


def _compare(actual: datetime, estimated: datetime) -> DelayStatus:
    if actual > estimated:
        return DelayStatus.LATE
    if actual < estimated:
        return DelayStatus.EARLY
    return DelayStatus.ON_TIME


def calculate_delay_status(
    subtask: Subtask,
    now: Optional[datetime] = None,
    mode: str = DELAY_MODE_STRICT,
) -> DelayStatus:
    """Derive the delay status of a subtask.

    Args:
        subtask: Subtask to evaluate (not modified)
        now: Current time; defaults to datetime.now()
        mode: "strict" treats a completed subtask without actual_end as an
            integrity error; "legacy" compares the current time instead

    Raises:
        SubtaskIntegrityError: completed subtask without actual_end in strict mode
    """
    if not subtask.estimated_end:
        return DelayStatus.UNKNOWN

    estimated_end = parse_timestamp(subtask.estimated_end)

    if subtask.actual_end:
        return _compare(parse_timestamp(subtask.actual_end), estimated_end)

    now = now or datetime.now()

    if subtask.status == SubtaskStatus.COMPLETED:
        if mode != DELAY_MODE_LEGACY:
            raise SubtaskIntegrityError(subtask.id, "completed subtask has no actual end date")
        logger.debug(f"[DELAY] {subtask.id}: completed without actual end, comparing against now")
        return _compare(now, estimated_end)

    if subtask.status == SubtaskStatus.IN_PROGRESS and now > estimated_end:
        return DelayStatus.LATE

    return DelayStatus.UNKNOWN


def recalculate_subtask_fields(
    subtask: Subtask,
    now: Optional[datetime] = None,
    mode: str = DELAY_MODE_STRICT,
) -> Subtask:
    """Return a copy of the subtask with durations and delay status recalculated."""
    return replace(
        subtask,
        estimated_duration_hours=calculate_duration_hours(subtask.estimated_start, subtask.estimated_end),
        actual_duration_hours=calculate_duration_hours(subtask.actual_start, subtask.actual_end),
        delay_status=calculate_delay_status(subtask, now=now, mode=mode),
    )
