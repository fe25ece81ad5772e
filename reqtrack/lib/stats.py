"""
Summary statistics across requirements.

Counts requirements per status and totals subtask hours, so the CLI and
the board can show how a version is tracking.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from reqtrack.lib.constants import REQUIREMENT_STATUS_LABELS
from reqtrack.lib.types import DelayStatus, RequirementStatus, SubtaskStatus
from reqtrack.pm.models import Requirement


@dataclass
class RequirementSummary:
    """Aggregated stats summary."""
    requirement_count: int = 0
    by_status: dict[RequirementStatus, int] = field(default_factory=dict)
    subtask_count: int = 0
    subtasks_completed: int = 0
    subtasks_in_progress: int = 0
    late_subtasks: int = 0
    estimated_hours: int = 0
    actual_hours: int = 0

    @property
    def completion_ratio(self) -> float:
        if not self.subtask_count:
            return 0.0
        return self.subtasks_completed / self.subtask_count


def summarize_requirements(reqs: Iterable[Requirement]) -> RequirementSummary:
    """Aggregate status counts and subtask hours over requirements."""
    summary = RequirementSummary()
    statuses: Counter = Counter()

    for req in reqs:
        summary.requirement_count += 1
        statuses[req.status] += 1
        for subtask in req.subtasks:
            summary.subtask_count += 1
            if subtask.status == SubtaskStatus.COMPLETED:
                summary.subtasks_completed += 1
            elif subtask.status == SubtaskStatus.IN_PROGRESS:
                summary.subtasks_in_progress += 1
            if subtask.delay_status == DelayStatus.LATE:
                summary.late_subtasks += 1
            summary.estimated_hours += subtask.estimated_duration_hours
            summary.actual_hours += subtask.actual_duration_hours

    # Lifecycle order, only statuses that occur
    summary.by_status = {s: statuses[s] for s in RequirementStatus if statuses[s]}
    return summary


def format_hours(hours: int) -> str:
    """Format whole hours as working-day style duration (8h days)."""
    if hours < 8:
        return f"{hours}h"
    days, rest = divmod(hours, 8)
    if rest == 0:
        return f"{days}d"
    return f"{days}d {rest}h"


def format_summary(summary: RequirementSummary) -> list[str]:
    """Format summary as list of lines for display."""
    lines = [f"  Requirements:  {summary.requirement_count}"]
    for status, count in summary.by_status.items():
        lines.append(f"    {REQUIREMENT_STATUS_LABELS[status]:<10} {count}")
    lines.extend([
        f"  Subtasks:      {summary.subtask_count} "
        f"({summary.subtasks_completed} completed, {summary.subtasks_in_progress} in progress)",
        f"  Completion:    {summary.completion_ratio:.0%}",
        f"  Late:          {summary.late_subtasks}",
        f"  Estimated:     {format_hours(summary.estimated_hours)}",
        f"  Actual:        {format_hours(summary.actual_hours)}",
    ])
    return lines
