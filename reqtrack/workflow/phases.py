"""Phase classification and per-phase counts for subtasks.

Subtasks carry an explicit `phase` from creation onward. Records written
before that field existed have `phase=None`; for those the phase is
classified from the subtask name, the way the product team names them
(原型设计, 视觉设计, 前端开发, 测试, 产品验收 ...).
"""

from dataclasses import dataclass
from typing import Iterable

from reqtrack.lib.constants import PHASE_KEYWORDS
from reqtrack.lib.types import Phase, SubtaskStatus
from reqtrack.pm.models import Subtask

# Phases that take part in the waterfall; OTHER is excluded from aggregates
PIPELINE_PHASES = (
    Phase.PROTOTYPE,
    Phase.UI,
    Phase.DEVELOPMENT,
    Phase.TESTING,
    Phase.ACCEPTANCE,
)


def classify_phase(name: str) -> Phase:
    """Classify a subtask name into a phase by keyword. First match wins."""
    for phase, keywords in PHASE_KEYWORDS:
        if any(keyword in name for keyword in keywords):
            return phase
    return Phase.OTHER


def resolve_phase(subtask: Subtask) -> Phase:
    """Explicit phase if recorded, else classify from the name."""
    if subtask.phase is not None:
        return subtask.phase
    return classify_phase(subtask.name)


@dataclass
class PhaseCounts:
    """Status buckets for one phase.

    completed + in_progress + not_started + paused == total.
    """
    completed: int = 0
    in_progress: int = 0
    not_started: int = 0
    paused: int = 0
    total: int = 0

    @property
    def has_subtasks(self) -> bool:
        return self.total > 0

    @property
    def fully_completed(self) -> bool:
        """True when the phase has subtasks and all of them are completed."""
        return self.total > 0 and self.completed == self.total

    @property
    def none_started(self) -> bool:
        """True when every subtask of the phase is not started."""
        return self.not_started == self.total


def aggregate_phases(subtasks: Iterable[Subtask]) -> dict[Phase, PhaseCounts]:
    """Count subtasks per pipeline phase and status."""
    counts = {phase: PhaseCounts() for phase in PIPELINE_PHASES}

    for subtask in subtasks:
        phase = resolve_phase(subtask)
        if phase not in counts:
            continue

        bucket = counts[phase]
        bucket.total += 1
        if subtask.status == SubtaskStatus.COMPLETED:
            bucket.completed += 1
        elif subtask.status == SubtaskStatus.IN_PROGRESS:
            bucket.in_progress += 1
        elif subtask.status == SubtaskStatus.NOT_STARTED:
            bucket.not_started += 1
        elif subtask.status == SubtaskStatus.PAUSED:
            bucket.paused += 1

    return counts
