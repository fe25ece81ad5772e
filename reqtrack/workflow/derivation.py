"""Requirement status derivation.

A requirement's status is computed from its subtasks; it is never edited
directly. The pipeline is waterfall shaped:

    prototype -> ui -> development -> testing -> acceptance

Later phases are checked first so the most advanced true state wins. A
phase reports "in progress" as soon as one of its subtasks starts, and
"pending" only once its predecessor phase is fully completed and none of
its own subtasks has started.

Usage:
    from reqtrack.workflow.derivation import derive_requirement_status

    req.status = derive_requirement_status(req.subtasks)
"""

from typing import Sequence

from reqtrack.lib.types import Phase, RequirementStatus, SubtaskStatus
from reqtrack.pm.models import Subtask
from reqtrack.workflow.phases import aggregate_phases, resolve_phase

# (phase, predecessor, in-progress status, pending status), checked in order
CASCADE = [
    (Phase.ACCEPTANCE, Phase.TESTING,
     RequirementStatus.ACCEPTANCE_IN_PROGRESS, RequirementStatus.PENDING_ACCEPTANCE),
    (Phase.TESTING, Phase.DEVELOPMENT,
     RequirementStatus.TESTING_IN_PROGRESS, RequirementStatus.PENDING_TESTING),
    (Phase.DEVELOPMENT, Phase.UI,
     RequirementStatus.DEVELOPMENT_IN_PROGRESS, RequirementStatus.PENDING_DEVELOPMENT),
    (Phase.UI, Phase.PROTOTYPE,
     RequirementStatus.UI_DESIGN_IN_PROGRESS, RequirementStatus.PENDING_UI_DESIGN),
    (Phase.PROTOTYPE, None,
     RequirementStatus.PROTOTYPE_IN_PROGRESS, RequirementStatus.PENDING_PROTOTYPE),
]

# Fallback labels for an in-progress subtask no cascade rule caught.
# OTHER and ACCEPTANCE are reported as development.
FALLBACK_IN_PROGRESS = {
    Phase.PROTOTYPE: RequirementStatus.PROTOTYPE_IN_PROGRESS,
    Phase.UI: RequirementStatus.UI_DESIGN_IN_PROGRESS,
    Phase.DEVELOPMENT: RequirementStatus.DEVELOPMENT_IN_PROGRESS,
    Phase.TESTING: RequirementStatus.TESTING_IN_PROGRESS,
}


def derive_requirement_status(subtasks: Sequence[Subtask]) -> RequirementStatus:
    """Compute the aggregate requirement status from its subtasks.

    Total over its input: empty and contradictory lists still map to a
    status. Never returns RELEASED or PAUSED.
    """
    if not subtasks:
        return RequirementStatus.PENDING_PROTOTYPE

    if all(s.status == SubtaskStatus.COMPLETED for s in subtasks):
        return RequirementStatus.COMPLETED

    counts = aggregate_phases(subtasks)

    for phase, predecessor, in_progress_status, pending_status in CASCADE:
        current = counts[phase]
        if not current.has_subtasks:
            continue
        if current.in_progress > 0:
            return in_progress_status
        # Prototype has no predecessor; it is pending whenever nothing started
        predecessor_done = predecessor is None or counts[predecessor].fully_completed
        if predecessor_done and current.none_started:
            return pending_status

    return _fallback_status(subtasks)


def _fallback_status(subtasks: Sequence[Subtask]) -> RequirementStatus:
    """Status when no phase rule matched."""
    for subtask in subtasks:
        if subtask.status == SubtaskStatus.IN_PROGRESS:
            phase = resolve_phase(subtask)
            return FALLBACK_IN_PROGRESS.get(phase, RequirementStatus.DEVELOPMENT_IN_PROGRESS)

    if any(s.status == SubtaskStatus.COMPLETED for s in subtasks):
        # Some work is done but the next phase is unclear; report development
        return RequirementStatus.DEVELOPMENT_IN_PROGRESS

    return RequirementStatus.PENDING_PROTOTYPE
