"""Subtask status transitions with explicit validation.

Thin wrapper around the FSM in fsm.py. All transition logic lives in
fsm.py - this module provides:
- transition_subtask() mapping a destination status to its FSM trigger
- parse_subtask_status() accepting enum values and legacy display labels
- can_transition() for UI/CLI checks

Usage:
    from reqtrack.workflow.state_machine import transition_subtask
    from reqtrack.lib.types import SubtaskStatus

    transition_subtask(subtask, SubtaskStatus.IN_PROGRESS)
"""

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from reqtrack.lib.constants import SUBTASK_STATUS_LABELS
from reqtrack.lib.types import SubtaskStatus

if TYPE_CHECKING:
    from reqtrack.pm.models import Subtask

logger = logging.getLogger(__name__)

_LABEL_TO_STATUS = {label: status for status, label in SUBTASK_STATUS_LABELS.items()}


class InvalidTransition(Exception):
    """Raised when attempting an invalid status transition."""

    def __init__(self, from_state: str, to_state: SubtaskStatus, subtask_id: str = ""):
        self.from_state = from_state
        self.to_state = to_state
        self.subtask_id = subtask_id
        super().__init__(
            f"Invalid transition: {from_state} -> {to_state.value}"
            + (f" (subtask: {subtask_id})" if subtask_id else "")
        )


def parse_subtask_status(status_str: str | None) -> SubtaskStatus | None:
    """Parse a status string into SubtaskStatus.

    Accepts enum values ("in_progress") and the display labels found in
    older exports ("进行中"). Returns None if status is unknown.
    """
    if status_str is None:
        return None
    for status in SubtaskStatus:
        if status.value == status_str:
            return status
    return _LABEL_TO_STATUS.get(status_str)


def transition_subtask(
    subtask: "Subtask",
    to_status: SubtaskStatus,
    actual_end: str | None = None,
    now: datetime | None = None,
) -> None:
    """Move a subtask to a new status, validating the transition.

    Mutates the subtask in place. Completing stamps actual_end
    (the given value, or now).

    Raises:
        InvalidTransition: If the transition is not allowed
    """
    from transitions import MachineError
    from reqtrack.workflow.fsm import SubtaskFSM, TRIGGER_FOR

    current = subtask.status.value

    # Self-transition is a no-op
    if current == to_status.value:
        logger.debug(f"[STATE] {subtask.id}: already {current}, no-op")
        return

    trigger = TRIGGER_FOR.get((current, to_status.value))
    if trigger is None:
        raise InvalidTransition(current, to_status, subtask.id)

    fsm = SubtaskFSM(subtask, now=now)
    try:
        getattr(fsm, trigger)(actual_end=actual_end)
    except MachineError as e:
        raise InvalidTransition(current, to_status, subtask.id) from e


def can_transition(subtask: "Subtask", to_status: SubtaskStatus) -> bool:
    """Check if a transition to the given status is valid."""
    from reqtrack.workflow.fsm import TRIGGER_FOR

    if subtask.status == to_status:
        return True
    return (subtask.status.value, to_status.value) in TRIGGER_FOR
