"""Subtask state machine using transitions library.

Provides explicit, named transitions for subtask status:
- Explicit triggers (start, pause, resume, complete, reopen, reset)
- Before callbacks that keep the actual dates consistent with the status
- After-state-change logging

Usage:
    from reqtrack.workflow.fsm import SubtaskFSM

    fsm = SubtaskFSM(subtask)
    fsm.start()                             # not_started -> in_progress
    fsm.complete(actual_end="2024-04-05T18:00:00")
"""

import logging
from datetime import datetime
from typing import Callable

from transitions import Machine

from reqtrack.lib.types import SubtaskStatus
from reqtrack.pm.models import Subtask

logger = logging.getLogger(__name__)


# State values must match SubtaskStatus enum
STATES = [
    "not_started",
    "in_progress",
    "completed",
    "paused",
]

# Each trigger becomes a method on the FSM
TRANSITIONS = [
    {"trigger": "start", "source": "not_started", "dest": "in_progress", "before": "_stamp_start"},
    {"trigger": "resume", "source": "paused", "dest": "in_progress"},
    {"trigger": "start", "source": "paused", "dest": "in_progress", "before": "_stamp_start"},

    {"trigger": "pause", "source": "in_progress", "dest": "paused"},

    # Completion always leaves an actual end date behind
    {"trigger": "complete", "source": "in_progress", "dest": "completed", "before": "_stamp_completion"},
    {"trigger": "complete", "source": "not_started", "dest": "completed", "before": "_stamp_completion"},
    {"trigger": "complete", "source": "paused", "dest": "completed", "before": "_stamp_completion"},

    {"trigger": "reopen", "source": "completed", "dest": "in_progress", "before": "_clear_completion"},

    {"trigger": "reset", "source": "in_progress", "dest": "not_started", "before": "_clear_actuals"},
    {"trigger": "reset", "source": "paused", "dest": "not_started", "before": "_clear_actuals"},
    {"trigger": "reset", "source": "completed", "dest": "not_started", "before": "_clear_actuals"},
]


def _build_trigger_lookup() -> dict[tuple[str, str], str]:
    """Build lookup from (source, dest) -> trigger name."""
    lookup: dict[tuple[str, str], str] = {}
    for t in TRANSITIONS:
        key = (t["source"], t["dest"])
        if key not in lookup:  # First trigger wins for a given source->dest
            lookup[key] = t["trigger"]
    return lookup


TRIGGER_FOR = _build_trigger_lookup()


class SubtaskFSM:
    """State machine for one subtask's status.

    Wraps the transitions library with subtask-specific logic:
    - Starts from the subtask's current status
    - Writes the new status back onto the subtask
    - Stamps or clears actual dates on the way
    """

    def __init__(
        self,
        subtask: Subtask,
        now: datetime | None = None,
        on_transition: Callable[[str, str, str], None] | None = None,
    ):
        """Initialize FSM for a subtask.

        Args:
            subtask: Subtask to drive; mutated in place
            now: Clock value used when stamping dates (defaults to datetime.now())
            on_transition: Optional callback(from_state, to_state, trigger) called after transitions
        """
        self.subtask = subtask
        self.now = now
        self.on_transition = on_transition

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial=subtask.status.value,
            auto_transitions=False,  # Only explicit transitions
            send_event=True,  # Pass EventData to callbacks
            after_state_change="on_state_change",
        )

    def _timestamp(self) -> str:
        return (self.now or datetime.now()).isoformat(timespec="seconds")

    def _stamp_start(self, event) -> None:
        if not self.subtask.actual_start:
            self.subtask.actual_start = self._timestamp()

    def _stamp_completion(self, event) -> None:
        actual_end = event.kwargs.get("actual_end")
        self.subtask.actual_end = actual_end or self.subtask.actual_end or self._timestamp()
        if not self.subtask.actual_start:
            self.subtask.actual_start = self.subtask.actual_end

    def _clear_completion(self, event) -> None:
        self.subtask.actual_end = None

    def _clear_actuals(self, event) -> None:
        self.subtask.actual_start = None
        self.subtask.actual_end = None

    def on_state_change(self, event) -> None:
        """Callback after any state transition.

        Writes the status back to the subtask and logs the transition.
        """
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name

        self.subtask.status = SubtaskStatus(to_state)
        logger.info(f"[FSM] {self.subtask.id}: {from_state} -> {to_state} ({trigger})")

        if self.on_transition:
            self.on_transition(from_state, to_state, trigger)

    def can(self, trigger: str) -> bool:
        """Check if a trigger can be executed in current state."""
        return trigger in self.machine.get_triggers(self.state)

    def get_available_triggers(self) -> list[str]:
        """Get list of triggers available in current state."""
        return self.machine.get_triggers(self.state)
