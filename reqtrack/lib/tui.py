"""Shared TUI components for rq commands."""

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Static

from reqtrack.lib.constants import REQUIREMENT_STATUS_LABELS
from reqtrack.lib.types import SubtaskStatus
from reqtrack.pm.models import Requirement


def describe_for_delete(req: Requirement) -> str:
    """One-line summary shown before a requirement is deleted."""
    done = sum(1 for s in req.subtasks if s.status == SubtaskStatus.COMPLETED)
    return (
        f"{req.title}\n"
        f"{REQUIREMENT_STATUS_LABELS[req.status]}, "
        f"{done}/{len(req.subtasks)} subtasks completed"
    )


class DeleteRequirementModal(ModalScreen[bool]):
    """Asks before a requirement and its subtasks are removed from the store.

    Dismisses with True only on an explicit "y".
    """

    CSS = """
    DeleteRequirementModal {
        align: center middle;
    }

    #delete-box {
        width: 60;
        height: auto;
        padding: 1 2;
        background: $panel;
        border: heavy $error;
    }

    #delete-title {
        text-style: bold;
    }

    #delete-summary {
        color: $text-muted;
        margin: 1 0;
    }
    """

    BINDINGS = [
        Binding("y", "answer(True)", "Delete"),
        Binding("n", "answer(False)", "Keep"),
        Binding("escape", "answer(False)", "Keep", show=False),
    ]

    def __init__(self, req: Requirement) -> None:
        super().__init__()
        self.req = req

    def compose(self) -> ComposeResult:
        with Vertical(id="delete-box"):
            yield Static(f"Delete {self.req.id}?", id="delete-title")
            yield Static(describe_for_delete(self.req), id="delete-summary")
            yield Static("y delete  n keep")

    def action_answer(self, confirmed: bool) -> None:
        self.dismiss(confirmed)
