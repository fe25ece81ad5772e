"""
rq board - Requirement board.

Interactive TUI listing every requirement with its derived status and
progress. Polls the store, so edits made with other rq commands show up
while the board is open.
"""

from pathlib import Path
from typing import Optional

from textual import on
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, VerticalScroll
from textual.reactive import reactive
from textual.widgets import DataTable, Footer, Header, Static

from reqtrack.lib.config import TrackerConfig
from reqtrack.lib.constants import (
    DELAY_STATUS_LABELS,
    PHASE_LABELS,
    REQUIREMENT_STATUS_LABELS,
    SUBTASK_STATUS_LABELS,
)
from reqtrack.lib.stats import format_hours
from reqtrack.lib.tui import DeleteRequirementModal
from reqtrack.lib.types import DelayStatus, SubtaskStatus
from reqtrack.pm.models import Requirement
from reqtrack.pm.requirements import delete_requirement, list_requirements
from reqtrack.workflow.phases import PIPELINE_PHASES, aggregate_phases

# Configuration
POLL_INTERVAL_SECONDS = 2.0
TITLE_WIDTH = 32

COLUMNS = ("ID", "Title", "Version", "Status", "Progress", "Late")

STATUS_COLORS = {
    SubtaskStatus.NOT_STARTED: "dim",
    SubtaskStatus.IN_PROGRESS: "cyan",
    SubtaskStatus.COMPLETED: "green",
    SubtaskStatus.PAUSED: "yellow",
}


def build_row(req: Requirement) -> tuple[str, ...]:
    """Table cells for one requirement."""
    done = sum(1 for s in req.subtasks if s.status == SubtaskStatus.COMPLETED)
    late = sum(1 for s in req.subtasks if s.delay_status == DelayStatus.LATE)
    title = req.title if len(req.title) <= TITLE_WIDTH else req.title[:TITLE_WIDTH - 1] + "…"
    return (
        req.id,
        title,
        req.version or "-",
        REQUIREMENT_STATUS_LABELS[req.status],
        f"{done}/{len(req.subtasks)}",
        str(late) if late else "",
    )


def format_detail(req: Optional[Requirement]) -> str:
    """Rich markup for the detail pane."""
    if req is None:
        return "[dim]No requirement selected[/dim]"

    lines = [
        f"[bold]{req.id}[/bold] {req.title}",
        f"Status: [cyan]{REQUIREMENT_STATUS_LABELS[req.status]}[/cyan]",
        "",
    ]

    counts = aggregate_phases(req.subtasks)
    phase_parts = []
    for phase in PIPELINE_PHASES:
        c = counts[phase]
        if c.has_subtasks:
            phase_parts.append(f"{PHASE_LABELS[phase]} {c.completed}/{c.total}")
    if phase_parts:
        lines.append(" | ".join(phase_parts))
        lines.append("")

    if not req.subtasks:
        lines.append("[dim]No subtasks[/dim]")
    for s in req.subtasks:
        color = STATUS_COLORS[s.status]
        extra = ""
        if s.estimated_duration_hours:
            extra += f" est {format_hours(s.estimated_duration_hours)}"
        if s.delay_status == DelayStatus.LATE:
            extra += f" [red]{DELAY_STATUS_LABELS[s.delay_status]}[/red]"
        elif s.delay_status != DelayStatus.UNKNOWN:
            extra += f" {DELAY_STATUS_LABELS[s.delay_status]}"
        lines.append(f"[{color}]{SUBTASK_STATUS_LABELS[s.status]}[/{color}] {s.name}{extra}")

    return "\n".join(lines)


class DetailWidget(Static):
    """Subtasks and phase counts of the selected requirement."""

    requirement: reactive[Optional[Requirement]] = reactive(None, always_update=True)

    def render(self) -> str:
        return format_detail(self.requirement)


class BoardApp(App):
    """Requirement board TUI application."""

    CSS = """
    #main-container {
        layout: horizontal;
    }

    #table-box {
        width: 2fr;
        border: solid green;
    }

    #detail-box {
        width: 1fr;
        border: solid blue;
        padding: 0 1;
    }

    DetailWidget {
        height: auto;
    }
    """

    BINDINGS = [
        Binding("r", "refresh", "Refresh"),
        Binding("d", "delete", "Delete"),
        Binding("q", "quit", "Quit"),
    ]

    def __init__(self, data_dir: Path, config: TrackerConfig) -> None:
        super().__init__()
        self.data_dir = data_dir
        self.config = config
        self.requirements: dict[str, Requirement] = {}
        self.selected_id: Optional[str] = None

    def compose(self) -> ComposeResult:
        yield Header()
        yield Container(
            Container(DataTable(id="requirements"), id="table-box"),
            VerticalScroll(DetailWidget(id="detail"), id="detail-box"),
            id="main-container",
        )
        yield Footer()

    def on_mount(self) -> None:
        self.title = f"rq board - {self.config.name}"
        table = self.query_one(DataTable)
        table.cursor_type = "row"
        table.add_columns(*COLUMNS)
        self.refresh_data()
        self.set_interval(POLL_INTERVAL_SECONDS, self.refresh_data)

    def refresh_data(self) -> None:
        """Reload requirements from the store and redraw the table."""
        reqs = list_requirements(self.data_dir)
        self.requirements = {r.id: r for r in reqs}

        table = self.query_one(DataTable)
        table.clear()
        for req in reqs:
            table.add_row(*build_row(req), key=req.id)

        ids = [r.id for r in reqs]
        if self.selected_id in ids:
            table.move_cursor(row=ids.index(self.selected_id))
        elif ids:
            self.selected_id = ids[0]
        else:
            self.selected_id = None

        self._show_selected()

    def _show_selected(self) -> None:
        detail = self.query_one(DetailWidget)
        detail.requirement = self.requirements.get(self.selected_id) if self.selected_id else None

    @on(DataTable.RowHighlighted)
    def on_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        if event.row_key is not None and event.row_key.value is not None:
            self.selected_id = event.row_key.value
            self._show_selected()

    def action_refresh(self) -> None:
        self.refresh_data()
        self.notify("Refreshed", severity="information")

    def action_delete(self) -> None:
        req = self.requirements.get(self.selected_id) if self.selected_id else None
        if req is None:
            self.notify("Nothing to delete", severity="warning")
            return

        def handle_confirm(confirmed: bool) -> None:
            if not confirmed:
                return
            if delete_requirement(self.data_dir, req.id):
                self.notify(f"Deleted {req.id}", severity="information")
            else:
                self.notify(f"{req.id} was already gone", severity="warning")
            self.selected_id = None
            self.refresh_data()

        self.push_screen(DeleteRequirementModal(req), handle_confirm)


def cmd_board(args, data_dir: Path, config: TrackerConfig) -> int:
    """Open the requirement board."""
    app = BoardApp(data_dir, config)
    app.run()
    return 0
