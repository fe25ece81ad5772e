"""
rq status - Show the phase breakdown behind a requirement's status.
"""

from pathlib import Path

from reqtrack.lib.config import TrackerConfig
from reqtrack.lib.constants import DELAY_STATUS_LABELS, PHASE_LABELS, REQUIREMENT_STATUS_LABELS
from reqtrack.lib.types import DelayStatus, RequirementStatus
from reqtrack.pm.requirements import load_requirement
from reqtrack.workflow.derivation import derive_requirement_status
from reqtrack.workflow.phases import PIPELINE_PHASES, aggregate_phases, resolve_phase


def cmd_status(args, data_dir: Path, config: TrackerConfig) -> int:
    """Show per-phase counts and the derived status of a requirement."""
    req = load_requirement(data_dir, args.id)
    if not req:
        print(f"ERROR: Requirement '{args.id}' not found")
        return 2

    counts = aggregate_phases(req.subtasks)
    derived = derive_requirement_status(req.subtasks)

    print(f"Requirement: {req.id}")
    print("=" * 60)
    print()
    print(f"Title:          {req.title}")
    print(f"Status:         {REQUIREMENT_STATUS_LABELS[req.status]}")
    if req.status not in (derived, RequirementStatus.RELEASED):
        # Stored status drifted (e.g. file edited by hand)
        print(f"  [WARN] Subtasks say: {REQUIREMENT_STATUS_LABELS[derived]}")
    print()

    print(f"  {'Phase':<8} {'Done':>5} {'Doing':>6} {'Todo':>5} {'Paused':>7} {'Total':>6}")
    for phase in PIPELINE_PHASES:
        c = counts[phase]
        if not c.has_subtasks:
            print(f"  {PHASE_LABELS[phase]:<8} {'-':>5}")
            continue
        marker = "  <-- DONE" if c.fully_completed else ""
        print(
            f"  {PHASE_LABELS[phase]:<8} {c.completed:>5} {c.in_progress:>6} "
            f"{c.not_started:>5} {c.paused:>7} {c.total:>6}{marker}"
        )

    other = [s for s in req.subtasks if resolve_phase(s) not in PIPELINE_PHASES]
    if other:
        print(f"  (+{len(other)} subtask(s) outside the pipeline)")

    late = [s for s in req.subtasks if s.delay_status == DelayStatus.LATE]
    print()
    if late:
        print(f"{DELAY_STATUS_LABELS[DelayStatus.LATE]}: {', '.join(s.name for s in late)}")
    else:
        print("No late subtasks")
    return 0
