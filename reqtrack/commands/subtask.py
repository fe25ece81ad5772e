"""
rq subtask - add, move through statuses, reschedule and remove subtasks.
"""

from pathlib import Path
from typing import Optional

from reqtrack.lib.config import TrackerConfig
from reqtrack.lib.constants import DELAY_STATUS_LABELS, REQUIREMENT_STATUS_LABELS, SUBTASK_STATUS_LABELS
from reqtrack.lib.types import DelayStatus, Phase, SubtaskStatus
from reqtrack.lib.validate import ValidationError
from reqtrack.pm.models import Requirement
from reqtrack.pm.requirements import (
    InvalidInput,
    RequirementNotFound,
    SubtaskNotFound,
    add_subtask,
    load_requirement,
    remove_subtask,
    set_subtask_status,
    update_subtask,
)
from reqtrack.workflow.schedule import SubtaskIntegrityError
from reqtrack.workflow.fsm import SubtaskFSM
from reqtrack.workflow.state_machine import InvalidTransition, can_transition

# rq subtask <action> -> destination status
ACTION_STATUS = {
    "start": SubtaskStatus.IN_PROGRESS,
    "resume": SubtaskStatus.IN_PROGRESS,
    "pause": SubtaskStatus.PAUSED,
    "complete": SubtaskStatus.COMPLETED,
    "reopen": SubtaskStatus.IN_PROGRESS,
    "reset": SubtaskStatus.NOT_STARTED,
}

# Actions that share a destination status are told apart by their source
ACTION_SOURCES = {
    "start": (SubtaskStatus.NOT_STARTED, SubtaskStatus.PAUSED),
    "resume": (SubtaskStatus.PAUSED,),
    "reopen": (SubtaskStatus.COMPLETED,),
}

# Errors a subtask operation can report without a traceback
OPERATION_ERRORS = (InvalidInput, InvalidTransition, SubtaskIntegrityError, ValidationError)


def resolve_subtask_id(req: Requirement, ref: str) -> Optional[str]:
    """Resolve a subtask reference: full ID, number within the requirement, or exact name."""
    if req.get_subtask(ref):
        return ref
    if ref.isdigit():
        candidate = f"{req.id}-subtask-{int(ref)}"
        return candidate if req.get_subtask(candidate) else None
    matches = [s.id for s in req.subtasks if s.name == ref]
    if len(matches) == 1:
        return matches[0]
    return None


def _report(data_dir: Path, req_id: str, subtask) -> None:
    req = load_requirement(data_dir, req_id)
    delay = ""
    if subtask.delay_status != DelayStatus.UNKNOWN:
        delay = f" [{DELAY_STATUS_LABELS[subtask.delay_status]}]"
    print(f"{subtask.name}: {SUBTASK_STATUS_LABELS[subtask.status]}{delay}")
    if req:
        print(f"{req.id} status: {REQUIREMENT_STATUS_LABELS[req.status]}")


def _load_and_resolve(data_dir: Path, args) -> tuple[Optional[Requirement], Optional[str]]:
    req = load_requirement(data_dir, args.id)
    if not req:
        print(f"ERROR: Requirement '{args.id}' not found")
        return None, None
    subtask_id = resolve_subtask_id(req, args.subtask)
    if not subtask_id:
        print(f"ERROR: Subtask '{args.subtask}' not found in {req.id}")
        return req, None
    return req, subtask_id


def cmd_subtask_add(args, data_dir: Path, config: TrackerConfig) -> int:
    """Append a subtask to a requirement."""
    phase = Phase(args.phase) if args.phase else None
    try:
        subtask = add_subtask(data_dir, args.id, args.name, phase=phase, mode=config.delay_mode)
    except (RequirementNotFound, SubtaskNotFound) as e:
        print(f"ERROR: {e}")
        return 2
    except OPERATION_ERRORS as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Added {subtask.id}: {subtask.name}")
    _report(data_dir, args.id, subtask)
    return 0


def cmd_subtask_transition(args, data_dir: Path, config: TrackerConfig) -> int:
    """start / pause / resume / complete / reopen / reset."""
    req, subtask_id = _load_and_resolve(data_dir, args)
    if not subtask_id:
        return 2

    subtask = req.get_subtask(subtask_id)
    sources = ACTION_SOURCES.get(args.action)
    wrong_source = sources is not None and subtask.status not in sources
    if wrong_source or not can_transition(subtask, ACTION_STATUS[args.action]):
        available = ", ".join(SubtaskFSM(subtask).get_available_triggers()) or "none"
        print(f"ERROR: Cannot {args.action} a subtask that is {subtask.status.value} (available: {available})")
        return 1

    try:
        subtask = set_subtask_status(
            data_dir,
            req.id,
            subtask_id,
            ACTION_STATUS[args.action],
            actual_end=getattr(args, "at", None),
            mode=config.delay_mode,
        )
    except OPERATION_ERRORS as e:
        print(f"ERROR: {e}")
        return 1

    _report(data_dir, req.id, subtask)
    return 0


def cmd_subtask_dates(args, data_dir: Path, config: TrackerConfig) -> int:
    """Set estimated and actual dates; "" clears a date."""
    req, subtask_id = _load_and_resolve(data_dir, args)
    if not subtask_id:
        return 2

    updates = {}
    for key in ("estimated_start", "estimated_end", "actual_start", "actual_end"):
        value = getattr(args, key, None)
        if value is not None:
            updates[key] = value
    if args.name:
        updates["name"] = args.name

    if not updates:
        print("ERROR: Nothing to update. See 'rq subtask dates --help'.")
        return 2

    try:
        subtask = update_subtask(data_dir, req.id, subtask_id, updates, mode=config.delay_mode)
    except OPERATION_ERRORS as e:
        print(f"ERROR: {e}")
        return 1

    if subtask.estimated_duration_hours:
        print(f"Estimated: {subtask.estimated_duration_hours}h")
    if subtask.actual_duration_hours:
        print(f"Actual:    {subtask.actual_duration_hours}h")
    _report(data_dir, req.id, subtask)
    return 0


def cmd_subtask_remove(args, data_dir: Path, config: TrackerConfig) -> int:
    """Remove a subtask."""
    req, subtask_id = _load_and_resolve(data_dir, args)
    if not subtask_id:
        return 2

    try:
        updated = remove_subtask(data_dir, req.id, subtask_id, mode=config.delay_mode)
    except ValidationError as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Removed {subtask_id}")
    print(f"{updated.id} status: {REQUIREMENT_STATUS_LABELS[updated.status]}")
    return 0
