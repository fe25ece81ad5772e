"""
Requirement CRUD operations for the PM module.

Requirements are stored as JSON + markdown pairs in:
  <data_dir>/requirements/REQ-xxxx.json
  <data_dir>/requirements/REQ-xxxx.md

The requirement status is derived, never edited: every subtask mutation
recalculates the touched subtask (durations, delay status) and re-derives
the requirement status before the record is written. The one manual
status is `released`, which the next subtask mutation replaces again.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

from reqtrack.lib import input_validation as iv
from reqtrack.lib.constants import (
    DEFAULT_BATCH_OPERATION_MAX,
    DELAY_MODE_STRICT,
    DELAY_STATUS_LABELS,
    PHASE_LABELS,
    REQ_ID_PATTERN,
    REQUIREMENT_STATUS_LABELS,
    SUBTASK_STATUS_LABELS,
)
from reqtrack.lib.subtask_templates import DEFAULT_SUBTASKS, SubtaskSpec
from reqtrack.lib.types import DelayStatus, Phase, RequirementStatus, SubtaskStatus
from reqtrack.lib.validate import ValidationError, validate, validate_before_write
from reqtrack.pm.models import Requirement, Subtask
from reqtrack.workflow.derivation import derive_requirement_status
from reqtrack.workflow.phases import classify_phase, resolve_phase
from reqtrack.workflow.schedule import parse_timestamp, recalculate_subtask_fields
from reqtrack.workflow.state_machine import parse_subtask_status, transition_subtask

logger = logging.getLogger(__name__)

SCHEMA_NAME = "requirement"

# Columns that can be used in filters, and fields that can be sorted on
FILTER_COLUMNS = [
    "id",
    "title",
    "description",
    "version",
    "platform",
    "status",
    "priority",
    "need_to_do",
    "is_operational",
    "review_status",
    "tags",
]
SORT_FIELDS = ["id", "title", "version", "platform", "status", "priority", "created", "updated"]

# Ascending priority order; unset sorts lowest
PRIORITY_RANK = {"": 0, "低": 1, "中": 2, "高": 3, "紧急": 4}
STATUS_RANK = {status: i for i, status in enumerate(RequirementStatus)}

SUBTASK_DATE_FIELDS = ("estimated_start", "estimated_end", "actual_start", "actual_end")


class InvalidInput(ValueError):
    """User input rejected by a validator. The message is user-facing."""


class RequirementNotFound(LookupError):
    """No requirement with the given ID."""

    def __init__(self, req_id: str):
        self.req_id = req_id
        super().__init__(f"Requirement not found: {req_id}")


class SubtaskNotFound(LookupError):
    """No subtask with the given ID in the requirement."""

    def __init__(self, req_id: str, subtask_id: str):
        self.req_id = req_id
        self.subtask_id = subtask_id
        super().__init__(f"Subtask not found: {subtask_id} (requirement: {req_id})")


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _check(result: iv.ValidationResult):
    """Return the validated value or raise InvalidInput."""
    if not result.valid:
        raise InvalidInput(result.error)
    return result.value


def get_requirements_dir(data_dir: Path) -> Path:
    """Get requirements directory for a data dir."""
    return data_dir / "requirements"


def generate_requirement_id(data_dir: Path) -> str:
    """Generate next requirement ID."""
    reqs_dir = get_requirements_dir(data_dir)

    existing = []
    if reqs_dir.exists():
        existing = [f.stem for f in reqs_dir.glob("REQ-*.json")]

    nums = []
    for x in existing:
        try:
            nums.append(int(x.split("-")[1]))
        except (ValueError, IndexError):
            logger.warning(f"Malformed requirement ID ignored: {x}")

    if not nums:
        return "REQ-0001"
    return f"REQ-{max(nums) + 1:04d}"


def _next_subtask_id(req: Requirement) -> str:
    prefix = f"{req.id}-subtask-"
    nums = [0]
    for subtask in req.subtasks:
        if subtask.id.startswith(prefix):
            try:
                nums.append(int(subtask.id[len(prefix):]))
            except ValueError:
                continue
    return f"{prefix}{max(nums) + 1}"


def _new_subtask(req: Requirement, name: str, phase: Optional[Phase]) -> Subtask:
    name = _check(iv.validate_length(name, iv.INPUT_LIMITS["title"], "子任务名称"))
    if not name:
        raise InvalidInput("子任务名称不能为空")
    # Phase is fixed at creation; classify once if not given
    return Subtask(
        id=_next_subtask_id(req),
        name=name,
        phase=phase or classify_phase(name),
    )


def _write(data_dir: Path, req: Requirement) -> None:
    """Validate and write the JSON record plus the markdown view."""
    reqs_dir = get_requirements_dir(data_dir)
    reqs_dir.mkdir(parents=True, exist_ok=True)

    req_dict = req.to_dict()
    json_path = reqs_dir / f"{req.id}.json"
    validate_before_write(req_dict, SCHEMA_NAME, json_path)

    json_path.write_text(json.dumps(req_dict, indent=2, ensure_ascii=False), encoding="utf-8")
    write_requirement_markdown(reqs_dir / f"{req.id}.md", req)


def create_requirement(
    data_dir: Path,
    data: dict,
    template: Optional[list[SubtaskSpec]] = None,
) -> Requirement:
    """Create a new requirement.

    Args:
        data_dir: Tracker data directory
        data: Dict with title and optional version, priority, platform,
            description, need_to_do, is_operational, tags
        template: Subtasks to start with (defaults to the built-in template)

    Returns:
        Created Requirement

    Raises:
        InvalidInput: If a field fails validation
    """
    title = _check(iv.validate_title(data.get("title", "")))
    description = _check(iv.validate_description(data.get("description", "")))
    priority = _check(iv.validate_priority(data.get("priority", ""))) or ""
    need_to_do = _check(iv.validate_need_to_do(data.get("need_to_do", ""))) or ""
    is_operational = _check(iv.validate_is_operational(data.get("is_operational", "no")))

    req_id = generate_requirement_id(data_dir)
    now = _now_iso()

    req = Requirement(
        id=req_id,
        title=title,
        version=data.get("version", ""),
        status=RequirementStatus.PENDING_PROTOTYPE,
        created=now,
        updated=now,
        priority=priority,
        platform=data.get("platform", ""),
        description=description,
        need_to_do=need_to_do,
        is_operational=is_operational,
        tags=list(data.get("tags", [])),
    )

    for spec in DEFAULT_SUBTASKS if template is None else template:
        req.subtasks.append(_new_subtask(req, spec.name, spec.phase))

    req.status = derive_requirement_status(req.subtasks)
    _write(data_dir, req)

    logger.info(f"[STORE] Created {req_id} with {len(req.subtasks)} subtasks")
    return req


def _read_record(path: Path) -> Requirement:
    """Read a requirement file, mapping legacy subtask status labels before the schema check.

    Raises:
        ValidationError: If the file is not JSON or does not match the schema
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValidationError(SCHEMA_NAME, f"Invalid JSON in {path}: {e}") from None

    if isinstance(data, dict) and isinstance(data.get("subtasks"), list):
        for subtask in data["subtasks"]:
            if not isinstance(subtask, dict):
                continue
            status = parse_subtask_status(subtask.get("status"))
            if status is not None:
                subtask["status"] = status.value

    validate(data, SCHEMA_NAME)
    return Requirement.from_dict(data)


def load_requirement(data_dir: Path, req_id: str) -> Optional[Requirement]:
    """Load a requirement by ID. Returns None if missing or unreadable."""
    if not REQ_ID_PATTERN.match(req_id):
        return None

    path = get_requirements_dir(data_dir) / f"{req_id}.json"
    if not path.exists():
        return None

    try:
        return _read_record(path)
    except (ValidationError, TypeError, ValueError) as e:
        logger.warning(f"Failed to load requirement {req_id}: {e}")
        return None


def list_requirements(data_dir: Path) -> list[Requirement]:
    """List all requirements, skipping files that fail to load."""
    reqs_dir = get_requirements_dir(data_dir)
    if not reqs_dir.exists():
        return []

    reqs = []
    for f in sorted(reqs_dir.glob("REQ-*.json")):
        try:
            reqs.append(_read_record(f))
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning(f"Failed to load requirement file {f}: {e}")

    return reqs


def _require(data_dir: Path, req_id: str) -> Requirement:
    req = load_requirement(data_dir, req_id)
    if req is None:
        raise RequirementNotFound(req_id)
    return req


def save_requirement(data_dir: Path, req: Requirement) -> Requirement:
    """Write a requirement back, bumping its updated timestamp."""
    req.updated = _now_iso()
    _write(data_dir, req)
    return req


def delete_requirement(data_dir: Path, req_id: str) -> bool:
    """Delete a requirement's JSON and markdown files.

    Returns:
        True if deleted, False if it didn't exist
    """
    reqs_dir = get_requirements_dir(data_dir)
    json_path = reqs_dir / f"{req_id}.json"
    md_path = reqs_dir / f"{req_id}.md"

    if not REQ_ID_PATTERN.match(req_id) or not json_path.exists():
        return False

    json_path.unlink()
    if md_path.exists():
        md_path.unlink()

    logger.info(f"[STORE] Deleted {req_id}")
    return True


def delete_requirements(
    data_dir: Path,
    req_ids: list[str],
    max_count: int = DEFAULT_BATCH_OPERATION_MAX,
) -> list[str]:
    """Delete several requirements at once.

    Returns:
        IDs that were actually deleted (missing ones are skipped)

    Raises:
        InvalidInput: If the ID batch is empty, too large or malformed
    """
    ids = _check(iv.validate_requirement_ids(req_ids, max_count))
    deleted = [req_id for req_id in ids if delete_requirement(data_dir, req_id)]

    missing = set(ids) - set(deleted)
    if missing:
        logger.warning(f"[STORE] Batch delete skipped missing requirements: {', '.join(sorted(missing))}")
    return deleted


def update_requirement(data_dir: Path, req_id: str, updates: dict) -> Requirement:
    """Apply validated field edits to a requirement.

    Only descriptive fields can be edited here; status and subtasks have
    their own operations.

    Raises:
        RequirementNotFound: If no such requirement
        InvalidInput: If a value fails validation or the field is not editable
    """
    validators = {
        "title": iv.validate_title,
        "description": iv.validate_description,
        "priority": iv.validate_priority,
        "need_to_do": iv.validate_need_to_do,
        "is_operational": iv.validate_is_operational,
        "version": lambda v: iv.validate_length(v, iv.INPUT_LIMITS["title"], "版本"),
        "platform": lambda v: iv.validate_length(v, iv.INPUT_LIMITS["id"], "应用端"),
    }

    req = _require(data_dir, req_id)

    for key, value in updates.items():
        if key == "tags":
            req.tags = [_check(iv.validate_length(t, iv.INPUT_LIMITS["id"], "标签")) for t in value]
            continue
        if key not in validators:
            raise InvalidInput(f"不可编辑的字段: {key}")
        cleaned = _check(validators[key](value))
        # None from priority/need_to_do means "cleared"
        setattr(req, key, cleaned if cleaned is not None else "")

    return save_requirement(data_dir, req)


def _refresh_open_subtasks(
    req: Requirement,
    now: Optional[datetime],
    mode: str,
    skip: Optional[str] = None,
) -> None:
    req.subtasks = [
        s if s.id == skip or s.status == SubtaskStatus.COMPLETED
        else recalculate_subtask_fields(s, now=now, mode=mode)
        for s in req.subtasks
    ]


def _refresh_subtask(
    req: Requirement,
    subtask: Subtask,
    now: Optional[datetime],
    mode: str,
) -> Subtask:
    """Recalculate the touched subtask and every open sibling, then re-derive status.

    Open siblings can turn late just by time passing; completed ones are
    fixed by their actual end and are left alone.
    """
    refreshed = recalculate_subtask_fields(subtask, now=now, mode=mode)
    req.subtasks = [refreshed if s.id == subtask.id else s for s in req.subtasks]
    _refresh_open_subtasks(req, now, mode, skip=subtask.id)
    req.status = derive_requirement_status(req.subtasks)
    req.released_at = None
    return refreshed


def _get_subtask(req: Requirement, subtask_id: str) -> Subtask:
    subtask = req.get_subtask(subtask_id)
    if subtask is None:
        raise SubtaskNotFound(req.id, subtask_id)
    return subtask


def add_subtask(
    data_dir: Path,
    req_id: str,
    name: str,
    phase: Optional[Phase] = None,
    now: Optional[datetime] = None,
    mode: str = DELAY_MODE_STRICT,
) -> Subtask:
    """Append a subtask to a requirement and re-derive its status."""
    req = _require(data_dir, req_id)
    subtask = _new_subtask(req, name, phase)
    req.subtasks.append(subtask)

    subtask = _refresh_subtask(req, subtask, now, mode)
    save_requirement(data_dir, req)
    logger.info(f"[STORE] {req_id}: added subtask {subtask.id} ({subtask.name})")
    return subtask


def update_subtask(
    data_dir: Path,
    req_id: str,
    subtask_id: str,
    updates: dict,
    now: Optional[datetime] = None,
    mode: str = DELAY_MODE_STRICT,
) -> Subtask:
    """Edit a subtask's name, phase or dates.

    A "status" key is applied through the state machine after the other
    fields, so an explicit actual_end in the same update is kept.

    Raises:
        RequirementNotFound, SubtaskNotFound: If either ID is unknown
        InvalidInput: If a value fails validation
        InvalidTransition: If the status change is not allowed
        SubtaskIntegrityError: If the result is inconsistent in strict mode
    """
    req = _require(data_dir, req_id)
    subtask = _get_subtask(req, subtask_id)

    for key, value in updates.items():
        if key == "status":
            continue
        if key == "name":
            name = _check(iv.validate_length(value, iv.INPUT_LIMITS["title"], "子任务名称"))
            if not name:
                raise InvalidInput("子任务名称不能为空")
            subtask.name = name
        elif key == "phase":
            try:
                subtask.phase = Phase(value) if value else None
            except ValueError:
                raise InvalidInput(f"无效的阶段: {value}") from None
        elif key in SUBTASK_DATE_FIELDS:
            if value:
                try:
                    parse_timestamp(value)
                except ValueError:
                    raise InvalidInput(f"无效的日期: {value}") from None
            setattr(subtask, key, value or None)
        else:
            raise InvalidInput(f"不可编辑的字段: {key}")

    if "status" in updates:
        status = updates["status"]
        if not isinstance(status, SubtaskStatus):
            parsed = parse_subtask_status(status)
            if parsed is None:
                raise InvalidInput(f"无效的状态: {status}")
            status = parsed
        transition_subtask(subtask, status, actual_end=updates.get("actual_end"), now=now)

    subtask = _refresh_subtask(req, subtask, now, mode)
    save_requirement(data_dir, req)
    return subtask


def set_subtask_status(
    data_dir: Path,
    req_id: str,
    subtask_id: str,
    status: SubtaskStatus,
    actual_end: Optional[str] = None,
    now: Optional[datetime] = None,
    mode: str = DELAY_MODE_STRICT,
) -> Subtask:
    """Move a subtask to a new status and re-derive the requirement status."""
    updates = {"status": status}
    if actual_end:
        updates["actual_end"] = actual_end
    return update_subtask(data_dir, req_id, subtask_id, updates, now=now, mode=mode)


def remove_subtask(
    data_dir: Path,
    req_id: str,
    subtask_id: str,
    now: Optional[datetime] = None,
    mode: str = DELAY_MODE_STRICT,
) -> Requirement:
    """Remove a subtask and re-derive the requirement status."""
    req = _require(data_dir, req_id)
    _get_subtask(req, subtask_id)

    req.subtasks = [s for s in req.subtasks if s.id != subtask_id]
    _refresh_open_subtasks(req, now, mode)
    req.status = derive_requirement_status(req.subtasks)
    req.released_at = None

    logger.info(f"[STORE] {req_id}: removed subtask {subtask_id}")
    return save_requirement(data_dir, req)


def review_requirement(data_dir: Path, req_id: str, status: str, opinion: str = "") -> Requirement:
    """Record a review decision and the reviewer's (sanitized) opinion."""
    review_status = _check(iv.validate_review_status(status))
    review_opinion = _check(iv.validate_review_opinion(opinion))

    req = _require(data_dir, req_id)
    req.review_status = review_status
    req.review_opinion = review_opinion
    return save_requirement(data_dir, req)


def mark_released(data_dir: Path, req_id: str) -> Optional[Requirement]:
    """Mark a completed requirement as released.

    Returns:
        Updated Requirement, or None if it is not completed
    """
    req = _require(data_dir, req_id)

    if req.status != RequirementStatus.COMPLETED:
        logger.warning(f"Cannot release {req_id}: not completed (status={req.status.value})")
        return None

    req.status = RequirementStatus.RELEASED
    req.released_at = _now_iso()
    return save_requirement(data_dir, req)


def _field_text(req: Requirement, column: str) -> str:
    value = getattr(req, column)
    if column == "status":
        return value.value
    if column == "tags":
        return ",".join(value)
    return value or ""


def search_requirements(reqs: list[Requirement], term: str) -> list[Requirement]:
    """Case-insensitive search over id, title, description and tags.

    Raises:
        InvalidInput: If the term fails search validation
    """
    cleaned = _check(iv.validate_search_term(term))
    if not cleaned:
        return list(reqs)

    needle = cleaned.lower()
    return [
        r for r in reqs
        if needle in r.id.lower()
        or needle in r.title.lower()
        or needle in r.description.lower()
        or any(needle in t.lower() for t in r.tags)
    ]


def filter_requirements(reqs: list[Requirement], column: str, operator: str, value: str = "") -> list[Requirement]:
    """Filter requirements by one column condition.

    Raises:
        InvalidInput: If column, operator or value fails validation
    """
    condition = _check(iv.validate_filter(column, operator, value, FILTER_COLUMNS))
    target = condition["value"].lower()

    def matches(req: Requirement) -> bool:
        text = _field_text(req, condition["column"]).lower()
        op = condition["operator"]
        if op == "contains":
            return target in text
        if op == "equals":
            return text == target
        if op == "not_equals":
            return text != target
        if op == "starts_with":
            return text.startswith(target)
        if op == "ends_with":
            return text.endswith(target)
        if op == "is_empty":
            return text == ""
        return text != ""  # is_not_empty

    return [r for r in reqs if matches(r)]


def sort_requirements(reqs: list[Requirement], field: str, direction: str = "asc") -> list[Requirement]:
    """Sort requirements by a field. Status and priority sort by rank.

    Raises:
        InvalidInput: If field or direction fails validation
    """
    config = _check(iv.validate_sort_config(field, direction, SORT_FIELDS))

    if config["field"] == "status":
        key = lambda r: STATUS_RANK[r.status]
    elif config["field"] == "priority":
        key = lambda r: PRIORITY_RANK.get(r.priority, 0)
    else:
        key = lambda r: _field_text(r, config["field"])

    return sorted(reqs, key=key, reverse=config["direction"] == "desc")


def write_requirement_markdown(path: Path, req: Requirement):
    """Write requirement as human-readable markdown."""
    lines = [
        f"# {req.id}: {req.title}",
        "",
        f"**Status:** {REQUIREMENT_STATUS_LABELS[req.status]} ({req.status.value})",
        f"**Version:** {req.version or '-'}",
        f"**Created:** {req.created}",
        f"**Updated:** {req.updated}",
    ]

    if req.priority:
        lines.append(f"**Priority:** {req.priority}")
    if req.platform:
        lines.append(f"**Platform:** {req.platform}")
    if req.tags:
        lines.append(f"**Tags:** {', '.join(req.tags)}")
    if req.released_at:
        lines.append(f"**Released:** {req.released_at}")
    lines.append(f"**Review:** {req.review_status}")

    lines.append("")

    if req.description:
        lines.extend([
            "## Description",
            "",
            req.description,
            "",
        ])

    if req.review_opinion:
        lines.extend([
            "## Review Opinion",
            "",
            req.review_opinion,
            "",
        ])

    if req.subtasks:
        lines.extend([
            "## Subtasks",
            "",
            "| Subtask | Phase | Status | Estimated | Actual | Delay |",
            "|---------|-------|--------|-----------|--------|-------|",
        ])
        for s in req.subtasks:
            estimated = f"{s.estimated_duration_hours}h" if s.estimated_duration_hours else "-"
            actual = f"{s.actual_duration_hours}h" if s.actual_duration_hours else "-"
            delay = DELAY_STATUS_LABELS[s.delay_status] if s.delay_status != DelayStatus.UNKNOWN else "-"
            lines.append(
                f"| {s.name} | {PHASE_LABELS[resolve_phase(s)]} | {SUBTASK_STATUS_LABELS[s.status]} "
                f"| {estimated} | {actual} | {delay} |"
            )
        lines.append("")

    path.write_text("\n".join(lines), encoding="utf-8")
