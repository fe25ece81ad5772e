"""
rq new / list / show / set / delete / review / release - requirement commands.
"""

from pathlib import Path

from reqtrack.lib.config import TrackerConfig, get_current_requirement
from reqtrack.lib.input_validation import sanitize_html
from reqtrack.lib.constants import (
    DELAY_STATUS_LABELS,
    PHASE_LABELS,
    REQUIREMENT_STATUS_LABELS,
    SUBTASK_STATUS_LABELS,
)
from reqtrack.lib.subtask_templates import load_subtask_templates
from reqtrack.lib.types import DelayStatus, SubtaskStatus
from reqtrack.lib.validate import ValidationError
from reqtrack.pm.models import Requirement
from reqtrack.pm.requirements import (
    InvalidInput,
    RequirementNotFound,
    create_requirement,
    delete_requirements,
    filter_requirements,
    list_requirements,
    load_requirement,
    mark_released,
    review_requirement,
    search_requirements,
    sort_requirements,
    update_requirement,
)
from reqtrack.workflow.phases import resolve_phase


def _truncate(text: str, width: int) -> str:
    return text[:width] + "..." if len(text) > width else text


def progress_text(req: Requirement) -> str:
    """Completed/total subtasks, e.g. "3/7"."""
    done = sum(1 for s in req.subtasks if s.status == SubtaskStatus.COMPLETED)
    return f"{done}/{len(req.subtasks)}"


def cmd_new(args, data_dir: Path, config: TrackerConfig) -> int:
    """Create a requirement with subtasks from a template."""
    template_name = args.template or config.subtask_template
    try:
        template = load_subtask_templates(data_dir).get(template_name)
    except KeyError as e:
        print(f"ERROR: {e.args[0]}")
        return 2

    data = {
        "title": args.title,
        "version": args.version or "",
        "priority": args.priority or "",
        "platform": args.platform or "",
        "description": args.description or "",
    }

    try:
        req = create_requirement(data_dir, data, template=template)
    except (InvalidInput, ValidationError) as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Created {req.id}: {req.title}")
    print(f"  Subtasks: {', '.join(s.name for s in req.subtasks) or 'none'}")
    print(f"  Status:   {REQUIREMENT_STATUS_LABELS[req.status]}")
    return 0


def cmd_list(args, data_dir: Path, config: TrackerConfig) -> int:
    """List requirements with optional search, filters and sort."""
    reqs = list_requirements(data_dir)

    try:
        if args.search:
            reqs = search_requirements(reqs, args.search)
        if args.priority:
            reqs = filter_requirements(reqs, "priority", "equals", args.priority)
        if args.status:
            reqs = filter_requirements(reqs, "status", "equals", args.status)
        for spec in args.filter or []:
            column, _, rest = spec.partition(":")
            operator, _, value = rest.partition(":")
            reqs = filter_requirements(reqs, column, operator, value)
        if args.sort:
            reqs = sort_requirements(reqs, args.sort, "desc" if args.desc else "asc")
    except InvalidInput as e:
        print(f"ERROR: {e}")
        return 2

    if not reqs:
        print("Requirements: none")
        return 0

    current = get_current_requirement(data_dir)

    print("Requirements")
    print("-" * 72)
    for req in reqs:
        marker = "*" if req.id == current else " "
        status = REQUIREMENT_STATUS_LABELS[req.status]
        print(
            f" {marker}{req.id:<10} {status:<8} {progress_text(req):>5}  "
            f"{(req.version or '-'):<14} {_truncate(req.title, 30)}"
        )
    print()
    print(f"{len(reqs)} requirement(s)")
    return 0


def cmd_show(args, data_dir: Path, config: TrackerConfig) -> int:
    """Show one requirement with its subtasks."""
    req = load_requirement(data_dir, args.id)
    if not req:
        print(f"ERROR: Requirement '{args.id}' not found")
        return 2

    print(f"{req.id}: {req.title}")
    print("=" * 60)
    print()
    print(f"Status:       {REQUIREMENT_STATUS_LABELS[req.status]} ({req.status.value})")
    print(f"Version:      {req.version or '-'}")
    print(f"Platform:     {req.platform or '-'}")
    print(f"Priority:     {req.priority or '-'}")
    print(f"Need to do:   {req.need_to_do or '-'}")
    print(f"Operational:  {req.is_operational}")
    print(f"Review:       {req.review_status}")
    if req.review_opinion:
        print(f"  Opinion:    {req.review_opinion}")
    if req.released_at:
        print(f"Released:     {req.released_at}")
    if req.tags:
        print(f"Tags:         {', '.join(req.tags)}")
    print()

    if req.description:
        print(sanitize_html(req.description))
        print()

    if not req.subtasks:
        print("Subtasks: none")
        return 0

    print(f"Subtasks ({progress_text(req)} completed)")
    for s in req.subtasks:
        number = s.id.rsplit("-", 1)[-1]
        delay = ""
        if s.delay_status != DelayStatus.UNKNOWN:
            delay = f"  [{DELAY_STATUS_LABELS[s.delay_status]}]"
        window = ""
        if s.estimated_start or s.estimated_end:
            window = f"  {s.estimated_start or '?'} -> {s.estimated_end or '?'}"
        print(
            f"  {number:>3}. {s.name:<10} {PHASE_LABELS[resolve_phase(s)]:<6} "
            f"{SUBTASK_STATUS_LABELS[s.status]}{window}{delay}"
        )
    return 0


def cmd_set(args, data_dir: Path, config: TrackerConfig) -> int:
    """Edit descriptive fields of a requirement."""
    updates = {}
    for attr, key in (
        ("title", "title"),
        ("description", "description"),
        ("priority", "priority"),
        ("need_to_do", "need_to_do"),
        ("operational", "is_operational"),
        ("version", "version"),
        ("platform", "platform"),
    ):
        value = getattr(args, attr, None)
        if value is not None:
            updates[key] = value
    if args.tags is not None:
        updates["tags"] = [t.strip() for t in args.tags.split(",") if t.strip()]

    if not updates:
        print("ERROR: Nothing to update. See 'rq set --help'.")
        return 2

    try:
        req = update_requirement(data_dir, args.id, updates)
    except RequirementNotFound as e:
        print(f"ERROR: {e}")
        return 2
    except (InvalidInput, ValidationError) as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Updated {req.id}: {', '.join(sorted(updates))}")
    return 0


def cmd_delete(args, data_dir: Path, config: TrackerConfig) -> int:
    """Delete one or more requirements."""
    try:
        deleted = delete_requirements(data_dir, args.ids, max_count=config.batch_operation_max)
    except InvalidInput as e:
        print(f"ERROR: {e}")
        return 2

    for req_id in deleted:
        print(f"Deleted {req_id}")
    missing = [i for i in args.ids if i not in deleted]
    for req_id in missing:
        print(f"  [WARN] Not found: {req_id}")
    return 0 if deleted else 1


def cmd_review(args, data_dir: Path, config: TrackerConfig) -> int:
    """Record a review decision."""
    try:
        req = review_requirement(data_dir, args.id, args.status, args.opinion or "")
    except RequirementNotFound as e:
        print(f"ERROR: {e}")
        return 2
    except (InvalidInput, ValidationError) as e:
        print(f"ERROR: {e}")
        return 1

    print(f"{req.id} review: {req.review_status}")
    return 0


def cmd_release(args, data_dir: Path, config: TrackerConfig) -> int:
    """Mark a completed requirement as released."""
    try:
        req = mark_released(data_dir, args.id)
    except RequirementNotFound as e:
        print(f"ERROR: {e}")
        return 2

    if req is None:
        print(f"ERROR: {args.id} is not completed; only completed requirements can be released")
        return 1

    print(f"{req.id} released at {req.released_at}")
    return 0
