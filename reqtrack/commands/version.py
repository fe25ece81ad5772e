"""
rq version / rq platform - Release planning.
"""

from pathlib import Path

from reqtrack.lib.config import TrackerConfig
from reqtrack.lib.validate import ValidationError
from reqtrack.pm.models import VersionSchedule
from reqtrack.pm.versions import (
    add_custom_platform,
    add_version,
    calculate_version_schedule,
    delete_custom_platform,
    delete_version,
    get_version,
    get_version_numbers,
    list_platforms,
    list_versions,
    update_version,
)


def _print_schedule(schedule: VersionSchedule) -> None:
    print(f"  PRD:         {schedule.prd_start_date} ~ {schedule.prd_end_date}")
    print(f"  Prototype:   {schedule.prototype_start_date} ~ {schedule.prototype_end_date}")
    print(f"  Development: {schedule.dev_start_date} ~ {schedule.dev_end_date}")
    print(f"  Testing:     {schedule.test_start_date} ~ {schedule.test_end_date}")


def cmd_version_add(args, data_dir: Path, config: TrackerConfig) -> int:
    """Plan a new version."""
    try:
        version = add_version(data_dir, args.platform, args.number, args.release_date)
    except (ValueError, ValidationError) as e:
        print(f"ERROR: {e}")
        return 1

    print(f"Added {version.label} ({version.id}), release {version.release_date}")
    _print_schedule(version.schedule)
    return 0


def cmd_version_list(args, data_dir: Path, config: TrackerConfig) -> int:
    """List planned versions, newest first."""
    versions = list_versions(data_dir)
    if not versions:
        print("Versions: none")
        return 0

    print("Versions")
    print("-" * 60)
    for v in versions:
        print(f"  {v.id:<16} {v.label:<20} release {v.release_date}")
        if args.schedule:
            _print_schedule(v.schedule)
    return 0


def cmd_version_update(args, data_dir: Path, config: TrackerConfig) -> int:
    """Change a version's platform, number or release date."""
    updates = {}
    if args.platform:
        updates["platform"] = args.platform
    if args.number:
        updates["version_number"] = args.number
    if args.release_date:
        updates["release_date"] = args.release_date
    if not updates:
        print("ERROR: Nothing to update. See 'rq version update --help'.")
        return 2

    try:
        version = update_version(data_dir, args.version_id, updates)
    except (ValueError, ValidationError) as e:
        print(f"ERROR: {e}")
        return 1

    if version is None:
        print(f"ERROR: Version '{args.version_id}' not found")
        return 2

    print(f"Updated {version.label}, release {version.release_date}")
    _print_schedule(version.schedule)
    return 0


def cmd_version_delete(args, data_dir: Path, config: TrackerConfig) -> int:
    version = get_version(data_dir, args.version_id)
    if version is None or not delete_version(data_dir, version.id):
        print(f"ERROR: Version '{args.version_id}' not found")
        return 2
    print(f"Deleted {version.label} ({version.id})")
    return 0


def cmd_version_numbers(args, data_dir: Path, config: TrackerConfig) -> int:
    """Print the labels accepted by 'rq new --version', newest first."""
    for label in get_version_numbers(data_dir):
        print(label)
    return 0


def cmd_version_schedule(args, data_dir: Path, config: TrackerConfig) -> int:
    """Preview the schedule for a release date without storing anything."""
    try:
        schedule = calculate_version_schedule(args.release_date)
    except ValueError:
        print(f"ERROR: Invalid date '{args.release_date}' (expected YYYY-MM-DD)")
        return 2

    print(f"Schedule for release {args.release_date}")
    _print_schedule(schedule)
    return 0


def cmd_platform_list(args, data_dir: Path, config: TrackerConfig) -> int:
    for platform in list_platforms(data_dir):
        print(f"  {platform}")
    return 0


def cmd_platform_add(args, data_dir: Path, config: TrackerConfig) -> int:
    try:
        name = add_custom_platform(data_dir, args.name)
    except (ValueError, ValidationError) as e:
        print(f"ERROR: {e}")
        return 1
    print(f"Platform available: {name}")
    return 0


def cmd_platform_remove(args, data_dir: Path, config: TrackerConfig) -> int:
    if not delete_custom_platform(data_dir, args.name):
        print(f"ERROR: Custom platform '{args.name}' not found")
        return 2
    print(f"Removed platform {args.name}")
    return 0
