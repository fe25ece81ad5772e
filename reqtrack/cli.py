#!/usr/bin/env python3
"""rq - requirement tracker CLI entrypoint."""

import argparse
import logging
import sys
from pathlib import Path

from reqtrack.lib.config import (
    TrackerConfig,
    clear_current_requirement,
    get_current_requirement,
    load_tracker_config,
    resolve_data_dir,
    set_current_requirement,
)
from reqtrack.lib.types import Phase
from reqtrack.lib.validate import ValidationError
from reqtrack.pm.requirements import SORT_FIELDS, load_requirement
from reqtrack.commands import board as cmd_board_module
from reqtrack.commands import check as cmd_check_module
from reqtrack.commands import requirement as cmd_requirement_module
from reqtrack.commands import stats as cmd_stats_module
from reqtrack.commands import status as cmd_status_module
from reqtrack.commands import subtask as cmd_subtask_module
from reqtrack.commands import version as cmd_version_module

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)


def get_tracker_config(args) -> tuple[TrackerConfig, Path]:
    """Resolve the data dir and load tracker.env from it."""
    data_dir = resolve_data_dir(args.data_dir)
    try:
        config = load_tracker_config(data_dir)
    except (ValueError, ValidationError) as e:
        print(f"ERROR: Invalid {data_dir / 'tracker.env'}: {e}")
        sys.exit(2)
    return config, data_dir


def resolve_requirement_id(args, data_dir: Path) -> str:
    """Resolve requirement ID from args or current context."""
    req_id = getattr(args, 'id', None)
    if req_id:
        return req_id

    current = get_current_requirement(data_dir)
    if current:
        return current

    print("ERROR: No requirement specified. Use 'rq use <id>' to set current requirement.")
    sys.exit(2)


def _command(handler, needs_id: bool = False):
    """Wrap a command handler with config loading and ID resolution."""
    def run(args) -> int:
        config, data_dir = get_tracker_config(args)
        if needs_id:
            args.id = resolve_requirement_id(args, data_dir)
        return handler(args, data_dir, config)
    return run


def cmd_use(args):
    """Set, show, or clear the current requirement context."""
    data_dir = resolve_data_dir(args.data_dir)

    if args.clear:
        clear_current_requirement(data_dir)
        print("Cleared current requirement context.")
        return 0

    if not args.id:
        current = get_current_requirement(data_dir)
        if current:
            print(f"Current requirement: {current}")
        else:
            print("No current requirement set. Use 'rq use <id>' to set one.")
        return 0

    if load_requirement(data_dir, args.id) is None:
        print(f"ERROR: Requirement '{args.id}' not found.")
        return 1

    set_current_requirement(data_dir, args.id)
    print(f"Now using requirement: {args.id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='rq', description='Requirement tracker')
    parser.add_argument('--data-dir', '-d', help='Data directory (default: $REQTRACK_DATA_DIR or ./.reqtrack)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    req_mod = cmd_requirement_module

    # rq new
    p_new = subparsers.add_parser('new', help='Create requirement')
    p_new.add_argument('title', help='Requirement title')
    p_new.add_argument('--version', help='Target version label (e.g. "iOS 2.1.0")')
    p_new.add_argument('--priority', help='低 / 中 / 高 / 紧急')
    p_new.add_argument('--platform', help='Platform')
    p_new.add_argument('--description', help='Description')
    p_new.add_argument('--template', '-t', help='Subtask template (default: SUBTASK_TEMPLATE)')
    p_new.set_defaults(func=_command(req_mod.cmd_new))

    # rq list
    p_list = subparsers.add_parser('list', help='List requirements')
    p_list.add_argument('--search', '-s', help='Search title, description, ID and tags')
    p_list.add_argument('--priority', help='Only this priority')
    p_list.add_argument('--status', help='Only this status (e.g. development_in_progress)')
    p_list.add_argument('--filter', '-f', action='append', metavar='COL:OP[:VALUE]',
                        help='Filter condition, e.g. title:contains:登录 (repeatable)')
    p_list.add_argument('--sort', choices=SORT_FIELDS, help='Sort field')
    p_list.add_argument('--desc', action='store_true', help='Sort descending')
    p_list.set_defaults(func=_command(req_mod.cmd_list))

    # rq show
    p_show = subparsers.add_parser('show', help='Show requirement details')
    p_show.add_argument('id', nargs='?', help='Requirement ID (uses current if not specified)')
    p_show.set_defaults(func=_command(req_mod.cmd_show, needs_id=True))

    # rq use
    p_use = subparsers.add_parser('use', help='Set/show current requirement')
    p_use.add_argument('id', nargs='?', help='Requirement ID to use')
    p_use.add_argument('--clear', action='store_true', help='Clear current requirement')
    p_use.set_defaults(func=cmd_use)

    # rq set
    p_set = subparsers.add_parser('set', help='Edit requirement fields')
    p_set.add_argument('id', nargs='?', help='Requirement ID (uses current if not specified)')
    p_set.add_argument('--title')
    p_set.add_argument('--description')
    p_set.add_argument('--priority', help='低 / 中 / 高 / 紧急 ("" clears)')
    p_set.add_argument('--need-to-do', dest='need_to_do', help='是 / 否 ("" clears)')
    p_set.add_argument('--operational', help='yes / no')
    p_set.add_argument('--version')
    p_set.add_argument('--platform')
    p_set.add_argument('--tags', help='Comma-separated tags (replaces existing)')
    p_set.set_defaults(func=_command(req_mod.cmd_set, needs_id=True))

    # rq delete
    p_delete = subparsers.add_parser('delete', help='Delete requirements')
    p_delete.add_argument('ids', nargs='+', help='Requirement IDs')
    p_delete.add_argument('--confirm', action='store_true', required=True, help='Confirm deletion')
    p_delete.set_defaults(func=_command(req_mod.cmd_delete))

    # rq review
    p_review = subparsers.add_parser('review', help='Record review decision')
    p_review.add_argument('id', nargs='?', help='Requirement ID (uses current if not specified)')
    p_review.add_argument('--status', required=True, help='pending / approved / rejected')
    p_review.add_argument('--opinion', help='Review opinion')
    p_review.set_defaults(func=_command(req_mod.cmd_review, needs_id=True))

    # rq release
    p_release = subparsers.add_parser('release', help='Mark completed requirement as released')
    p_release.add_argument('id', nargs='?', help='Requirement ID (uses current if not specified)')
    p_release.set_defaults(func=_command(req_mod.cmd_release, needs_id=True))

    # rq subtask
    sub_mod = cmd_subtask_module
    p_subtask = subparsers.add_parser('subtask', help='Manage subtasks')
    subtask_sub = p_subtask.add_subparsers(dest='subtask_cmd', required=True)

    p_sub_add = subtask_sub.add_parser('add', help='Add subtask')
    p_sub_add.add_argument('name', help='Subtask name (e.g. 前端开发)')
    p_sub_add.add_argument('--req', dest='id', help='Requirement ID (uses current if not specified)')
    p_sub_add.add_argument('--phase', choices=[p.value for p in Phase], help='Phase (classified from name if omitted)')
    p_sub_add.set_defaults(func=_command(sub_mod.cmd_subtask_add, needs_id=True))

    for action, help_text in (
        ('start', 'Start subtask'),
        ('pause', 'Pause subtask'),
        ('resume', 'Resume paused subtask'),
        ('complete', 'Complete subtask'),
        ('reopen', 'Reopen completed subtask'),
        ('reset', 'Reset subtask to not started'),
    ):
        p_action = subtask_sub.add_parser(action, help=help_text)
        p_action.add_argument('subtask', help='Subtask ID, number or name')
        p_action.add_argument('--req', dest='id', help='Requirement ID (uses current if not specified)')
        if action == 'complete':
            p_action.add_argument('--at', help='Actual end (ISO date/time, default now)')
        p_action.set_defaults(func=_command(sub_mod.cmd_subtask_transition, needs_id=True), action=action)

    p_sub_dates = subtask_sub.add_parser('dates', help='Set subtask dates or name')
    p_sub_dates.add_argument('subtask', help='Subtask ID, number or name')
    p_sub_dates.add_argument('--req', dest='id', help='Requirement ID (uses current if not specified)')
    p_sub_dates.add_argument('--estimated-start', dest='estimated_start')
    p_sub_dates.add_argument('--estimated-end', dest='estimated_end')
    p_sub_dates.add_argument('--actual-start', dest='actual_start')
    p_sub_dates.add_argument('--actual-end', dest='actual_end')
    p_sub_dates.add_argument('--name', help='Rename subtask')
    p_sub_dates.set_defaults(func=_command(sub_mod.cmd_subtask_dates, needs_id=True))

    p_sub_remove = subtask_sub.add_parser('remove', help='Remove subtask')
    p_sub_remove.add_argument('subtask', help='Subtask ID, number or name')
    p_sub_remove.add_argument('--req', dest='id', help='Requirement ID (uses current if not specified)')
    p_sub_remove.set_defaults(func=_command(sub_mod.cmd_subtask_remove, needs_id=True))

    # rq status
    p_status = subparsers.add_parser('status', help='Show phase breakdown and derived status')
    p_status.add_argument('id', nargs='?', help='Requirement ID (uses current if not specified)')
    p_status.set_defaults(func=_command(cmd_status_module.cmd_status, needs_id=True))

    # rq stats
    p_stats = subparsers.add_parser('stats', help='Summary statistics')
    p_stats.add_argument('--version', help='Only requirements of this version')
    p_stats.set_defaults(func=_command(cmd_stats_module.cmd_stats))

    # rq version
    ver_mod = cmd_version_module
    p_version = subparsers.add_parser('version', help='Release planning')
    p_version.set_defaults(func=_command(ver_mod.cmd_version_list), schedule=False)
    version_sub = p_version.add_subparsers(dest='version_cmd')

    p_ver_add = version_sub.add_parser('add', help='Plan a version')
    p_ver_add.add_argument('platform', help='Platform (e.g. iOS)')
    p_ver_add.add_argument('number', help='Version number (x.y or x.y.z)')
    p_ver_add.add_argument('release_date', help='Release date (YYYY-MM-DD)')
    p_ver_add.set_defaults(func=_command(ver_mod.cmd_version_add))

    p_ver_list = version_sub.add_parser('list', help='List versions')
    p_ver_list.add_argument('--schedule', action='store_true', help='Show phase windows')
    p_ver_list.set_defaults(func=_command(ver_mod.cmd_version_list))

    p_ver_update = version_sub.add_parser('update', help='Update a version')
    p_ver_update.add_argument('version_id', help='Version ID')
    p_ver_update.add_argument('--platform')
    p_ver_update.add_argument('--number')
    p_ver_update.add_argument('--release-date', dest='release_date')
    p_ver_update.set_defaults(func=_command(ver_mod.cmd_version_update))

    p_ver_delete = version_sub.add_parser('delete', help='Delete a version')
    p_ver_delete.add_argument('version_id', help='Version ID')
    p_ver_delete.set_defaults(func=_command(ver_mod.cmd_version_delete))

    p_ver_numbers = version_sub.add_parser('numbers', help='List version labels for --version')
    p_ver_numbers.set_defaults(func=_command(ver_mod.cmd_version_numbers))

    p_ver_schedule = version_sub.add_parser('schedule', help='Preview schedule for a release date')
    p_ver_schedule.add_argument('release_date', help='Release date (YYYY-MM-DD)')
    p_ver_schedule.set_defaults(func=_command(ver_mod.cmd_version_schedule))

    # rq platform
    p_platform = subparsers.add_parser('platform', help='Manage platforms')
    p_platform.set_defaults(func=_command(ver_mod.cmd_platform_list))
    platform_sub = p_platform.add_subparsers(dest='platform_cmd')

    p_plat_list = platform_sub.add_parser('list', help='List platforms')
    p_plat_list.set_defaults(func=_command(ver_mod.cmd_platform_list))

    p_plat_add = platform_sub.add_parser('add', help='Add custom platform')
    p_plat_add.add_argument('name', help='Platform name')
    p_plat_add.set_defaults(func=_command(ver_mod.cmd_platform_add))

    p_plat_remove = platform_sub.add_parser('remove', help='Remove custom platform')
    p_plat_remove.add_argument('name', help='Platform name')
    p_plat_remove.set_defaults(func=_command(ver_mod.cmd_platform_remove))

    # rq check
    p_check = subparsers.add_parser('check', help='Validate an input value')
    p_check.add_argument('kind', choices=sorted(cmd_check_module.VALIDATORS), help='Validator to run')
    p_check.add_argument('value', help='Value to check')
    p_check.set_defaults(func=_command(cmd_check_module.cmd_check))

    # rq board
    p_board = subparsers.add_parser('board', help='Interactive requirement board')
    p_board.set_defaults(func=_command(cmd_board_module.cmd_board))

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
