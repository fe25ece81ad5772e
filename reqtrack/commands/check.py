"""
rq check - Run an input validator and print the result.

Handy for checking what the tracker would accept before scripting bulk
edits.
"""

from pathlib import Path

from reqtrack.lib import input_validation as iv
from reqtrack.lib.config import TrackerConfig

VALIDATORS = {
    "search": iv.validate_search_term,
    "title": iv.validate_title,
    "priority": iv.validate_priority,
    "need-to-do": iv.validate_need_to_do,
    "operational": iv.validate_is_operational,
    "review-status": iv.validate_review_status,
    "opinion": iv.validate_review_opinion,
}


def cmd_check(args, data_dir: Path, config: TrackerConfig) -> int:
    """Validate a value. Exit 0 if valid, 1 if rejected."""
    result = VALIDATORS[args.kind](args.value)
    if not result.valid:
        print(f"INVALID: {result.error}")
        return 1

    print("OK")
    if result.value is None:
        print("  value: (cleared)")
    else:
        print(f"  value: {result.value}")
    return 0
