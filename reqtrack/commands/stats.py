"""
rq stats - Summarize requirements and subtask hours.
"""

from pathlib import Path

from reqtrack.lib.config import TrackerConfig
from reqtrack.lib.stats import format_summary, summarize_requirements
from reqtrack.pm.requirements import filter_requirements, list_requirements, InvalidInput


def cmd_stats(args, data_dir: Path, config: TrackerConfig) -> int:
    """Print summary stats, optionally for one version only."""
    reqs = list_requirements(data_dir)
    if args.version:
        try:
            reqs = filter_requirements(reqs, "version", "equals", args.version)
        except InvalidInput as e:
            print(f"ERROR: {e}")
            return 2

    summary = summarize_requirements(reqs)
    scope = f" ({args.version})" if args.version else ""
    print(f"Stats for {config.name}{scope}")
    print("-" * 40)
    for line in format_summary(summary):
        print(line)
    return 0
