"""
Configuration loaders for reqtrack.

Loads tracker configuration from <data_dir>/tracker.env and keeps the
"current requirement" context file used by the CLI.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from reqtrack.lib import envparse
from reqtrack.lib import validate
from reqtrack.lib.constants import (
    DEFAULT_BATCH_OPERATION_MAX,
    DELAY_MODE_STRICT,
    VALID_DELAY_MODES,
)

logger = logging.getLogger(__name__)

DATA_DIR_ENV = "REQTRACK_DATA_DIR"
DEFAULT_DATA_DIR = ".reqtrack"
CONFIG_FILENAME = "tracker.env"
CURRENT_REQUIREMENT_FILENAME = "current_requirement"


@dataclass
class TrackerConfig:
    """Tracker-level configuration from tracker.env"""
    name: str
    data_dir: Path
    delay_mode: str  # "strict" or "legacy", see workflow.schedule
    batch_operation_max: int  # Upper bound for bulk deletes
    subtask_template: str  # Template applied to new requirements


def resolve_data_dir(cli_value: Optional[str] = None) -> Path:
    """Pick the data directory: --data-dir, then $REQTRACK_DATA_DIR, then ./.reqtrack"""
    if cli_value:
        return Path(cli_value)
    env_value = os.environ.get(DATA_DIR_ENV)
    if env_value:
        return Path(env_value)
    return Path.cwd() / DEFAULT_DATA_DIR


def load_tracker_config(data_dir: Path) -> TrackerConfig:
    """Load tracker.env and return TrackerConfig.

    A missing file yields defaults.

    Raises:
        ValueError: if tracker.env has invalid syntax
        validate.ValidationError: if values don't match the tracker schema
    """
    config_path = data_dir / CONFIG_FILENAME
    try:
        env = envparse.load_env(str(config_path))
    except FileNotFoundError:
        env = {}

    validate.validate(env, "tracker")

    delay_mode = env.get("DELAY_MODE", DELAY_MODE_STRICT).lower()
    if delay_mode not in VALID_DELAY_MODES:
        logger.warning(
            f"Unknown DELAY_MODE '{delay_mode}' in {config_path}, using '{DELAY_MODE_STRICT}'"
        )
        delay_mode = DELAY_MODE_STRICT

    return TrackerConfig(
        name=env.get("PROJECT_NAME", data_dir.resolve().name),
        data_dir=data_dir,
        delay_mode=delay_mode,
        batch_operation_max=int(env.get("BATCH_OPERATION_MAX", str(DEFAULT_BATCH_OPERATION_MAX))),
        subtask_template=env.get("SUBTASK_TEMPLATE", "default"),
    )


def get_current_requirement(data_dir: Path) -> str | None:
    """Get the current requirement ID from context, or None if not set.

    Auto-clears stale context if the requirement no longer exists.
    """
    context_file = data_dir / CURRENT_REQUIREMENT_FILENAME
    if context_file.exists():
        req_id = context_file.read_text().strip()
        if req_id:
            if (data_dir / "requirements" / f"{req_id}.json").exists():
                return req_id
            # Stale context - clean it up
            logger.debug(f"[CONTEXT] Clearing stale current requirement {req_id}")
            context_file.unlink()
    return None


def set_current_requirement(data_dir: Path, req_id: str) -> None:
    """Set the current requirement context."""
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / CURRENT_REQUIREMENT_FILENAME).write_text(req_id + "\n")


def clear_current_requirement(data_dir: Path) -> None:
    """Clear the current requirement context."""
    context_file = data_dir / CURRENT_REQUIREMENT_FILENAME
    if context_file.exists():
        context_file.unlink()
