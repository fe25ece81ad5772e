"""
Shared enums for requirements and subtasks.

Kept in one module so models, workflow and store code can import them
without circular imports.
"""

from enum import Enum


class SubtaskStatus(Enum):
    """Lifecycle of a single subtask."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PAUSED = "paused"


class DelayStatus(Enum):
    """Schedule adherence of a subtask."""
    ON_TIME = "on_time"
    LATE = "late"
    EARLY = "early"
    UNKNOWN = "unknown"


class Phase(Enum):
    """Waterfall phase a subtask belongs to."""
    PROTOTYPE = "prototype"
    UI = "ui"
    DEVELOPMENT = "development"
    TESTING = "testing"
    ACCEPTANCE = "acceptance"
    OTHER = "other"


class RequirementStatus(Enum):
    """Aggregate lifecycle of a version-scoped requirement.

    Declaration order is the lifecycle order.
    """
    PENDING_PROTOTYPE = "pending_prototype"
    PROTOTYPE_IN_PROGRESS = "prototype_in_progress"
    PENDING_UI_DESIGN = "pending_ui_design"
    UI_DESIGN_IN_PROGRESS = "ui_design_in_progress"
    PENDING_DEVELOPMENT = "pending_development"
    DEVELOPMENT_IN_PROGRESS = "development_in_progress"
    PENDING_TESTING = "pending_testing"
    TESTING_IN_PROGRESS = "testing_in_progress"
    PENDING_ACCEPTANCE = "pending_acceptance"
    ACCEPTANCE_IN_PROGRESS = "acceptance_in_progress"
    COMPLETED = "completed"

    # Never produced by derivation
    RELEASED = "released"
    PAUSED = "paused"
