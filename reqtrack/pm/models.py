"""
Data models for the PM module.
"""

from dataclasses import dataclass, field, asdict
from typing import Optional

from reqtrack.lib.types import DelayStatus, Phase, RequirementStatus, SubtaskStatus


@dataclass
class Subtask:
    """One unit of work inside a requirement (原型设计, 前端开发, 测试 ...).

    Timestamps are ISO 8601 strings. Durations and delay_status are derived
    fields, recalculated whenever the subtask changes.
    """
    id: str                                    # REQ-0001-subtask-1
    name: str
    phase: Optional[Phase] = None              # None only for legacy records
    status: SubtaskStatus = SubtaskStatus.NOT_STARTED
    estimated_start: Optional[str] = None
    estimated_end: Optional[str] = None
    actual_start: Optional[str] = None
    actual_end: Optional[str] = None
    estimated_duration_hours: int = 0
    actual_duration_hours: int = 0
    delay_status: DelayStatus = DelayStatus.UNKNOWN

    def to_dict(self) -> dict:
        data = asdict(self)
        data["phase"] = self.phase.value if self.phase else None
        data["status"] = self.status.value
        data["delay_status"] = self.delay_status.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Subtask":
        from reqtrack.workflow.state_machine import parse_subtask_status

        status = parse_subtask_status(data.get("status"))
        phase = data.get("phase")
        return cls(
            id=data["id"],
            name=data["name"],
            phase=Phase(phase) if phase else None,
            status=status or SubtaskStatus.NOT_STARTED,
            estimated_start=data.get("estimated_start"),
            estimated_end=data.get("estimated_end"),
            actual_start=data.get("actual_start"),
            actual_end=data.get("actual_end"),
            estimated_duration_hours=data.get("estimated_duration_hours", 0),
            actual_duration_hours=data.get("actual_duration_hours", 0),
            delay_status=DelayStatus(data.get("delay_status", "unknown")),
        )


@dataclass
class Requirement:
    """A version-scoped requirement.

    `status` is derived from the subtasks; it is never edited directly
    except for the `released` marker.
    """
    id: str                                    # REQ-0001
    title: str
    version: str                               # "iOS 2.1.0" or "" when unscheduled
    status: RequirementStatus
    created: str                               # ISO timestamp
    updated: str                               # ISO timestamp
    priority: str = ""                         # 低 / 中 / 高 / 紧急, "" = unset
    platform: str = ""
    description: str = ""
    need_to_do: str = ""                       # 是 / 否, "" = unset
    is_operational: str = "no"                 # yes / no
    tags: list[str] = field(default_factory=list)
    review_status: str = "pending"             # pending / approved / rejected
    review_opinion: str = ""
    released_at: Optional[str] = None
    subtasks: list[Subtask] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        data["subtasks"] = [s.to_dict() for s in self.subtasks]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Requirement":
        data = dict(data)
        data["status"] = RequirementStatus(data["status"])
        data["subtasks"] = [Subtask.from_dict(s) for s in data.get("subtasks", [])]
        return cls(**data)

    def get_subtask(self, subtask_id: str) -> Optional[Subtask]:
        for subtask in self.subtasks:
            if subtask.id == subtask_id:
                return subtask
        return None


@dataclass
class VersionSchedule:
    """Planned phase windows for a release, as YYYY-MM-DD dates."""
    prd_start_date: str
    prd_end_date: str
    prototype_start_date: str
    prototype_end_date: str
    dev_start_date: str
    dev_end_date: str
    test_start_date: str
    test_end_date: str


@dataclass
class Version:
    """A planned release of one platform."""
    id: str
    platform: str                              # iOS, Android, Web, or a custom platform
    version_number: str                        # 2.1.0
    release_date: str                          # YYYY-MM-DD
    schedule: VersionSchedule
    created_at: str
    updated_at: str

    @property
    def label(self) -> str:
        return f"{self.platform} {self.version_number}"

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Version":
        data = dict(data)
        data["schedule"] = VersionSchedule(**data["schedule"])
        return cls(**data)
