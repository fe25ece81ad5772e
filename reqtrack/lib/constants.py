"""Shared constants for reqtrack."""

import re

from reqtrack.lib.types import DelayStatus, Phase, RequirementStatus, SubtaskStatus

# Requirement ID validation
REQ_ID_PATTERN = re.compile(r'^REQ-\d{4,}$')

# Storage keys inside versions.json
VERSIONS_KEY = "version_management_versions"
CUSTOM_PLATFORMS_KEY = "version_management_custom_platforms"
NO_VERSION_LABEL = "暂无版本号"

# Phase keywords, checked in order; first match wins
PHASE_KEYWORDS: list[tuple[Phase, tuple[str, ...]]] = [
    (Phase.PROTOTYPE, ("原型设计",)),
    (Phase.UI, ("视觉设计", "UI设计")),
    (Phase.DEVELOPMENT, ("开发", "前端", "后端", "数据")),
    (Phase.TESTING, ("测试",)),
    (Phase.ACCEPTANCE, ("验收",)),
]

# Display labels (match the wording used by the product team)
SUBTASK_STATUS_LABELS = {
    SubtaskStatus.NOT_STARTED: "未开始",
    SubtaskStatus.IN_PROGRESS: "进行中",
    SubtaskStatus.COMPLETED: "已完成",
    SubtaskStatus.PAUSED: "已暂停",
}

DELAY_STATUS_LABELS = {
    DelayStatus.ON_TIME: "准时",
    DelayStatus.LATE: "延期",
    DelayStatus.EARLY: "提前",
    DelayStatus.UNKNOWN: "未知",
}

REQUIREMENT_STATUS_LABELS = {
    RequirementStatus.PENDING_PROTOTYPE: "待原型设计",
    RequirementStatus.PROTOTYPE_IN_PROGRESS: "原型设计中",
    RequirementStatus.PENDING_UI_DESIGN: "待UI设计",
    RequirementStatus.UI_DESIGN_IN_PROGRESS: "UI设计中",
    RequirementStatus.PENDING_DEVELOPMENT: "待开发",
    RequirementStatus.DEVELOPMENT_IN_PROGRESS: "开发中",
    RequirementStatus.PENDING_TESTING: "待测试",
    RequirementStatus.TESTING_IN_PROGRESS: "测试中",
    RequirementStatus.PENDING_ACCEPTANCE: "待验收",
    RequirementStatus.ACCEPTANCE_IN_PROGRESS: "验收中",
    RequirementStatus.COMPLETED: "已完成",
    RequirementStatus.RELEASED: "已发布",
    RequirementStatus.PAUSED: "已暂停",
}

PHASE_LABELS = {
    Phase.PROTOTYPE: "原型设计",
    Phase.UI: "UI设计",
    Phase.DEVELOPMENT: "开发",
    Phase.TESTING: "测试",
    Phase.ACCEPTANCE: "验收",
    Phase.OTHER: "其他",
}

# Delay calculation modes
DELAY_MODE_STRICT = "strict"
DELAY_MODE_LEGACY = "legacy"
VALID_DELAY_MODES = (DELAY_MODE_STRICT, DELAY_MODE_LEGACY)

DEFAULT_BATCH_OPERATION_MAX = 100
