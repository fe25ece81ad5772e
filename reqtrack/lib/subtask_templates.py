"""
Subtask templates.

Loads subtasks.yaml to decide which subtasks a new requirement starts
with. If no config file exists, the built-in "default" template is used.

File format:

    templates:
      default:
        - {name: 原型设计, phase: prototype}
        - 视觉设计            # phase classified from the name
      backend_only:
        - 后端开发
        - 测试

Entries are either a bare name or a mapping with `name` and an optional
`phase`. Templates in the file are merged over the built-ins, so a file
can add new templates without repeating "default".
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from reqtrack.lib.types import Phase

logger = logging.getLogger(__name__)

TEMPLATES_FILENAME = "subtasks.yaml"


@dataclass(frozen=True)
class SubtaskSpec:
    """One subtask a template creates."""
    name: str
    phase: Optional[Phase] = None  # None: classify from the name


# The subtasks every requirement goes through, in pipeline order
DEFAULT_SUBTASKS = [
    SubtaskSpec("原型设计", Phase.PROTOTYPE),
    SubtaskSpec("视觉设计", Phase.UI),
    SubtaskSpec("前端开发", Phase.DEVELOPMENT),
    SubtaskSpec("后端开发", Phase.DEVELOPMENT),
    SubtaskSpec("测试", Phase.TESTING),
    SubtaskSpec("产品验收", Phase.ACCEPTANCE),
    SubtaskSpec("需求提出者验收", Phase.ACCEPTANCE),
]

DEFAULT_TEMPLATES = {"default": DEFAULT_SUBTASKS}


@dataclass
class SubtaskTemplates:
    """Subtask templates from subtasks.yaml."""
    templates: dict[str, list[SubtaskSpec]] = field(default_factory=lambda: dict(DEFAULT_TEMPLATES))

    def get(self, name: str) -> list[SubtaskSpec]:
        """Return the named template.

        Raises:
            KeyError: if no such template exists
        """
        if name not in self.templates:
            available = ", ".join(sorted(self.templates))
            raise KeyError(f"Unknown subtask template '{name}' (available: {available})")
        return list(self.templates[name])


def _parse_entry(entry) -> SubtaskSpec:
    if isinstance(entry, str):
        return SubtaskSpec(entry)
    if isinstance(entry, dict) and entry.get("name"):
        phase = entry.get("phase")
        return SubtaskSpec(str(entry["name"]), Phase(phase) if phase else None)
    raise ValueError(f"Invalid subtask entry: {entry!r}")


def load_subtask_templates(data_dir: Optional[Path]) -> SubtaskTemplates:
    """Load subtasks.yaml and return SubtaskTemplates.

    If data_dir is None, the file doesn't exist or can't be parsed,
    returns the built-ins.
    """
    if data_dir is None:
        return SubtaskTemplates()

    config_path = data_dir / TEMPLATES_FILENAME
    if not config_path.exists():
        return SubtaskTemplates()

    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        templates = dict(DEFAULT_TEMPLATES)
        if data and "templates" in data:
            for name, entries in data["templates"].items():
                templates[str(name)] = [_parse_entry(e) for e in entries or []]
        return SubtaskTemplates(templates=templates)
    except (yaml.YAMLError, ValueError, AttributeError, TypeError) as e:
        logger.warning(f"Failed to parse {config_path}: {e}")
        return SubtaskTemplates()
