"""Shared fixtures for reqtrack tests."""

import pytest

from reqtrack.lib.types import SubtaskStatus
from reqtrack.pm.models import Subtask


@pytest.fixture
def make_subtask():
    """Factory for subtasks: make_subtask("前端开发", "in_progress")."""
    counter = {"n": 0}

    def _make(name: str, status: str = "not_started", **fields) -> Subtask:
        counter["n"] += 1
        return Subtask(
            id=fields.pop("id", f"REQ-0001-subtask-{counter['n']}"),
            name=name,
            status=SubtaskStatus(status),
            **fields,
        )

    return _make


@pytest.fixture
def data_dir(tmp_path):
    """Empty tracker data directory."""
    d = tmp_path / ".reqtrack"
    d.mkdir()
    return d
