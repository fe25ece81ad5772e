"""
PM (Project Management) module for reqtrack.

Holds the requirement and version records and the JSON stores that keep
them on disk. Store functions live in pm.requirements and pm.versions;
import them from there.
"""

from reqtrack.pm.models import Requirement, Subtask, Version, VersionSchedule

__all__ = [
    "Requirement",
    "Subtask",
    "Version",
    "VersionSchedule",
]
