"""
Version planning store.

Versions and custom platforms are kept together in <data_dir>/versions.json:

    {
      "version_management_versions": [...],          # newest first
      "version_management_custom_platforms": [...]
    }

Each version carries a schedule planned backwards from its release date
(PRD, prototype, development and testing windows).
"""

import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Optional, Union

from reqtrack.lib.constants import CUSTOM_PLATFORMS_KEY, NO_VERSION_LABEL, VERSIONS_KEY
from reqtrack.lib.input_validation import ValidationResult
from reqtrack.lib.validate import ValidationError, validate_before_write, validate_file
from reqtrack.pm.models import Version, VersionSchedule

logger = logging.getLogger(__name__)

SCHEMA_NAME = "versions"
VERSIONS_FILENAME = "versions.json"

VERSION_NUMBER_PATTERN = re.compile(r'^\d+\.\d+(\.\d+)?$')
PLATFORM_NAME_PATTERN = re.compile(r'^[\u4e00-\u9fa5a-zA-Z0-9_]+$')
PLATFORM_NAME_MAX = 20

# Platforms every install knows about; custom ones are added on top
BUILTIN_PLATFORMS = ["iOS", "Android", "Web", "PC"]


@dataclass
class VersionStore:
    """In-memory view of versions.json."""
    versions: list[Version] = field(default_factory=list)
    custom_platforms: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            VERSIONS_KEY: [v.to_dict() for v in self.versions],
            CUSTOM_PLATFORMS_KEY: list(self.custom_platforms),
        }


def get_versions_path(data_dir: Path) -> Path:
    return data_dir / VERSIONS_FILENAME


def _as_date(value: Union[str, date]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(value).date()


def get_monday(day: date) -> date:
    """Monday of the week containing `day` (weeks start on Monday)."""
    return day - timedelta(days=day.weekday())


def calculate_version_schedule(release_date: Union[str, date]) -> VersionSchedule:
    """Plan the phase windows for a release.

    - PRD: Monday to Wednesday, four weeks before release
    - Prototype: Monday to Friday, three weeks before release
    - Development: Monday two weeks before to Friday one week before release
    - Testing: Monday of the release week to the release date

    Raises:
        ValueError: if release_date is not an ISO date
    """
    release = _as_date(release_date)

    prd_start = get_monday(release - timedelta(weeks=4))
    prototype_start = get_monday(release - timedelta(weeks=3))
    dev_start = get_monday(release - timedelta(weeks=2))
    dev_end = get_monday(release - timedelta(weeks=1)) + timedelta(days=4)

    return VersionSchedule(
        prd_start_date=prd_start.isoformat(),
        prd_end_date=(prd_start + timedelta(days=2)).isoformat(),
        prototype_start_date=prototype_start.isoformat(),
        prototype_end_date=(prototype_start + timedelta(days=4)).isoformat(),
        dev_start_date=dev_start.isoformat(),
        dev_end_date=dev_end.isoformat(),
        test_start_date=get_monday(release).isoformat(),
        test_end_date=release.isoformat(),
    )


def validate_version(
    platform: str,
    version_number: str,
    release_date: str,
    today: Optional[date] = None,
) -> ValidationResult:
    """Validate the user-editable fields of a version.

    Value on success is a dict with the trimmed platform and number and
    the normalized release date.
    """
    if not platform or not platform.strip():
        return ValidationResult(valid=False, error="应用端不能为空")

    if not version_number or not version_number.strip():
        return ValidationResult(valid=False, error="版本号不能为空")

    if not VERSION_NUMBER_PATTERN.match(version_number.strip()):
        return ValidationResult(valid=False, error="版本号格式不正确，请使用 x.y.z 格式（如：1.0.0）")

    if not release_date:
        return ValidationResult(valid=False, error="上线时间不能为空")

    try:
        release = _as_date(release_date)
    except ValueError:
        return ValidationResult(valid=False, error="上线时间格式不正确")

    if release < (today or date.today()):
        return ValidationResult(valid=False, error="上线时间不能早于今天")

    return ValidationResult(
        valid=True,
        value={
            "platform": platform.strip(),
            "version_number": version_number.strip(),
            "release_date": release.isoformat(),
        },
    )


def validate_platform_name(platform: str) -> ValidationResult:
    """Platform names: 1-20 chars of CJK, ASCII letters, digits, underscore."""
    if not platform or not platform.strip():
        return ValidationResult(valid=False, error="平台名称不能为空")

    if len(platform) > PLATFORM_NAME_MAX:
        return ValidationResult(valid=False, error=f"平台名称不能超过{PLATFORM_NAME_MAX}个字符")

    if not PLATFORM_NAME_PATTERN.match(platform):
        return ValidationResult(valid=False, error="平台名称只能包含中文、英文、数字和下划线")

    return ValidationResult(valid=True, value=platform.strip())


def load_version_store(data_dir: Path) -> VersionStore:
    """Load versions.json. Unreadable storage yields an empty store."""
    path = get_versions_path(data_dir)
    if not path.exists():
        return VersionStore()

    try:
        data = validate_file(path, SCHEMA_NAME)
        return VersionStore(
            versions=[Version.from_dict(v) for v in data[VERSIONS_KEY]],
            custom_platforms=list(data[CUSTOM_PLATFORMS_KEY]),
        )
    except (ValidationError, TypeError, KeyError) as e:
        logger.error(f"Failed to load version data from {path}: {e}")
        return VersionStore()


def save_version_store(data_dir: Path, store: VersionStore) -> None:
    """Validate and write versions.json."""
    path = get_versions_path(data_dir)
    data = store.to_dict()
    validate_before_write(data, SCHEMA_NAME, path)

    data_dir.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")


def _now_iso() -> str:
    return datetime.now().isoformat(timespec="seconds")


def list_versions(data_dir: Path) -> list[Version]:
    return load_version_store(data_dir).versions


def get_version(data_dir: Path, version_id: str) -> Optional[Version]:
    for version in list_versions(data_dir):
        if version.id == version_id:
            return version
    return None


def add_version(
    data_dir: Path,
    platform: str,
    version_number: str,
    release_date: str,
    today: Optional[date] = None,
) -> Version:
    """Validate, plan and store a new version (newest first).

    Raises:
        ValueError: with the user-facing message if validation fails
    """
    result = validate_version(platform, version_number, release_date, today=today)
    if not result.valid:
        raise ValueError(result.error)

    fields = result.value
    now = _now_iso()
    version = Version(
        id=f"v-{uuid.uuid4().hex[:12]}",
        platform=fields["platform"],
        version_number=fields["version_number"],
        release_date=fields["release_date"],
        schedule=calculate_version_schedule(fields["release_date"]),
        created_at=now,
        updated_at=now,
    )

    store = load_version_store(data_dir)
    store.versions.insert(0, version)
    save_version_store(data_dir, store)

    logger.info(f"[STORE] Added version {version.label} releasing {version.release_date}")
    return version


def update_version(
    data_dir: Path,
    version_id: str,
    updates: dict,
    today: Optional[date] = None,
) -> Optional[Version]:
    """Update a version's platform, number or release date.

    The schedule is re-planned when the release date changes.

    Returns:
        Updated Version or None if not found

    Raises:
        ValueError: with the user-facing message if validation fails
    """
    allowed = {"platform", "version_number", "release_date"}
    unknown = set(updates) - allowed
    if unknown:
        raise ValueError(f"不可编辑的字段: {', '.join(sorted(unknown))}")

    store = load_version_store(data_dir)
    for i, version in enumerate(store.versions):
        if version.id != version_id:
            continue

        merged = {
            "platform": updates.get("platform", version.platform),
            "version_number": updates.get("version_number", version.version_number),
            "release_date": updates.get("release_date", version.release_date),
        }
        result = validate_version(**merged, today=today)
        if not result.valid:
            raise ValueError(result.error)

        fields = result.value
        schedule = version.schedule
        if fields["release_date"] != version.release_date:
            schedule = calculate_version_schedule(fields["release_date"])

        updated = Version(
            id=version.id,
            platform=fields["platform"],
            version_number=fields["version_number"],
            release_date=fields["release_date"],
            schedule=schedule,
            created_at=version.created_at,
            updated_at=_now_iso(),
        )
        store.versions[i] = updated
        save_version_store(data_dir, store)
        return updated

    return None


def delete_version(data_dir: Path, version_id: str) -> bool:
    """Delete a version. Returns False if it didn't exist."""
    store = load_version_store(data_dir)
    remaining = [v for v in store.versions if v.id != version_id]
    if len(remaining) == len(store.versions):
        return False

    store.versions = remaining
    save_version_store(data_dir, store)
    return True


def list_platforms(data_dir: Path) -> list[str]:
    """Built-in platforms followed by custom ones."""
    custom = load_version_store(data_dir).custom_platforms
    return BUILTIN_PLATFORMS + [p for p in custom if p not in BUILTIN_PLATFORMS]


def add_custom_platform(data_dir: Path, platform: str) -> str:
    """Add a custom platform. Adding an existing one is a no-op.

    Raises:
        ValueError: with the user-facing message if the name is invalid
    """
    result = validate_platform_name(platform)
    if not result.valid:
        raise ValueError(result.error)

    name = result.value
    store = load_version_store(data_dir)
    if name not in store.custom_platforms:
        store.custom_platforms.append(name)
        save_version_store(data_dir, store)
    return name


def delete_custom_platform(data_dir: Path, platform: str) -> bool:
    """Remove a custom platform. Returns False if it wasn't there."""
    store = load_version_store(data_dir)
    if platform not in store.custom_platforms:
        return False

    store.custom_platforms = [p for p in store.custom_platforms if p != platform]
    save_version_store(data_dir, store)
    return True


def get_version_numbers(data_dir: Path) -> list[str]:
    """Choices for a version picker: the "no version" label, then newest labels first."""
    labels = sorted((v.label for v in list_versions(data_dir)), reverse=True)
    return [NO_VERSION_LABEL, *labels]
