"""Tests for reqtrack.lib.config module."""

import pytest
from pathlib import Path
from unittest.mock import patch

from reqtrack.lib.config import (
    DATA_DIR_ENV,
    clear_current_requirement,
    get_current_requirement,
    load_tracker_config,
    resolve_data_dir,
    set_current_requirement,
)
from reqtrack.lib.constants import VALID_DELAY_MODES
from reqtrack.lib.validate import ValidationError


class TestDelayModeValidation:
    """Test DELAY_MODE validation in load_tracker_config."""

    @patch("reqtrack.lib.config.envparse.load_env")
    def test_valid_strict_mode(self, mock_load_env):
        mock_load_env.return_value = {"DELAY_MODE": "strict"}
        config = load_tracker_config(Path("/fake/.reqtrack"))
        assert config.delay_mode == "strict"

    @patch("reqtrack.lib.config.envparse.load_env")
    def test_valid_legacy_mode(self, mock_load_env):
        mock_load_env.return_value = {"DELAY_MODE": "Legacy"}
        config = load_tracker_config(Path("/fake/.reqtrack"))
        assert config.delay_mode == "legacy"

    @patch("reqtrack.lib.config.envparse.load_env")
    def test_invalid_mode_defaults_to_strict_with_warning(self, mock_load_env, caplog):
        mock_load_env.return_value = {"DELAY_MODE": "lenient"}
        config = load_tracker_config(Path("/fake/.reqtrack"))
        assert config.delay_mode == "strict"
        assert "Unknown DELAY_MODE 'lenient'" in caplog.text

    def test_contains_expected_modes(self):
        assert set(VALID_DELAY_MODES) == {"strict", "legacy"}


class TestLoadTrackerConfig:
    """Defaults and schema checks."""

    @patch("reqtrack.lib.config.envparse.load_env")
    def test_defaults(self, mock_load_env):
        mock_load_env.return_value = {}
        config = load_tracker_config(Path("/fake/.reqtrack"))
        assert config.name == ".reqtrack"
        assert config.batch_operation_max == 100
        assert config.subtask_template == "default"

    @patch("reqtrack.lib.config.envparse.load_env")
    def test_missing_file_yields_defaults(self, mock_load_env):
        mock_load_env.side_effect = FileNotFoundError("nope")
        config = load_tracker_config(Path("/fake/.reqtrack"))
        assert config.delay_mode == "strict"

    @patch("reqtrack.lib.config.envparse.load_env")
    def test_values(self, mock_load_env):
        mock_load_env.return_value = {
            "PROJECT_NAME": "mobile",
            "BATCH_OPERATION_MAX": "20",
            "SUBTASK_TEMPLATE": "backend_only",
        }
        config = load_tracker_config(Path("/fake/.reqtrack"))
        assert config.name == "mobile"
        assert config.batch_operation_max == 20
        assert config.subtask_template == "backend_only"

    @patch("reqtrack.lib.config.envparse.load_env")
    def test_bad_batch_max_rejected(self, mock_load_env):
        mock_load_env.return_value = {"BATCH_OPERATION_MAX": "0"}
        with pytest.raises(ValidationError):
            load_tracker_config(Path("/fake/.reqtrack"))

    def test_reads_real_file(self, data_dir):
        (data_dir / "tracker.env").write_text("PROJECT_NAME=app  # comment\nDELAY_MODE=legacy\n")
        config = load_tracker_config(data_dir)
        assert config.name == "app"
        assert config.delay_mode == "legacy"
        assert config.data_dir == data_dir


class TestResolveDataDir:
    def test_cli_value_wins(self, monkeypatch):
        monkeypatch.setenv(DATA_DIR_ENV, "/from/env")
        assert resolve_data_dir("/from/cli") == Path("/from/cli")

    def test_env(self, monkeypatch):
        monkeypatch.setenv(DATA_DIR_ENV, "/from/env")
        assert resolve_data_dir() == Path("/from/env")

    def test_cwd_default(self, monkeypatch, tmp_path):
        monkeypatch.delenv(DATA_DIR_ENV, raising=False)
        monkeypatch.chdir(tmp_path)
        assert resolve_data_dir() == tmp_path / ".reqtrack"


class TestCurrentRequirement:
    """The 'current requirement' context file."""

    def test_unset(self, data_dir):
        assert get_current_requirement(data_dir) is None

    def test_set_and_get(self, data_dir):
        (data_dir / "requirements").mkdir()
        (data_dir / "requirements" / "REQ-0001.json").write_text("{}")
        set_current_requirement(data_dir, "REQ-0001")
        assert get_current_requirement(data_dir) == "REQ-0001"

        clear_current_requirement(data_dir)
        assert get_current_requirement(data_dir) is None

    def test_stale_context_cleared(self, data_dir):
        set_current_requirement(data_dir, "REQ-0042")
        assert get_current_requirement(data_dir) is None
        assert not (data_dir / "current_requirement").exists()
