"""
Tests for run settings and the config repository.
"""

import json
import shutil
import tempfile
from pathlib import Path

import pytest
from pydantic import ValidationError

from autocapcheck.domain.errors import ParameterError
from autocapcheck.domain.settings import OperationSettings, RunSettings
from autocapcheck.infrastructure.config import SETTINGS_FILE, ConfigRepository


class TestRunSettings:
    """Test settings validation."""

    def test_defaults(self):
        settings = RunSettings()
        assert settings.minimum_target_version == "9.0"
        assert settings.poll_interval_seconds == 1.0
        assert settings.parallel is False
        assert settings.operation.running_states == ["RUNNING", "PENDING", "QUEUED"]

    def test_rejects_bad_version(self):
        with pytest.raises(ValidationError):
            RunSettings(minimum_target_version="latest")

    def test_rejects_zero_poll_interval(self):
        with pytest.raises(ValidationError):
            RunSettings(poll_interval_seconds=0)

    def test_rejects_unbounded_attempts(self):
        with pytest.raises(ValidationError):
            RunSettings(max_connect_attempts=0)

    def test_operation_path_must_be_absolute(self):
        with pytest.raises(ValidationError):
            OperationSettings(path="api/x")


class TestConfigRepository:
    """Test cases for ConfigRepository."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.repo = ConfigRepository(self.temp_dir)

    def teardown_method(self):
        """Clean up test fixtures."""
        shutil.rmtree(self.temp_dir)

    def _write(self, content: str):
        (self.temp_dir / f"{SETTINGS_FILE}.json").write_text(content, encoding="utf-8")

    def test_missing_file_means_defaults(self):
        assert self.repo.load_settings() == RunSettings()

    def test_file_values_are_loaded(self):
        self._write(json.dumps({"minimum_target_version": "9.1", "operation": {"result_flag": "hw"}}))
        settings = self.repo.load_settings()
        assert settings.minimum_target_version == "9.1"
        assert settings.operation.result_flag == "hw"

    def test_overrides_win_and_none_is_ignored(self):
        self._write(json.dumps({"poll_interval_seconds": 5, "parallel": True}))
        settings = self.repo.load_settings({"poll_interval_seconds": 2, "parallel": None})
        assert settings.poll_interval_seconds == 2
        assert settings.parallel is True

    def test_invalid_json_is_parameter_error(self):
        self._write("{not json")
        with pytest.raises(ParameterError):
            self.repo.load_settings()

    def test_non_object_is_parameter_error(self):
        self._write("[1, 2]")
        with pytest.raises(ParameterError):
            self.repo.load_settings()

    def test_invalid_value_is_parameter_error(self):
        self._write(json.dumps({"max_parallel_targets": 0}))
        with pytest.raises(ParameterError):
            self.repo.load_settings()

    def test_write_default_settings_round_trips(self):
        path = self.repo.write_default_settings()
        assert path.exists()
        assert self.repo.load_settings() == RunSettings()

    def test_load_json_file_not_found(self):
        with pytest.raises(FileNotFoundError):
            self.repo.load_json_file("nonexistent")
