"""
Configuration repository for loading and saving settings files.

Handles file I/O for run settings; validation is done by the RunSettings
domain model.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict

from pydantic import ValidationError

from autocapcheck.domain.errors import ParameterError
from autocapcheck.domain.settings import RunSettings

logger = logging.getLogger(__name__)

SETTINGS_FILE = "capcheck_settings"


class ConfigRepository:
    """
    Repository for configuration file operations.

    Settings live in <config_dir>/capcheck_settings.json. A missing file
    means defaults; a malformed one is a parameter error.
    """

    def __init__(self, config_dir: Path):
        """
        Initialize the config repository.

        Args:
            config_dir: Base directory for configuration files
        """
        self.config_dir = Path(config_dir)

    def load_json_file(self, filename: str) -> Dict[str, Any]:
        """
        Load a JSON file from the config directory.

        Args:
            filename: Name of the file to load (without extension)

        Returns:
            Parsed JSON data as dictionary

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If file cannot be parsed
        """
        json_path = self.config_dir / f"{filename}.json"
        if not json_path.exists():
            raise FileNotFoundError(f"Config file '{filename}.json' not found in {self.config_dir}")
        try:
            with open(json_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {json_path}: {e}") from e
        if not isinstance(data, dict):
            raise ValueError(f"{json_path} must contain a JSON object")
        return data

    def save_json_file(self, filename: str, data: Dict[str, Any]) -> Path:
        """Save data as <config_dir>/<filename>.json."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        filepath = self.config_dir / f"{filename}.json"
        with open(filepath, "w", encoding="utf-8") as f:
            f.write(json.dumps(data, indent=2, ensure_ascii=False))
        logger.info("Saved config file: %s", filepath)
        return filepath

    def load_settings(self, overrides: Dict[str, Any] | None = None) -> RunSettings:
        """
        Load run settings, applying CLI overrides on top of the file.

        Args:
            overrides: Values that win over the file (None values are ignored)

        Returns:
            Validated RunSettings

        Raises:
            ParameterError: If the file or an override is invalid
        """
        try:
            data = self.load_json_file(SETTINGS_FILE)
            logger.info("Loaded settings from %s", self.config_dir / f"{SETTINGS_FILE}.json")
        except FileNotFoundError:
            logger.debug("No settings file in %s; using defaults", self.config_dir)
            data = {}
        except ValueError as e:
            raise ParameterError(str(e)) from e

        for key, value in (overrides or {}).items():
            if value is not None:
                data[key] = value

        try:
            return RunSettings.model_validate(data)
        except ValidationError as e:
            raise ParameterError(f"Invalid settings: {e}") from e

    def write_default_settings(self) -> Path:
        """Write a settings file holding every default, for operators to edit."""
        return self.save_json_file(SETTINGS_FILE, RunSettings().model_dump(mode="json"))
