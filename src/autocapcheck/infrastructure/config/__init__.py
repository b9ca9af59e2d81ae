"""Settings file loading."""

from autocapcheck.infrastructure.config.repository import ConfigRepository, SETTINGS_FILE

__all__ = ["ConfigRepository", "SETTINGS_FILE"]
