"""
Run settings domain model.

Controls version gates, polling, retry limits and the remote operation
parameters. Loaded from config/capcheck_settings.json and overridden by
CLI options.
"""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from autocapcheck.domain.versions import parse_major_minor

logger = logging.getLogger(__name__)


class OperationSettings(BaseModel):
    """Where the remote operation lives and how its result is read."""

    path: str = Field(
        default="/api/esx/settings/hardware-support/clusters/scan",
        description="REST path that starts the long-running operation",
    )
    result_flag: str = Field(
        default="heterogeneous_hardware_located",
        description="Boolean key in the task result that marks the capability as enabled",
    )
    running_states: list[str] = Field(
        default_factory=lambda: ["RUNNING", "PENDING", "QUEUED"],
        description="Task status spellings that mean the task is still in progress",
    )

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Operation path must be absolute."""
        if not v.startswith("/"):
            raise ValueError("Operation path must start with '/'")
        return v


class RunSettings(BaseModel):
    """
    Settings for one capability run.

    All limits are explicit so the retry and concurrency behaviour is
    visible and testable.
    """

    minimum_control_plane_version: str = Field(
        default="5.2",
        description="Lowest SDDC Manager release accepted",
    )
    minimum_target_version: str = Field(
        default="9.0",
        description="Lowest vCenter Server release accepted",
    )
    poll_interval_seconds: float = Field(
        default=1.0,
        description="Delay between task status polls",
        gt=0,
        le=60,
    )
    max_connect_attempts: int = Field(
        default=3,
        description="Upper bound on interactive connection retries",
        ge=1,
        le=10,
    )
    request_timeout_seconds: int = Field(
        default=30,
        description="Timeout for each REST call",
        ge=1,
        le=600,
    )
    verify_tls: bool = Field(
        default=True,
        description="Verify endpoint TLS certificates",
    )
    ca_bundle: Optional[str] = Field(
        default=None,
        description="Path to a CA bundle used for TLS verification",
    )
    allow_multiple_sessions: bool = Field(
        default=True,
        description="Whether more than one endpoint session may be open at a time",
    )
    parallel: bool = Field(
        default=False,
        description="Run the operation on several targets at once",
    )
    max_parallel_targets: int = Field(
        default=4,
        description="Upper bound on concurrent in-flight operations in parallel mode",
        ge=1,
        le=32,
    )
    output_dir: str = Field(
        default="output",
        description="Directory for exported reports",
    )
    operation: OperationSettings = OperationSettings()

    @field_validator("minimum_control_plane_version", "minimum_target_version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        """Minimum versions must parse as major.minor."""
        parse_major_minor(v)
        return v.strip()

    @field_validator("poll_interval_seconds")
    @classmethod
    def warn_slow_polling(cls, v: float) -> float:
        """Warn when polling is slow enough to hide progress."""
        if v > 10:
            logger.warning("Poll interval of %ss is very high - progress will look stalled", v)
        return v
