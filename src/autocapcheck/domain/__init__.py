"""
Domain layer.

Pure models, error taxonomy, version parsing, error classification and
collaborator protocols. Nothing here performs I/O.
"""

from autocapcheck.domain.errors import ExitCode
from autocapcheck.domain.models import (
    CapabilityRecord,
    CapabilityStatus,
    Credential,
    EndpointKind,
    RunMode,
    Session,
    Target,
    TaskHandle,
)
from autocapcheck.domain.settings import RunSettings

__all__ = [
    "CapabilityRecord",
    "CapabilityStatus",
    "Credential",
    "EndpointKind",
    "ExitCode",
    "RunMode",
    "RunSettings",
    "Session",
    "Target",
    "TaskHandle",
]
