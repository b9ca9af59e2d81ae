"""
Infrastructure layer package.

Contains all I/O and external system integrations:
- REST adapters for SDDC Manager and vCenter Server (rest/)
- Settings file loading (config/)
- Logging setup
- Report export (JSON, Excel)
- Local precondition checks
"""

from autocapcheck.infrastructure.config import ConfigRepository
from autocapcheck.infrastructure.logging_config import setup_logging
from autocapcheck.infrastructure.prereq_check import require_prerequisites, run_checks
from autocapcheck.infrastructure.report_export import ReportExporter
from autocapcheck.infrastructure.rest import (
    RestClient,
    RestSessionTransport,
    SddcDirectory,
    VcenterOperationApi,
)

__all__ = [
    # Config
    "ConfigRepository",
    # Logging
    "setup_logging",
    # Preconditions
    "require_prerequisites",
    "run_checks",
    # Reports
    "ReportExporter",
    # REST
    "RestClient",
    "RestSessionTransport",
    "SddcDirectory",
    "VcenterOperationApi",
]
