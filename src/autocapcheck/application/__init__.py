"""
Application layer package.

Contains the components of a capability run:
- ConnectionManager: session lifecycle and version gate
- CredentialResolver: realm-scoped credential lookup
- TaskOrchestrator: invoke, poll and classify the remote operation
- StatusAggregator: per-target report records
- CapabilityService: end-to-end run orchestration
"""

from autocapcheck.application.capability_service import (
    CapabilityService,
    RunResult,
    decide_exit_code,
)
from autocapcheck.application.connection_manager import ConnectionManager
from autocapcheck.application.credential_resolver import CredentialResolver
from autocapcheck.application.run_context import RunContext
from autocapcheck.application.status_aggregator import StatusAggregator
from autocapcheck.application.task_orchestrator import TaskOrchestrator

__all__ = [
    "CapabilityService",
    "ConnectionManager",
    "CredentialResolver",
    "RunContext",
    "RunResult",
    "StatusAggregator",
    "TaskOrchestrator",
    "decide_exit_code",
]
