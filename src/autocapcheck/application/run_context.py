"""
Run context.

Explicit state for one invocation: settings, discovered targets, the open
sessions and the report. Created at run start, passed to every component,
and torn down (all sessions closed) on exit, however the run ended.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from autocapcheck.application.connection_manager import ConnectionManager
from autocapcheck.application.status_aggregator import StatusAggregator
from autocapcheck.domain.models import RunMode, Session, Target
from autocapcheck.domain.settings import RunSettings

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """
    State for a single capability run.

    Attributes:
        settings: Version gates, limits and operation parameters
        mode: Orchestrated (control plane) or direct
        connections: Owner of every open session
        aggregator: Per-target report records
        targets: Targets in discovery order
        control_session: Control-plane session in orchestrated mode
    """
    settings: RunSettings
    mode: RunMode
    connections: ConnectionManager
    aggregator: StatusAggregator = field(default_factory=StatusAggregator)
    targets: list[Target] = field(default_factory=list)
    control_session: Optional[Session] = None
    teardown_failures: list[str] = field(default_factory=list)

    def add_target(self, target: Target) -> bool:
        """Track a discovered target once; returns False for duplicates."""
        key = target.name.lower()
        if any(t.name.lower() == key for t in self.targets):
            logger.debug("Ignoring duplicate target %s", target.name)
            return False
        self.targets.append(target)
        return True

    @property
    def eligible_targets(self) -> list[Target]:
        """Targets holding a version-checked session."""
        return [t for t in self.targets if t.session is not None and t.session.is_eligible]

    def close(self) -> None:
        """Disconnect every session still open."""
        self.teardown_failures = self.connections.disconnect_all()
        for target in self.targets:
            target.session = None
        self.control_session = None

    def __enter__(self) -> "RunContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
