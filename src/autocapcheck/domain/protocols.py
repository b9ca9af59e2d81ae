"""
Collaborator interfaces.

The connection, credential and task components only talk to the remote
side through these protocols. REST implementations live in
autocapcheck.infrastructure.rest; tests provide in-memory fakes.
"""

from __future__ import annotations

from typing import Protocol

from autocapcheck.domain.models import (
    Credential,
    EndpointKind,
    Grouping,
    Session,
    StoredCredential,
    TaskHandle,
    TaskSnapshot,
)


class SessionTransport(Protocol):
    """Opens and closes authenticated sessions."""

    def open(self, endpoint: str, credential: Credential, kind: EndpointKind) -> Session:
        """Authenticate and return a session carrying the reported version."""
        ...

    def close(self, session: Session) -> None:
        """Invalidate the session on the endpoint."""
        ...


class DirectoryService(Protocol):
    """Control-plane inventory and credential store (orchestrated mode only)."""

    def list_groupings(self, session: Session) -> list[Grouping]:
        """List workload domains with their member endpoint and realm."""
        ...

    def list_credentials(self, session: Session, scope: str) -> list[StoredCredential]:
        """List stored credentials of the given resource scope."""
        ...


class OperationApi(Protocol):
    """The remote long-running operation."""

    def invoke(self, session: Session) -> TaskHandle:
        """Start the operation and return its task handle."""
        ...

    def poll(self, session: Session, handle: TaskHandle) -> TaskSnapshot:
        """Return the current status of the task."""
        ...

    def fetch_result(self, session: Session, handle: TaskHandle) -> TaskSnapshot:
        """Return the terminal status together with the result payload."""
        ...
