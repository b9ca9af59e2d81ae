"""
Connection manager.

Opens, version-checks and tears down sessions to the control plane and
to each target endpoint. Keeps at most one session per endpoint.

State machine per endpoint:
    Disconnected -> Connecting -> Connected | Disconnected (failure)
    Connected -> VersionChecking -> VersionOk | Disconnected (gate failure)
    VersionOk -> InUse -> Disconnected (final)
"""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from autocapcheck.domain.error_classifier import classify_error
from autocapcheck.domain.errors import (
    AuthenticationError,
    CapCheckError,
    ConfigurationError,
    NetworkError,
    OperationFailed,
    TransportAuthError,
    TransportError,
    UserCancelled,
    VersionError,
)
from autocapcheck.domain.models import Credential, EndpointKind, Session, SessionState
from autocapcheck.domain.protocols import SessionTransport
from autocapcheck.domain.versions import meets_minimum, short_version

logger = logging.getLogger(__name__)

# Called after a failed attempt with (endpoint, error, attempt number).
# Returns the (endpoint, credential) to try next, or None to give up.
RetryPrompt = Callable[[str, CapCheckError, int], Optional[tuple[str, Credential]]]


class ConnectionManager:
    """
    Session lifecycle for every endpoint touched by a run.

    Usage:
        manager = ConnectionManager(transport)
        session = manager.connect("vc01.example.com", credential, EndpointKind.TARGET)
        manager.enforce_version_gate(session, "9.0")
        ...
        manager.disconnect_all()
    """

    def __init__(
        self,
        transport: SessionTransport,
        max_attempts: int = 3,
        allow_multiple_sessions: bool = True,
    ) -> None:
        self.transport = transport
        self.max_attempts = max_attempts
        self.allow_multiple_sessions = allow_multiple_sessions
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    @property
    def sessions(self) -> list[Session]:
        """Currently tracked sessions."""
        with self._lock:
            return list(self._sessions.values())

    def get(self, endpoint: str) -> Session | None:
        """Return the active session for an endpoint, if any."""
        with self._lock:
            return self._sessions.get(endpoint.lower())

    def check_session_capacity(self, required: int) -> None:
        """
        Fail early when the run needs more concurrent sessions than allowed.

        Raises:
            ConfigurationError: If multiple sessions are disabled and required > 1
        """
        if required > 1 and not self.allow_multiple_sessions:
            raise ConfigurationError(
                f"This run needs {required} concurrent sessions but multiple "
                "sessions are disabled (allow_multiple_sessions is false)."
            )

    # ------------------------------------------------------------------
    # Connect
    # ------------------------------------------------------------------

    def connect(self, endpoint: str, credential: Credential, kind: EndpointKind) -> Session:
        """
        Open a session to an endpoint.

        Any existing session to the same endpoint is closed first so the
        new session always carries a fresh token. The credential is
        cleared once the open call returns, whether it succeeded or not.

        Args:
            endpoint: Endpoint FQDN
            credential: One-time credential
            kind: Control plane or target

        Returns:
            Connected session

        Raises:
            AuthenticationError: Credential rejected
            NetworkError: Endpoint unreachable or not an API endpoint
            ConfigurationError: Multiple sessions are disabled and one is already open
        """
        if self.get(endpoint) is not None:
            logger.info("Closing existing session to %s before reconnecting", endpoint)
            self.disconnect(endpoint)

        with self._lock:
            others = [s.endpoint for s in self._sessions.values()]
        if others and not self.allow_multiple_sessions:
            credential.clear()
            raise ConfigurationError(
                f"Cannot connect to {endpoint}: a session to {others[0]} is already open "
                "and multiple sessions are disabled."
            )

        username = credential.username
        logger.info("Connecting to %s %s as %s", kind.label, endpoint, username)
        logger.debug("%s state: %s", endpoint, SessionState.CONNECTING.value)
        try:
            session = self.transport.open(endpoint, credential, kind)
        except TransportAuthError as exc:
            message = classify_error(exc, kind, endpoint, username)
            logger.error("Authentication to %s failed: %s", endpoint, message)
            raise AuthenticationError(message) from exc
        except TransportError as exc:
            message = classify_error(exc, kind, endpoint, username)
            logger.error("Connection to %s failed: %s", endpoint, message)
            raise NetworkError(message) from exc
        finally:
            credential.clear()

        session.state = SessionState.CONNECTED
        with self._lock:
            self._sessions[endpoint.lower()] = session
        logger.info("Connected to %s %s (version %s)", kind.label, endpoint, session.version or "unknown")
        return session

    def enforce_version_gate(self, session: Session, minimum: str) -> Session:
        """
        Reject an endpoint whose release is below the minimum.

        The session is closed before VersionError is raised, so nothing
        further can run against an incompatible endpoint.

        Raises:
            VersionError: If the reported (major, minor) is below minimum
        """
        session.state = SessionState.VERSION_CHECKING
        try:
            compatible = meets_minimum(session.version, minimum)
        except ValueError:
            logger.warning("%s reported an unparseable version: %r", session.endpoint, session.version)
            compatible = False

        if not compatible:
            logger.warning(
                "%s %s version %s is below the minimum %s",
                session.kind.label, session.endpoint, short_version(session.version), minimum,
            )
            try:
                self.disconnect(session.endpoint)
            except NetworkError as exc:
                logger.warning("Session to incompatible endpoint %s was dropped locally: %s", session.endpoint, exc)
            raise VersionError(session.endpoint, short_version(session.version), minimum)

        session.state = SessionState.VERSION_OK
        logger.debug("%s passed version gate (%s >= %s)", session.endpoint, session.version, minimum)
        return session

    def connect_with_retry(
        self,
        endpoint: str,
        credential: Credential,
        kind: EndpointKind,
        minimum_version: str | None = None,
        prompt_retry: RetryPrompt | None = None,
    ) -> Session:
        """
        Connect, then apply the version gate, re-prompting on failure.

        Bounded by max_attempts. Authentication and network failures are
        offered to prompt_retry; a version failure is final.
        A target keeps its address across retries; only the control plane
        may be re-addressed at the prompt.

        Raises:
            UserCancelled: The operator declined to retry
            AuthenticationError | NetworkError: Attempts exhausted or no prompt
            VersionError: Endpoint below minimum_version
        """
        last_error: CapCheckError | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                session = self.connect(endpoint, credential, kind)
                if minimum_version:
                    self.enforce_version_gate(session, minimum_version)
                return session
            except (AuthenticationError, NetworkError) as exc:
                last_error = exc
                if prompt_retry is None or attempt == self.max_attempts:
                    break
                retry = prompt_retry(endpoint, exc, attempt)
                if retry is None:
                    raise UserCancelled(f"Connection to {endpoint} cancelled by operator") from exc
                new_endpoint, credential = retry
                if kind is EndpointKind.TARGET and new_endpoint.strip().lower() != endpoint.lower():
                    logger.warning("Target %s keeps its address; ignoring re-entered %s", endpoint, new_endpoint)
                else:
                    endpoint = new_endpoint.strip()

        logger.error("Giving up on %s after %d attempt(s)", endpoint, attempt)
        if last_error is None:
            raise NetworkError(f"No connection attempt was made to {endpoint}")
        raise last_error

    # ------------------------------------------------------------------
    # Use
    # ------------------------------------------------------------------

    def mark_in_use(self, session: Session) -> Session:
        """
        Move a version-checked session to InUse.

        Raises:
            OperationFailed: If the session has not passed the version gate
        """
        if not session.is_eligible or self.get(session.endpoint) is not session:
            raise OperationFailed(
                f"Session to {session.endpoint} is not eligible for the operation "
                f"(state: {session.state.value})"
            )
        session.state = SessionState.IN_USE
        return session

    # ------------------------------------------------------------------
    # Disconnect
    # ------------------------------------------------------------------

    def disconnect(self, endpoint: str) -> None:
        """
        Close the session to an endpoint.

        Idempotent: an endpoint with no active session logs one notice and
        returns.

        Raises:
            NetworkError: If the endpoint rejected the close call; the
                session is still dropped locally
        """
        with self._lock:
            session = self._sessions.pop(endpoint.lower(), None)
        if session is None:
            logger.info("No active connection to %s", endpoint)
            return

        try:
            self.transport.close(session)
        except TransportError as exc:
            raise NetworkError(f"Failed to close session to {endpoint}: {exc}") from exc
        finally:
            session.state = SessionState.DISCONNECTED
        logger.info("Disconnected from %s %s", session.kind.label, endpoint)

    def disconnect_all(self) -> list[str]:
        """
        Close every tracked session, best effort.

        Returns:
            Messages for the sessions that failed to close
        """
        failures: list[str] = []
        for session in self.sessions:
            try:
                self.disconnect(session.endpoint)
            except Exception as exc:  # pylint: disable=broad-except
                logger.warning("%s", exc)
                failures.append(str(exc))
        if failures:
            logger.warning("%d session(s) did not close cleanly", len(failures))
        return failures
