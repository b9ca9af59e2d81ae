"""
Shared fixtures and in-memory fakes for the collaborator protocols.

The fakes record every call so tests can assert on ordering, credential
clearing and session teardown without any network access.
"""

from __future__ import annotations

import threading
from typing import Any

import pytest
from pydantic import SecretStr

from autocapcheck.application.capability_service import CapabilityService
from autocapcheck.domain.errors import TransportError
from autocapcheck.domain.models import (
    Credential,
    EndpointKind,
    Grouping,
    Session,
    StoredCredential,
    TaskHandle,
    TaskSnapshot,
)
from autocapcheck.domain.settings import RunSettings


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeTransport:
    """
    SessionTransport fake.

    Attributes:
        versions: Release reported per endpoint (default "9.0.0")
        failures: Per-endpoint queue of exceptions raised by open()
        close_errors: Endpoints whose close() raises
    """

    def __init__(self, versions: dict[str, str] | None = None) -> None:
        self.versions = versions or {}
        self.failures: dict[str, list[Exception]] = {}
        self.close_errors: dict[str, Exception] = {}
        self.opened: list[tuple[str, str, str, EndpointKind]] = []
        self.closed: list[str] = []
        self.credentials_seen: list[Credential] = []

    def open(self, endpoint: str, credential: Credential, kind: EndpointKind) -> Session:
        self.credentials_seen.append(credential)
        self.opened.append((endpoint, credential.username, credential.get_password(), kind))
        queue = self.failures.get(endpoint)
        if queue:
            raise queue.pop(0)
        return Session(
            endpoint=endpoint,
            kind=kind,
            principal=credential.username,
            version=self.versions.get(endpoint, "9.0.0"),
            token=SecretStr(f"token-{endpoint}"),
        )

    def close(self, session: Session) -> None:
        self.closed.append(session.endpoint)
        if session.endpoint in self.close_errors:
            raise self.close_errors[session.endpoint]


class FakeDirectory:
    """DirectoryService fake holding workload domains and stored credentials."""

    def __init__(
        self,
        groupings: list[Grouping] | None = None,
        credentials: list[StoredCredential] | None = None,
    ) -> None:
        self.groupings = groupings or []
        self.credentials = credentials or []
        self.groupings_error: Exception | None = None
        self.credentials_error: Exception | None = None
        self.credential_calls = 0
        self.handed_out: list[StoredCredential] = []

    def list_groupings(self, session: Session) -> list[Grouping]:
        if self.groupings_error:
            raise self.groupings_error
        return [g.model_copy() for g in self.groupings]

    def list_credentials(self, session: Session, scope: str) -> list[StoredCredential]:
        self.credential_calls += 1
        if self.credentials_error:
            raise self.credentials_error
        entries = [c.model_copy() for c in self.credentials]
        self.handed_out.extend(entries)
        return entries


class FakeOperationApi:
    """
    OperationApi fake.

    Attributes:
        polls: Per-endpoint status sequence returned by poll(); the last
            status repeats once the sequence is exhausted
        results: Per-endpoint result payload returned by fetch_result()
        invoke_errors: Per-endpoint exception raised by invoke()
        poll_errors: Per-endpoint exception raised by poll()
    """

    def __init__(self) -> None:
        self.polls: dict[str, list[str]] = {}
        self.results: dict[str, Any] = {}
        self.invoke_errors: dict[str, Exception] = {}
        self.poll_errors: dict[str, Exception] = {}
        self.invoked: list[str] = []
        self.fetched: list[str] = []
        self.threads: set[str] = set()
        self._lock = threading.Lock()
        self._positions: dict[str, int] = {}

    def invoke(self, session: Session) -> TaskHandle:
        with self._lock:
            self.invoked.append(session.endpoint)
            self.threads.add(threading.current_thread().name)
        if session.endpoint in self.invoke_errors:
            raise self.invoke_errors[session.endpoint]
        return TaskHandle(task_id=f"task-{session.endpoint}", endpoint=session.endpoint)

    def poll(self, session: Session, handle: TaskHandle) -> TaskSnapshot:
        if session.endpoint in self.poll_errors:
            raise self.poll_errors[session.endpoint]
        statuses = self.polls.get(session.endpoint, ["SUCCEEDED"])
        with self._lock:
            index = self._positions.get(session.endpoint, 0)
            self._positions[session.endpoint] = index + 1
        return TaskSnapshot(status=statuses[min(index, len(statuses) - 1)])

    def fetch_result(self, session: Session, handle: TaskHandle) -> TaskSnapshot:
        with self._lock:
            self.fetched.append(session.endpoint)
        statuses = self.polls.get(session.endpoint, ["SUCCEEDED"])
        return TaskSnapshot(status=statuses[-1], result=self.results.get(session.endpoint))


def make_credential(username: str = "administrator@vsphere.local", password: str = "VMware1!") -> Credential:
    """Build a fresh one-time credential."""
    return Credential(username=username, password=SecretStr(password))


def stored(username: str, secret: str, realm_id: str | None, is_system: bool = False) -> StoredCredential:
    """Build a credential-store entry."""
    return StoredCredential(username=username, secret=SecretStr(secret), realm_id=realm_id, is_system=is_system)


def transport_error(message: str = "Connection refused") -> TransportError:
    """Untagged transport error carrying only text."""
    return TransportError(message)


@pytest.fixture
def settings() -> RunSettings:
    return RunSettings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def operation_api() -> FakeOperationApi:
    return FakeOperationApi()


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory(
        groupings=[
            Grouping(name="mgmt", realm_id="sso-mgmt", is_primary_realm=True,
                     member_endpoint_fqdn="vc-mgmt.example.com", health_status="ACTIVE"),
            Grouping(name="wld01", realm_id="sso-mgmt", is_primary_realm=True,
                     member_endpoint_fqdn="vc-wld01.example.com", health_status="ACTIVE"),
            Grouping(name="wld02", realm_id="sso-iso", is_primary_realm=False,
                     member_endpoint_fqdn="vc-wld02.example.com", health_status="ACTIVE"),
        ],
        credentials=[
            stored("administrator@vsphere.local", "mgmt-secret", "sso-mgmt", is_system=True),
            stored("svc-backup@vsphere.local", "other-secret", "sso-mgmt"),
            stored("administrator@iso.local", "iso-secret", "sso-iso", is_system=True),
        ],
    )


@pytest.fixture
def make_service(settings, transport, operation_api, directory, clock):
    """Factory for a CapabilityService wired to the fakes."""

    def factory(run_settings: RunSettings | None = None, progress: list[str] | None = None) -> CapabilityService:
        return CapabilityService(
            run_settings or settings,
            transport,
            operation_api,
            directory,
            progress_callback=progress.append if progress is not None else None,
            sleep=clock.sleep,
            clock=clock,
        )

    return factory
