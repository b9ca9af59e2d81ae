"""
Domain models for a capability run.

Contains the targets, credentials, sessions, task handles and report
records that flow between the connection, task and status components.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


# ============================================================================
# Enumerations
# ============================================================================

class CapabilityStatus(Enum):
    """Outcome status of a single target in the final report."""
    NOT_UPDATED = "NotUpdated"
    UNSUPPORTED = "Unsupported"
    UNRESTRICTED = "Unrestricted"
    RESTRICTED = "Restricted"
    FAILED = "Failed"


class EndpointKind(Enum):
    """Which side of the fleet an endpoint belongs to."""
    CONTROL_PLANE = "control_plane"
    TARGET = "target"

    @property
    def label(self) -> str:
        """Operator-facing name of the endpoint kind."""
        return "SDDC Manager" if self is EndpointKind.CONTROL_PLANE else "vCenter Server"


class SessionState(Enum):
    """Per-endpoint connection state."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    VERSION_CHECKING = "version_checking"
    VERSION_OK = "version_ok"
    IN_USE = "in_use"


class ErrorClass(Enum):
    """Stage at which a target failed; drives the run exit code."""
    CONNECTION = "connection"
    CREDENTIAL = "credential"
    VERSION = "version"
    INVOCATION = "invocation"
    TASK = "task"


class RunMode(Enum):
    """How targets are discovered and authenticated."""
    ORCHESTRATED = "orchestrated"
    DIRECT = "direct"


# ============================================================================
# Models
# ============================================================================

class Credential(BaseModel):
    """
    Username and secret scoped to one realm.

    The secret is held as SecretStr so it is masked in repr, logs and dumps.
    A Credential is handed to the connection layer for one open call and
    cleared immediately afterwards.
    """

    model_config = ConfigDict(validate_assignment=True)

    username: str = Field(..., description="Login principal")
    password: SecretStr = Field(..., description="Login secret")
    realm_id: Optional[str] = Field(None, description="Realm the credential is scoped to")

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        """Validate username is not empty."""
        if not v or not v.strip():
            raise ValueError("Username cannot be empty")
        return v.strip()

    def get_password(self) -> str:
        """Get the plain text password."""
        return self.password.get_secret_value()  # pylint: disable=no-member

    def clear(self) -> None:
        """Blank the secret in place."""
        self.password = SecretStr("")

    @property
    def is_cleared(self) -> bool:
        """True once clear() has run."""
        return not self.get_password()


class Session(BaseModel):
    """
    Authenticated connection to one endpoint.
    """

    model_config = ConfigDict(use_enum_values=False)

    endpoint: str = Field(..., description="Endpoint FQDN")
    kind: EndpointKind = Field(..., description="Control plane or target")
    principal: str = Field(..., description="Authenticated user")
    version: str = Field("", description="Release reported by the endpoint")
    token: SecretStr = Field(default=SecretStr(""), description="Opaque session token")
    state: SessionState = Field(SessionState.CONNECTED, description="Connection state")

    @property
    def is_open(self) -> bool:
        """True unless the session has been torn down."""
        return self.state is not SessionState.DISCONNECTED

    @property
    def is_eligible(self) -> bool:
        """Only version-checked sessions may run the remote operation."""
        return self.state in (SessionState.VERSION_OK, SessionState.IN_USE)


class TaskHandle(BaseModel):
    """Opaque reference to a remote task, valid only for its session."""

    task_id: str = Field(..., description="Remote task identifier")
    endpoint: str = Field(..., description="Endpoint the task runs on")


class TaskSnapshot(BaseModel):
    """One observation of a remote task."""

    status: str = Field(..., description="Remote status spelling")
    result: Optional[Any] = Field(None, description="Result payload, when fetched")
    error: Optional[Any] = Field(None, description="Error payload, when reported")


class Grouping(BaseModel):
    """A workload domain as listed by the control plane."""

    model_config = ConfigDict(extra="ignore")

    name: str
    realm_id: Optional[str] = None
    is_primary_realm: bool = False
    member_endpoint_fqdn: Optional[str] = None
    health_status: Optional[str] = None


class StoredCredential(BaseModel):
    """One credential entry read from the control plane's store."""

    model_config = ConfigDict(extra="ignore")

    username: str
    secret: SecretStr
    realm_id: Optional[str] = None
    grouping_id: Optional[str] = None
    is_system: bool = False


class Target(BaseModel):
    """
    A managed server to operate on.

    Attributes:
        name: Endpoint FQDN, unique within a run
        realm_id: Realm used to pick the credential (None in direct mode)
        is_primary_realm: Whether the realm is the control plane's own
        grouping: Owning workload domain, when known
        grouping_health: Health reported for the owning workload domain
        version: Release reported once connected
        session: Connection handle, present only while connected
    """

    name: str
    realm_id: Optional[str] = None
    is_primary_realm: bool = False
    grouping: Optional[str] = None
    grouping_health: Optional[str] = None
    version: Optional[str] = None
    session: Optional[Session] = None

    @classmethod
    def from_grouping(cls, grouping: Grouping) -> "Target":
        """Build a target from a discovered workload domain."""
        return cls(
            name=grouping.member_endpoint_fqdn or grouping.name,
            realm_id=grouping.realm_id,
            is_primary_realm=grouping.is_primary_realm,
            grouping=grouping.name,
            grouping_health=grouping.health_status,
        )


class CapabilityRecord(BaseModel):
    """
    Per-target report row.

    error_class is kept for exit code selection and never exported.
    """

    target: str = Field(..., description="Target identity")
    status: CapabilityStatus = Field(CapabilityStatus.NOT_UPDATED, description="Outcome")
    message: str = Field("", description="Human-readable outcome")
    error_class: Optional[ErrorClass] = Field(None, exclude=True)

    def export(self) -> dict[str, str]:
        """Key-value form used by the structured report."""
        return {
            "target": self.target,
            "status": self.status.value,
            "message": self.message,
        }
