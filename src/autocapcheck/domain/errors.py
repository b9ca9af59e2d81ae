"""
Error taxonomy and process exit codes.

Every run-level failure maps to exactly one ExitCode so calling automation
can branch on the failure class. Per-target failures use the same classes
but are caught and recorded in the report instead of ending the run.
"""

from __future__ import annotations

from enum import Enum, IntEnum


class ExitCode(IntEnum):
    """Process exit codes, one per failure class."""

    SUCCESS = 0
    PARAMETER_ERROR = 1
    CONNECTION_ERROR = 2
    AUTHENTICATION_ERROR = 3
    RESOURCE_NOT_FOUND = 4
    OPERATION_FAILED = 5
    TASK_FAILED = 6
    CONFIGURATION_ERROR = 7
    PRECONDITION_ERROR = 8
    USER_CANCELLED = 9
    VERSION_ERROR = 10


class ErrorKind(Enum):
    """Tag carried by transport errors so classification can skip text matching."""

    UNAUTHORIZED_ENTITY = "unauthorized_entity"
    BAD_CREDENTIALS = "bad_credentials"
    NO_PERMISSION = "no_permission"
    NAME_RESOLUTION = "name_resolution"
    INVALID_ADDRESS = "invalid_address"
    TLS = "tls"
    NOT_AN_API = "not_an_api"
    MISSING_CAPABILITY = "missing_capability"
    UNREACHABLE = "unreachable"


class CapCheckError(Exception):
    """Base error for all AutoCapCheck failures."""

    exit_code: ExitCode = ExitCode.OPERATION_FAILED


class ParameterError(CapCheckError):
    """Bad invocation arguments or an unreadable settings file."""

    exit_code = ExitCode.PARAMETER_ERROR


class PreconditionError(CapCheckError):
    """Required client software or local configuration is missing."""

    exit_code = ExitCode.PRECONDITION_ERROR


class ConfigurationError(CapCheckError):
    """The environment cannot support a required operation."""

    exit_code = ExitCode.CONFIGURATION_ERROR


class NetworkError(CapCheckError):
    """Endpoint unreachable or discovery failed."""

    exit_code = ExitCode.CONNECTION_ERROR


class AuthenticationError(CapCheckError):
    """Credential rejected by an endpoint."""

    exit_code = ExitCode.AUTHENTICATION_ERROR


class InsufficientPermission(AuthenticationError):
    """The calling principal may not read what it asked for."""


class ResourceNotFound(CapCheckError):
    """A required remote resource does not exist."""

    exit_code = ExitCode.RESOURCE_NOT_FOUND


class CredentialNotFound(ResourceNotFound):
    """The credential store holds no entry for a realm."""


class VersionError(CapCheckError):
    """Endpoint reports a release below the supported minimum."""

    exit_code = ExitCode.VERSION_ERROR

    def __init__(self, endpoint: str, version: str, minimum: str) -> None:
        super().__init__(
            f"{endpoint} reports version {version}; minimum supported is {minimum}"
        )
        self.endpoint = endpoint
        self.version = version
        self.minimum = minimum


class OperationFailed(CapCheckError):
    """The remote operation could not be started."""

    exit_code = ExitCode.OPERATION_FAILED


class TaskFailed(CapCheckError):
    """The remote operation started but did not complete successfully."""

    exit_code = ExitCode.TASK_FAILED


class UserCancelled(CapCheckError):
    """The operator declined a retry prompt."""

    exit_code = ExitCode.USER_CANCELLED


class TransportError(CapCheckError):
    """
    Error raised by a REST transport.

    Attributes:
        kind: Classified cause when the transport could determine it
        status_code: HTTP status code when a response was received
    """

    exit_code = ExitCode.CONNECTION_ERROR

    def __init__(
        self,
        message: str,
        kind: ErrorKind | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class TransportAuthError(TransportError, AuthenticationError):
    """Transport-level authentication or authorization failure."""

    exit_code = ExitCode.AUTHENTICATION_ERROR
