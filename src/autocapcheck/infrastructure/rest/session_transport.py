"""
Session transport for SDDC Manager and vCenter Server.

SDDC Manager: POST /v1/tokens issues a bearer access token; the release
is read from GET /v1/sddc-managers.

vCenter Server: POST /api/session (basic auth) issues a session id sent
as the vmware-api-session-id header; the release is read from
GET /api/appliance/system/version; DELETE /api/session ends the session.
"""

import logging
from typing import Any, Dict

from pydantic import SecretStr

from autocapcheck.domain.errors import ErrorKind, TransportError
from autocapcheck.domain.models import Credential, EndpointKind, Session
from autocapcheck.infrastructure.rest.client import RestClient

logger = logging.getLogger(__name__)

TARGET_SESSION_HEADER = "vmware-api-session-id"


def auth_headers(session: Session) -> Dict[str, str]:
    """Request headers that authenticate a call on an open session."""
    token = session.token.get_secret_value()  # pylint: disable=no-member
    if session.kind is EndpointKind.CONTROL_PLANE:
        return {"Authorization": f"Bearer {token}"}
    return {TARGET_SESSION_HEADER: token}


class RestSessionTransport:
    """SessionTransport backed by the REST APIs."""

    def __init__(self, client: RestClient):
        self.client = client

    def open(self, endpoint: str, credential: Credential, kind: EndpointKind) -> Session:
        """
        Authenticate and return a session carrying the reported release.

        Raises:
            TransportAuthError: Credential rejected
            TransportError: Endpoint unreachable or not an API endpoint
        """
        if kind is EndpointKind.CONTROL_PLANE:
            token = self._open_control_plane(endpoint, credential)
        else:
            token = self._open_target(endpoint, credential)

        session = Session(
            endpoint=endpoint,
            kind=kind,
            principal=credential.username,
            token=SecretStr(token),
        )
        try:
            session.version = self._read_version(session)
        except TransportError:
            self._abandon(session)
            raise
        return session

    def _abandon(self, session: Session) -> None:
        try:
            self.close(session)
        except TransportError as e:
            logger.debug("Could not close half-open session to %s: %s", session.endpoint, e)

    def close(self, session: Session) -> None:
        """Invalidate the session; SDDC Manager access tokens simply expire."""
        if session.kind is EndpointKind.TARGET:
            self.client.request("DELETE", session.endpoint, "/api/session", headers=auth_headers(session))
        else:
            logger.debug("Dropping SDDC Manager access token for %s", session.endpoint)
        session.token = SecretStr("")

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def _open_control_plane(self, endpoint: str, credential: Credential) -> str:
        body: Dict[str, Any] = {
            "username": credential.username,
            "password": credential.get_password(),
        }
        try:
            data = self.client.request("POST", endpoint, "/v1/tokens", json_body=body)
        finally:
            body.clear()

        token = data.get("accessToken") if isinstance(data, dict) else None
        if not token:
            raise TransportError(
                "POST /v1/tokens: response carries no accessToken", kind=ErrorKind.NOT_AN_API
            )
        return token

    def _open_target(self, endpoint: str, credential: Credential) -> str:
        auth = (credential.username, credential.get_password())
        data = self.client.request("POST", endpoint, "/api/session", auth=auth)
        del auth

        if isinstance(data, dict):
            data = data.get("value")
        if not isinstance(data, str) or not data:
            raise TransportError(
                "POST /api/session: response carries no session id", kind=ErrorKind.NOT_AN_API
            )
        return data

    # ------------------------------------------------------------------
    # Version
    # ------------------------------------------------------------------

    def _read_version(self, session: Session) -> str:
        headers = auth_headers(session)
        if session.kind is EndpointKind.CONTROL_PLANE:
            data = self.client.request("GET", session.endpoint, "/v1/sddc-managers", headers=headers)
            elements = data.get("elements", []) if isinstance(data, dict) else []
            version = elements[0].get("version", "") if elements else ""
        else:
            data = self.client.request(
                "GET", session.endpoint, "/api/appliance/system/version", headers=headers
            )
            if isinstance(data, dict) and "value" in data:
                data = data["value"]
            version = data.get("version", "") if isinstance(data, dict) else ""

        logger.debug("%s %s reports version %s", session.kind.label, session.endpoint, version or "unknown")
        return version
