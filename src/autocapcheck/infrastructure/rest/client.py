"""
Shared HTTPS client for the SDDC Manager and vCenter Server REST APIs.

Wraps a requests.Session and converts every requests failure and every
error status into a TransportError tagged with an ErrorKind, so the
application layer never sees a requests exception.
"""

import logging
from typing import Any, Dict, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from autocapcheck.domain.error_classifier import match_kind
from autocapcheck.domain.errors import ErrorKind, TransportAuthError, TransportError
from autocapcheck.domain.settings import RunSettings

logger = logging.getLogger(__name__)

# Status codes retried on idempotent calls before giving up
RETRY_STATUSES = (502, 503, 504)


class RestClient:
    """
    Thin JSON-over-HTTPS client.

    Usage:
        client = RestClient.from_settings(settings)
        data = client.request("GET", "vc01.example.com", "/api/appliance/system/version",
                              headers={"vmware-api-session-id": token})
    """

    def __init__(
        self,
        timeout: int = 30,
        verify: bool | str = True,
        http: Optional[requests.Session] = None,
    ):
        self.timeout = timeout
        self._http = http or requests.Session()
        self._http.verify = verify
        self._http.headers.update({"Accept": "application/json"})

        retry_strategy = Retry(
            total=2,
            backoff_factor=0.5,
            status_forcelist=list(RETRY_STATUSES),
            allowed_methods=frozenset({"GET", "DELETE"}),
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self._http.mount("https://", adapter)

        if verify is False:
            logger.warning("TLS certificate verification is disabled")

    @classmethod
    def from_settings(cls, settings: RunSettings) -> "RestClient":
        """Build a client honouring the timeout and TLS settings."""
        verify: bool | str = settings.verify_tls
        if settings.verify_tls and settings.ca_bundle:
            verify = settings.ca_bundle
        return cls(timeout=settings.request_timeout_seconds, verify=verify)

    def close(self) -> None:
        """Release pooled connections."""
        self._http.close()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def request(
        self,
        method: str,
        endpoint: str,
        path: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        auth: Optional[Tuple[str, str]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Send one request and return the decoded JSON body.

        Args:
            method: HTTP method
            endpoint: Endpoint FQDN (optionally host:port)
            path: Absolute API path
            headers: Extra request headers (session tokens)
            auth: Basic-auth pair
            json_body: JSON request body
            params: Query parameters

        Returns:
            Decoded JSON, or None for an empty body

        Raises:
            TransportAuthError: 401/403 responses
            TransportError: Any other failure
        """
        url = f"https://{endpoint}{path}"
        call = f"{method} {path}"
        logger.debug("%s %s", method, url)
        try:
            response = self._http.request(
                method,
                url,
                headers=headers,
                auth=auth,
                json=json_body,
                params=params,
                timeout=self.timeout,
            )
        except requests.exceptions.SSLError as e:
            raise TransportError(f"{call}: {e}", kind=ErrorKind.TLS) from e
        except (
            requests.exceptions.InvalidURL,
            requests.exceptions.MissingSchema,
            requests.exceptions.InvalidSchema,
        ) as e:
            raise TransportError(f"{call}: {e}", kind=ErrorKind.INVALID_ADDRESS) from e
        except requests.exceptions.Timeout as e:
            raise TransportError(f"{call}: request timed out after {self.timeout}s",
                                 kind=ErrorKind.UNREACHABLE) from e
        except requests.exceptions.RetryError as e:
            raise TransportError(f"{call}: {e}", kind=ErrorKind.UNREACHABLE) from e
        except requests.exceptions.ConnectionError as e:
            kind = match_kind(str(e)) or ErrorKind.UNREACHABLE
            raise TransportError(f"{call}: {e}", kind=kind) from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"{call}: {e}") from e

        self._raise_for_status(call, response)
        return self._decode(call, response)

    @staticmethod
    def _raise_for_status(call: str, response: requests.Response) -> None:
        status = response.status_code
        if status < 400:
            return

        body = (response.text or "").strip()[:500]
        message = f"{call}: HTTP {status} {response.reason or ''}".rstrip()
        if body:
            message = f"{message}: {body}"

        if status == 401:
            kind = ErrorKind.UNAUTHORIZED_ENTITY if "UNAUTHORIZED_ENTITY" in body else ErrorKind.BAD_CREDENTIALS
            raise TransportAuthError(message, kind=kind, status_code=status)
        if status == 403:
            raise TransportAuthError(message, kind=ErrorKind.NO_PERMISSION, status_code=status)
        if status == 404:
            raise TransportError(message, kind=ErrorKind.MISSING_CAPABILITY, status_code=status)
        raise TransportError(message, kind=match_kind(body) if body else None, status_code=status)

    @staticmethod
    def _decode(call: str, response: requests.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            content_type = response.headers.get("Content-Type", "unknown")
            raise TransportError(
                f"{call}: response is not valid JSON (Content-Type: {content_type})",
                kind=ErrorKind.NOT_AN_API,
                status_code=response.status_code,
            ) from e
