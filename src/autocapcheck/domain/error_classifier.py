"""
Error classification for remote-call failures.

Maps raw error text (or a tagged TransportError) to consistent,
operator-facing guidance.

Architecture Note:
    - Pure domain logic - no I/O
    - Patterns are ordered; the first match wins, so the most diagnostic
      signatures sit above the generic ones
    - Text matching is the fallback path; transports that can tag their
      errors with an ErrorKind skip it entirely
"""

from __future__ import annotations

import re
from typing import Optional

from autocapcheck.domain.errors import ErrorKind, TransportError
from autocapcheck.domain.models import EndpointKind


# =============================================================================
# Pattern table
# =============================================================================

_PATTERNS: tuple[tuple[ErrorKind, re.Pattern[str]], ...] = (
    (ErrorKind.UNAUTHORIZED_ENTITY, re.compile(
        r"IDENTITY_UNAUTHORIZED_ENTITY|not authorized to|UnauthorizedEntity", re.I)),
    (ErrorKind.BAD_CREDENTIALS, re.compile(
        r"incorrect user ?name or password|invalid (user ?name or password|credentials)"
        r"|\b401\b|Unauthorized|authentication failed", re.I)),
    (ErrorKind.NO_PERMISSION, re.compile(
        r"\b403\b|Forbidden|NoPermission|permission denied|insufficient privilege", re.I)),
    (ErrorKind.NAME_RESOLUTION, re.compile(
        r"Name or service not known|nodename nor servname|getaddrinfo failed"
        r"|No such host is known|Temporary failure in name resolution|Failed to resolve", re.I)),
    (ErrorKind.INVALID_ADDRESS, re.compile(
        r"Invalid URL|No host supplied|Failed to parse|Invalid URI|Invalid hostname", re.I)),
    (ErrorKind.TLS, re.compile(
        r"CERTIFICATE_VERIFY_FAILED|SSLError|SSL: |certificate", re.I)),
    (ErrorKind.NOT_AN_API, re.compile(
        r"Expecting value|not valid JSON|Unexpected content type|JSONDecodeError", re.I)),
    (ErrorKind.MISSING_CAPABILITY, re.compile(
        r"\b404\b|Not Found|operation\.not\.found|Unknown method|unsupported operation", re.I)),
    (ErrorKind.UNREACHABLE, re.compile(
        r"Connection refused|timed out|Network is unreachable|No route to host", re.I)),
)

# Noise removed from unmatched text before it is shown to the operator
_NOISE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"\d{1,4}[/-]\d{1,2}[/-]\d{1,4}[ T]\d{1,2}:\d{2}(:\d{2})?(\.\d+)?"
        r"(\s?(AM|PM))?(Z|[+-]\d{2}:?\d{2})?", re.I),
    re.compile(r"\b(GET|POST|PUT|PATCH|DELETE)\s+/\S*:?"),
    re.compile(r"\b(open_session|close_session|invoke|poll|fetch_result|list_groupings"
               r"|list_credentials)\s*:"),
    re.compile(r"HTTPS?ConnectionPool\(host='[^']*', port=\d+\):?"),
    re.compile(r"Max retries exceeded with url:\s*\S+"),
)


def _generic(kind: EndpointKind, target: str) -> str:
    return (
        f"Unable to connect to {kind.label} '{target}'. "
        "Check your connection details and try again."
    )


def message_for(
    error_kind: ErrorKind,
    connection_kind: EndpointKind,
    target: str,
    username: Optional[str] = None,
) -> str:
    """
    Build the operator message for a classified cause.

    Args:
        error_kind: Classified cause
        connection_kind: Control plane or target
        target: Endpoint identity
        username: Login user, named in authorization messages when given

    Returns:
        Operator-facing message
    """
    label = connection_kind.label
    if error_kind is ErrorKind.UNAUTHORIZED_ENTITY:
        if username:
            return (
                f"User '{username}' is not authorized to log in to {label} '{target}'. "
                "Check the account's role assignments."
            )
        return f"The account is not authorized to log in to {label} '{target}'."
    if error_kind is ErrorKind.BAD_CREDENTIALS:
        return f"Incorrect user name or password for {label} '{target}'."
    if error_kind is ErrorKind.NO_PERMISSION:
        who = f"User '{username}'" if username else "The account"
        return f"{who} lacks the privileges required on {label} '{target}'."
    if error_kind is ErrorKind.NAME_RESOLUTION:
        return f"Unable to resolve {label} '{target}'. Check the FQDN and DNS settings."
    if error_kind is ErrorKind.INVALID_ADDRESS:
        return f"'{target}' is not a valid {label} address."
    if error_kind is ErrorKind.TLS:
        return (
            f"TLS certificate validation failed for {label} '{target}'. "
            "Trust the endpoint certificate or disable verification."
        )
    if error_kind is ErrorKind.NOT_AN_API:
        return f"'{target}' did not return an API response. Confirm it is a {label}."
    if error_kind is ErrorKind.MISSING_CAPABILITY:
        return (
            f"{label} '{target}' does not provide the required API. "
            "Confirm the release supports this operation."
        )
    return _generic(connection_kind, target)


def match_kind(raw_error_text: str) -> ErrorKind | None:
    """Return the first matching cause for raw text, or None."""
    for kind, pattern in _PATTERNS:
        if pattern.search(raw_error_text):
            return kind
    return None


def strip_noise(raw_error_text: str) -> str:
    """Remove timestamps, API call names and pool chatter from error text."""
    text = raw_error_text
    for pattern in _NOISE_PATTERNS:
        text = pattern.sub(" ", text)
    text = re.sub(r"\s+", " ", text)
    return text.strip(" :-,.()")


def classify(
    raw_error_text: str | None,
    connection_kind: EndpointKind,
    target: str,
    username: Optional[str] = None,
) -> str:
    """
    Map raw error text from a remote call to a user-facing message.

    Deterministic and side-effect free; never raises.

    Args:
        raw_error_text: Error text returned by the remote call
        connection_kind: Control plane or target
        target: Endpoint identity
        username: Login user, if any

    Returns:
        Operator-facing message
    """
    text = str(raw_error_text or "")
    kind = match_kind(text)
    if kind is not None:
        return message_for(kind, connection_kind, target, username)

    cleaned = strip_noise(text)
    if len(cleaned) < 3:
        return _generic(connection_kind, target)
    return f"{connection_kind.label} '{target}': {cleaned}"


def classify_error(
    error: BaseException,
    connection_kind: EndpointKind,
    target: str,
    username: Optional[str] = None,
) -> str:
    """Classify an exception, preferring its ErrorKind tag over its text."""
    if isinstance(error, TransportError) and error.kind is not None:
        return message_for(error.kind, connection_kind, target, username)
    return classify(str(error), connection_kind, target, username)
