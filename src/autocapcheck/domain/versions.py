"""
Version string parsing for the compatibility gate.

Only the (major, minor) pair takes part in the comparison; build numbers
and suffixes such as "8.0.3.00100" or "5.2.0.0-24108943" are ignored.
"""

from __future__ import annotations

import re

_VERSION_RE = re.compile(r"^\s*v?(\d+)(?:\.(\d+))?")


def parse_major_minor(version: str) -> tuple[int, int]:
    """
    Parse a release string into a comparable (major, minor) tuple.

    Args:
        version: Version as reported by an endpoint (e.g. "9.0.1.0")

    Returns:
        (major, minor); minor defaults to 0 when absent

    Raises:
        ValueError: If the string does not start with a number
    """
    match = _VERSION_RE.match(version or "")
    if not match:
        raise ValueError(f"Unrecognized version string: {version!r}")
    return int(match.group(1)), int(match.group(2) or 0)


def meets_minimum(version: str, minimum: str) -> bool:
    """Return True when version is at or above minimum on (major, minor)."""
    return parse_major_minor(version) >= parse_major_minor(minimum)


def short_version(version: str) -> str:
    """Render a version as "major.minor" for operator messages."""
    try:
        major, minor = parse_major_minor(version)
    except ValueError:
        return version
    return f"{major}.{minor}"
