"""
Local precondition checks.

Verifies the client side can run at all before any endpoint is
contacted: interpreter version, required client libraries, the CA bundle
and a writable output directory.
"""

import logging
import os
import sys
from dataclasses import dataclass
from importlib import metadata
from pathlib import Path

from autocapcheck.domain.errors import PreconditionError
from autocapcheck.domain.settings import RunSettings

logger = logging.getLogger(__name__)

MIN_PYTHON = (3, 10)
REQUIRED_DISTRIBUTIONS = ("requests", "pydantic", "openpyxl")


@dataclass
class CheckResult:
    """Outcome of a single precondition."""
    name: str
    ok: bool
    detail: str


def _check_python() -> CheckResult:
    current = sys.version_info[:2]
    ok = current >= MIN_PYTHON
    detail = f"{current[0]}.{current[1]}"
    if not ok:
        detail += f" (requires {MIN_PYTHON[0]}.{MIN_PYTHON[1]}+)"
    return CheckResult("Python", ok, detail)


def _check_distribution(name: str) -> CheckResult:
    try:
        return CheckResult(name, True, metadata.version(name))
    except metadata.PackageNotFoundError:
        return CheckResult(name, False, "not installed")


def _check_ca_bundle(settings: RunSettings) -> CheckResult | None:
    if not settings.ca_bundle:
        return None
    path = Path(settings.ca_bundle)
    if path.is_file():
        return CheckResult("CA bundle", True, str(path))
    return CheckResult("CA bundle", False, f"{path} does not exist")


def _check_output_dir(settings: RunSettings) -> CheckResult:
    path = Path(settings.output_dir)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        return CheckResult("Output directory", False, f"{path}: {e.strerror or e}")
    if not os.access(path, os.W_OK):
        return CheckResult("Output directory", False, f"{path} is not writable")
    return CheckResult("Output directory", True, str(path.resolve()))


def run_checks(settings: RunSettings) -> list[CheckResult]:
    """Run every precondition and return the individual results."""
    results = [_check_python()]
    results.extend(_check_distribution(name) for name in REQUIRED_DISTRIBUTIONS)
    ca_result = _check_ca_bundle(settings)
    if ca_result is not None:
        results.append(ca_result)
    results.append(_check_output_dir(settings))

    for result in results:
        if result.ok:
            logger.debug("Precondition %s: %s", result.name, result.detail)
        else:
            logger.error("Precondition %s failed: %s", result.name, result.detail)
    return results


def require_prerequisites(settings: RunSettings) -> list[CheckResult]:
    """
    Run every precondition and fail when any is unmet.

    Raises:
        PreconditionError: Listing every failed check
    """
    results = run_checks(settings)
    failed = [r for r in results if not r.ok]
    if failed:
        details = "; ".join(f"{r.name}: {r.detail}" for r in failed)
        raise PreconditionError(f"Preconditions not met - {details}")
    return results
