"""
AutoCapCheck CLI entry point.

Commands:
    run     Orchestrated mode: SDDC Manager discovers every vCenter Server
            and supplies their SSO credentials
    direct  Direct mode: connect to the given vCenter Server endpoints
    check   Local precondition check only

Exit codes follow autocapcheck.domain.errors.ExitCode.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, NoReturn, Optional

import typer
from pydantic import SecretStr

from autocapcheck import __version__
from autocapcheck.application.capability_service import CapabilityService, RunResult
from autocapcheck.domain.errors import CapCheckError, ExitCode, ParameterError, UserCancelled
from autocapcheck.domain.models import Credential
from autocapcheck.domain.settings import RunSettings
from autocapcheck.infrastructure.config import ConfigRepository
from autocapcheck.infrastructure.logging_config import setup_logging
from autocapcheck.infrastructure.prereq_check import require_prerequisites, run_checks
from autocapcheck.infrastructure.report_export import ReportExporter
from autocapcheck.infrastructure.rest import (
    RestClient,
    RestSessionTransport,
    SddcDirectory,
    VcenterOperationApi,
)
from autocapcheck.interface.console import ConsoleRenderer

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path("config")
PASSWORD_ENV = "AUTOCAPCHECK_PASSWORD"

app = typer.Typer(
    name="autocapcheck",
    help="Fleet-wide heterogeneous-hardware capability check for vCenter Server.",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


# ============================================================================
# Shared options
# ============================================================================

ConfigDirOption = typer.Option(DEFAULT_CONFIG_DIR, "--config-dir", help="Directory holding capcheck_settings.json.")
OutputDirOption = typer.Option(None, "--output-dir", help="Directory for exported reports.")
MinVersionOption = typer.Option(None, "--min-vcenter-version", help="Lowest vCenter Server release accepted (major.minor).")
PollOption = typer.Option(None, "--poll-interval", help="Seconds between task status polls.")
AttemptsOption = typer.Option(None, "--max-attempts", help="Connection attempts per endpoint.")
InsecureOption = typer.Option(False, "--insecure", help="Do not verify endpoint TLS certificates.")
CaBundleOption = typer.Option(None, "--ca-bundle", help="CA bundle used to verify endpoint certificates.")
ParallelOption = typer.Option(None, "--parallel/--sequential", help="Run the operation on several targets at once.")
MaxParallelOption = typer.Option(None, "--max-parallel", help="Upper bound on concurrent operations in parallel mode.")
XlsxOption = typer.Option(False, "--xlsx", help="Also export the report as an Excel workbook.")
PlainOption = typer.Option(False, "--plain", help="Print the report as a plain-text table.")
NonInteractiveOption = typer.Option(False, "--non-interactive", help="Never prompt; fail instead.")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Diagnostic logging (DEBUG).")
LogFileOption = typer.Option(None, "--log-file", help="Also write a DEBUG log to this file.")
UserOption = typer.Option(None, "--user", "-u", help="Login user name.")
PasswordOption = typer.Option(None, "--password", envvar=PASSWORD_ENV, help=f"Login password (or ${PASSWORD_ENV}).")


def _init(verbose: bool, log_file: Optional[str]) -> None:
    setup_logging(logging.DEBUG if verbose else logging.INFO, log_file)
    logger.info("AutoCapCheck %s starting", __version__)


def load_settings(config_dir: Path, overrides: dict) -> RunSettings:
    """Load settings from the config directory, CLI overrides winning."""
    return ConfigRepository(config_dir).load_settings(overrides)


def build_service(settings: RunSettings, progress_callback: Callable[[str], None]) -> CapabilityService:
    """Wire the REST adapters into a CapabilityService."""
    client = RestClient.from_settings(settings)
    return CapabilityService(
        settings,
        transport=RestSessionTransport(client),
        operation_api=VcenterOperationApi(client, settings.operation),
        directory=SddcDirectory(client),
        progress_callback=progress_callback,
    )


def _overrides(
    output_dir: Optional[Path],
    min_version: Optional[str],
    poll_interval: Optional[float],
    max_attempts: Optional[int],
    insecure: bool,
    ca_bundle: Optional[Path],
    parallel: Optional[bool],
    max_parallel: Optional[int],
) -> dict:
    return {
        "output_dir": str(output_dir) if output_dir else None,
        "minimum_target_version": min_version,
        "poll_interval_seconds": poll_interval,
        "max_connect_attempts": max_attempts,
        "verify_tls": False if insecure else None,
        "ca_bundle": str(ca_bundle) if ca_bundle else None,
        "parallel": parallel,
        "max_parallel_targets": max_parallel,
    }


# ============================================================================
# Prompts
# ============================================================================

def _ask(value: Optional[str], prompt: str, interactive: bool, hide_input: bool = False) -> str:
    if value:
        return value
    if not interactive:
        raise ParameterError(f"{prompt} is required in non-interactive mode")
    return typer.prompt(prompt, hide_input=hide_input)


def _retry_prompt(renderer: ConsoleRenderer, user: str, ask_endpoint: bool = True):
    """Build the retry callback used after a failed login."""

    def prompt(endpoint: str, error: CapCheckError, attempt: int):
        renderer.error(str(error))
        if not typer.confirm(f"Re-enter connection details for {endpoint}? (attempt {attempt} failed)", default=True):
            return None
        new_endpoint = typer.prompt("FQDN", default=endpoint) if ask_endpoint else endpoint
        new_user = typer.prompt("User name", default=user)
        new_password = typer.prompt("Password", hide_input=True)
        return new_endpoint, Credential(username=new_user, password=SecretStr(new_password))

    return prompt


# ============================================================================
# Run helpers
# ============================================================================

def _finish(renderer: ConsoleRenderer, settings: RunSettings, result: RunResult, xlsx: bool) -> NoReturn:
    renderer.show_report(result)
    exporter = ReportExporter(Path(settings.output_dir))
    try:
        paths = [exporter.export_json(result.aggregator, result.mode)]
        if xlsx:
            paths.append(exporter.export_xlsx(result.aggregator))
    except OSError as e:
        logger.debug("Report export failed", exc_info=True)
        renderer.error(f"Could not save the report to {settings.output_dir}: {e}")
        # A clean run that lost its report is a local precondition failure
        exit_code = ExitCode.PRECONDITION_ERROR if result.exit_code is ExitCode.SUCCESS else result.exit_code
        raise typer.Exit(int(exit_code))
    renderer.show_exports(paths)
    raise typer.Exit(int(result.exit_code))


def _fail(renderer: ConsoleRenderer, error: CapCheckError) -> NoReturn:
    logger.debug("Run ended with %s", type(error).__name__, exc_info=True)
    renderer.error(str(error))
    raise typer.Exit(int(error.exit_code))


# ============================================================================
# Commands
# ============================================================================

@app.command("run")
def run_command(  # pylint: disable=too-many-arguments,too-many-locals
    sddc_manager: Optional[str] = typer.Option(None, "--sddc-manager", "-s", help="SDDC Manager FQDN."),
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    config_dir: Path = ConfigDirOption,
    output_dir: Optional[Path] = OutputDirOption,
    min_version: Optional[str] = MinVersionOption,
    poll_interval: Optional[float] = PollOption,
    max_attempts: Optional[int] = AttemptsOption,
    insecure: bool = InsecureOption,
    ca_bundle: Optional[Path] = CaBundleOption,
    parallel: Optional[bool] = ParallelOption,
    max_parallel: Optional[int] = MaxParallelOption,
    xlsx: bool = XlsxOption,
    plain: bool = PlainOption,
    non_interactive: bool = NonInteractiveOption,
    verbose: bool = VerboseOption,
    log_file: Optional[str] = LogFileOption,
):
    """
    Check every vCenter Server managed by an SDDC Manager.

    Workload domains are discovered from SDDC Manager and each vCenter
    Server is logged into with the SSO credential SDDC Manager stores for
    its SSO domain.
    """
    _init(verbose, log_file)
    renderer = ConsoleRenderer(plain=plain)
    interactive = not non_interactive
    try:
        settings = load_settings(config_dir, _overrides(
            output_dir, min_version, poll_interval, max_attempts, insecure, ca_bundle, parallel, max_parallel,
        ))
        require_prerequisites(settings)

        endpoint = _ask(sddc_manager, "SDDC Manager FQDN", interactive)
        username = _ask(user, "SDDC Manager user name", interactive)
        secret = _ask(password, "SDDC Manager password", interactive, hide_input=True)

        renderer.banner("AutoCapCheck", f"Orchestrated run via SDDC Manager {endpoint}")
        service = build_service(settings, renderer.progress)
        result = service.run_orchestrated(
            endpoint,
            Credential(username=username, password=SecretStr(secret)),
            prompt_retry=_retry_prompt(renderer, username) if interactive else None,
        )
    except CapCheckError as e:
        _fail(renderer, e)
    except (KeyboardInterrupt, typer.Abort):
        _fail(renderer, UserCancelled("Interrupted by operator"))
    _finish(renderer, settings, result, xlsx)


@app.command("direct")
def direct_command(  # pylint: disable=too-many-arguments,too-many-locals
    vcenter: Optional[list[str]] = typer.Option(None, "--vcenter", "-c", help="vCenter Server FQDN (repeatable)."),
    user: Optional[str] = UserOption,
    password: Optional[str] = PasswordOption,
    config_dir: Path = ConfigDirOption,
    output_dir: Optional[Path] = OutputDirOption,
    min_version: Optional[str] = MinVersionOption,
    poll_interval: Optional[float] = PollOption,
    max_attempts: Optional[int] = AttemptsOption,
    insecure: bool = InsecureOption,
    ca_bundle: Optional[Path] = CaBundleOption,
    parallel: Optional[bool] = ParallelOption,
    max_parallel: Optional[int] = MaxParallelOption,
    xlsx: bool = XlsxOption,
    plain: bool = PlainOption,
    non_interactive: bool = NonInteractiveOption,
    verbose: bool = VerboseOption,
    log_file: Optional[str] = LogFileOption,
):
    """
    Check the given vCenter Server endpoints directly.

    One login is used for every endpoint. Failed logins can be retried
    interactively with different details.
    """
    _init(verbose, log_file)
    renderer = ConsoleRenderer(plain=plain)
    interactive = not non_interactive
    try:
        settings = load_settings(config_dir, _overrides(
            output_dir, min_version, poll_interval, max_attempts, insecure, ca_bundle, parallel, max_parallel,
        ))
        require_prerequisites(settings)

        endpoints = [e.strip() for e in (vcenter or []) if e.strip()]
        if not endpoints:
            raw = _ask(None, "vCenter Server FQDNs (comma separated)", interactive)
            endpoints = [e.strip() for e in raw.split(",") if e.strip()]
        username = _ask(user, "vCenter Server user name", interactive)
        secret = SecretStr(_ask(password, "vCenter Server password", interactive, hide_input=True))

        def credential_for(_endpoint: str) -> Credential:
            return Credential(username=username, password=secret)

        renderer.banner("AutoCapCheck", f"Direct run against {len(endpoints)} vCenter Server endpoint(s)")
        service = build_service(settings, renderer.progress)
        result = service.run_direct(
            endpoints,
            credential_for,
            prompt_retry=_retry_prompt(renderer, username, ask_endpoint=False) if interactive else None,
        )
    except CapCheckError as e:
        _fail(renderer, e)
    except (KeyboardInterrupt, typer.Abort):
        _fail(renderer, UserCancelled("Interrupted by operator"))
    _finish(renderer, settings, result, xlsx)


@app.command("check")
def check_command(
    config_dir: Path = ConfigDirOption,
    output_dir: Optional[Path] = OutputDirOption,
    ca_bundle: Optional[Path] = CaBundleOption,
    write_defaults: bool = typer.Option(False, "--write-defaults", help="Write a settings file holding every default."),
    verbose: bool = VerboseOption,
    log_file: Optional[str] = LogFileOption,
):
    """Check local preconditions and settings without contacting any endpoint."""
    _init(verbose, log_file)
    renderer = ConsoleRenderer()
    try:
        repository = ConfigRepository(config_dir)
        if write_defaults:
            renderer.console.print(f"Settings written: {repository.write_default_settings()}")
        settings = repository.load_settings({
            "output_dir": str(output_dir) if output_dir else None,
            "ca_bundle": str(ca_bundle) if ca_bundle else None,
        })
    except CapCheckError as e:
        _fail(renderer, e)

    results = run_checks(settings)
    renderer.show_checks(results)
    if not all(r.ok for r in results):
        raise typer.Exit(int(ExitCode.PRECONDITION_ERROR))
    raise typer.Exit(int(ExitCode.SUCCESS))


def main() -> None:
    """Console script entry point."""
    app()
