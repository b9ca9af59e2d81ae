"""
Capability run service.

High-level service that coordinates one run end to end:
authenticate, discover, resolve credentials, connect and version-check
each target, run the remote operation, record outcomes, tear down.
"""

from __future__ import annotations

import concurrent.futures
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from autocapcheck.application.connection_manager import ConnectionManager, RetryPrompt
from autocapcheck.application.credential_resolver import CredentialResolver
from autocapcheck.application.run_context import RunContext
from autocapcheck.application.status_aggregator import StatusAggregator
from autocapcheck.application.task_orchestrator import TaskOrchestrator
from autocapcheck.domain.errors import (
    AuthenticationError,
    ConfigurationError,
    CredentialNotFound,
    ErrorKind,
    ExitCode,
    InsufficientPermission,
    NetworkError,
    OperationFailed,
    ResourceNotFound,
    TransportAuthError,
    TransportError,
    UserCancelled,
    VersionError,
)
from autocapcheck.domain.models import (
    CapabilityRecord,
    CapabilityStatus,
    Credential,
    EndpointKind,
    ErrorClass,
    RunMode,
    Target,
)
from autocapcheck.domain.protocols import DirectoryService, OperationApi, SessionTransport
from autocapcheck.domain.settings import RunSettings

logger = logging.getLogger(__name__)

NOT_PROCESSED_MESSAGE = "Not processed."

# Supplies the credential for a direct-mode endpoint
CredentialProvider = Callable[[str], Credential]


@dataclass
class RunResult:
    """Outcome of a completed run."""
    exit_code: ExitCode
    mode: RunMode
    aggregator: StatusAggregator
    teardown_failures: list[str]

    @property
    def records(self) -> list[CapabilityRecord]:
        """Report records in discovery order."""
        return self.aggregator.records


class CapabilityService:
    """
    Coordinates a fleet-wide capability run.

    Usage:
        service = CapabilityService(settings, transport, operation_api, directory)
        result = service.run_orchestrated("sddc-manager.example.com", credential)
        print(result.aggregator.render_table())
        sys.exit(result.exit_code)
    """

    def __init__(
        self,
        settings: RunSettings,
        transport: SessionTransport,
        operation_api: OperationApi,
        directory: DirectoryService | None = None,
        progress_callback: Callable[[str], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.settings = settings
        self.transport = transport
        self.operation_api = operation_api
        self.directory = directory
        self.progress_callback = progress_callback
        self._sleep = sleep
        self._clock = clock
        logger.info(
            "CapabilityService initialized: min control plane=%s, min target=%s, parallel=%s",
            settings.minimum_control_plane_version,
            settings.minimum_target_version,
            settings.parallel,
        )

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run_orchestrated(
        self,
        endpoint: str,
        credential: Credential,
        prompt_retry: RetryPrompt | None = None,
    ) -> RunResult:
        """
        Run against every vCenter Server managed by an SDDC Manager.

        Args:
            endpoint: SDDC Manager FQDN
            credential: SDDC Manager login (cleared after use)
            prompt_retry: Re-prompt callback for control-plane login failures

        Returns:
            RunResult with the report and exit code

        Raises:
            CapCheckError: For run-level failures (control-plane login,
                discovery, credential-store permission, configuration)
        """
        if self.directory is None:
            raise ConfigurationError("Orchestrated mode requires a directory service")

        context = self._new_context(RunMode.ORCHESTRATED)
        with context:
            context.control_session = context.connections.connect_with_retry(
                endpoint,
                credential,
                EndpointKind.CONTROL_PLANE,
                minimum_version=self.settings.minimum_control_plane_version,
                prompt_retry=prompt_retry,
            )
            self.discover_targets(context)
            context.connections.check_session_capacity(2)

            resolver = CredentialResolver(self.directory, context.control_session)
            try:
                for target in context.targets:
                    self._connect_from_store(context, resolver, target)
            finally:
                resolver.clear()

            self._run_tasks(context)

        return self._result(context)

    def run_direct(
        self,
        endpoints: list[str],
        credential_provider: CredentialProvider,
        prompt_retry: RetryPrompt | None = None,
    ) -> RunResult:
        """
        Run against vCenter Server endpoints given directly by the operator.

        Args:
            endpoints: vCenter Server FQDNs
            credential_provider: Returns the login for an endpoint
            prompt_retry: Re-prompt callback for login failures

        Raises:
            ResourceNotFound: No endpoints given
            UserCancelled: The operator cancelled and no target connected
        """
        context = self._new_context(RunMode.DIRECT)
        with context:
            for endpoint in endpoints:
                context.add_target(Target(name=endpoint.strip()))
            if not context.targets:
                raise ResourceNotFound("No vCenter Server endpoints were given.")
            for target in context.targets:
                self._record(context, target, CapabilityStatus.NOT_UPDATED, NOT_PROCESSED_MESSAGE)
            context.connections.check_session_capacity(len(context.targets))

            cancelled = False
            for target in context.targets:
                try:
                    session = context.connections.connect_with_retry(
                        target.name,
                        credential_provider(target.name),
                        EndpointKind.TARGET,
                        minimum_version=self.settings.minimum_target_version,
                        prompt_retry=prompt_retry,
                    )
                except UserCancelled:
                    cancelled = True
                    self._record(
                        context, target, CapabilityStatus.FAILED,
                        "Connection cancelled by operator.", ErrorClass.CONNECTION,
                    )
                    continue
                except VersionError as exc:
                    self._record_unsupported(context, target, exc)
                    continue
                except (AuthenticationError, NetworkError) as exc:
                    self._record(context, target, CapabilityStatus.FAILED, str(exc), ErrorClass.CONNECTION)
                    continue
                self._attach(target, session)

            if cancelled and not context.eligible_targets:
                raise UserCancelled("No vCenter Server could be connected; cancelled by operator.")

            self._run_tasks(context)

        return self._result(context)

    # ------------------------------------------------------------------
    # Discovery and connection
    # ------------------------------------------------------------------

    def discover_targets(self, context: RunContext) -> list[Target]:
        """
        List the vCenter Servers managed by the control plane.

        Raises:
            InsufficientPermission: The user may not list workload domains
            NetworkError: The inventory could not be read
            ResourceNotFound: No vCenter Server is registered
        """
        if self.directory is None or context.control_session is None:
            raise ConfigurationError("Discovery requires a connected control plane")
        try:
            groupings = self.directory.list_groupings(context.control_session)
        except TransportAuthError as exc:
            if exc.kind is ErrorKind.NO_PERMISSION or exc.status_code == 403:
                raise InsufficientPermission(
                    f"User {context.control_session.principal} may not list workload domains."
                ) from exc
            raise AuthenticationError(str(exc)) from exc
        except TransportError as exc:
            raise NetworkError(f"Failed to discover workload domains: {exc}") from exc

        for grouping in groupings:
            if not grouping.member_endpoint_fqdn:
                logger.warning("Workload domain %s has no vCenter Server; skipping", grouping.name)
                continue
            target = Target.from_grouping(grouping)
            if context.add_target(target):
                self._record(context, target, CapabilityStatus.NOT_UPDATED, NOT_PROCESSED_MESSAGE)

        if not context.targets:
            raise ResourceNotFound(
                f"No vCenter Server instances found in {context.control_session.endpoint} inventory."
            )
        logger.info("Discovered %d vCenter Server instance(s)", len(context.targets))
        return context.targets

    def _connect_from_store(
        self, context: RunContext, resolver: CredentialResolver, target: Target
    ) -> None:
        try:
            credential = resolver.resolve(target)
        except InsufficientPermission:
            raise
        except CredentialNotFound as exc:
            self._record(context, target, CapabilityStatus.FAILED, str(exc), ErrorClass.CREDENTIAL)
            return

        try:
            session = context.connections.connect_with_retry(
                target.name,
                credential,
                EndpointKind.TARGET,
                minimum_version=self.settings.minimum_target_version,
            )
        except VersionError as exc:
            self._record_unsupported(context, target, exc)
            return
        except (AuthenticationError, NetworkError) as exc:
            self._record(context, target, CapabilityStatus.FAILED, str(exc), ErrorClass.CONNECTION)
            return
        self._attach(target, session)

    @staticmethod
    def _attach(target: Target, session) -> None:
        target.session = session
        target.version = session.version

    # ------------------------------------------------------------------
    # Task execution
    # ------------------------------------------------------------------

    def _run_tasks(self, context: RunContext) -> None:
        eligible = context.eligible_targets
        if not eligible:
            logger.warning("No compatible vCenter Server to run the operation on")
            return

        orchestrator = TaskOrchestrator(
            self.operation_api,
            self.settings.operation,
            mode=context.mode,
            poll_interval=self.settings.poll_interval_seconds,
            progress_callback=self.progress_callback,
            sleep=self._sleep,
            clock=self._clock,
        )

        if self.settings.parallel and len(eligible) > 1:
            self._run_parallel(context, orchestrator, eligible)
            return

        for target in eligible:
            context.aggregator.upsert(self._run_one(context, orchestrator, target))

    def _run_parallel(
        self, context: RunContext, orchestrator: TaskOrchestrator, eligible: list[Target]
    ) -> None:
        max_workers = min(self.settings.max_parallel_targets, len(eligible))
        logger.info("Running the operation on %d targets with %d parallel workers", len(eligible), max_workers)

        with concurrent.futures.ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_target = {
                executor.submit(self._run_one, context, orchestrator, target): target
                for target in eligible
            }
            for future in concurrent.futures.as_completed(future_to_target):
                target = future_to_target[future]
                try:
                    record = future.result()
                except Exception as exc:  # pylint: disable=broad-except
                    logger.error("Operation on %s failed: %s", target.name, exc)
                    record = CapabilityRecord(
                        target=target.name,
                        status=CapabilityStatus.FAILED,
                        message=f"Operation failed: {exc}",
                        error_class=ErrorClass.TASK,
                    )
                context.aggregator.upsert(record)

    @staticmethod
    def _run_one(context: RunContext, orchestrator: TaskOrchestrator, target: Target) -> CapabilityRecord:
        if target.session is None:
            raise OperationFailed(f"{target.name} has no open session")
        session = context.connections.mark_in_use(target.session)
        logger.info("Running the operation on %s", target.name)
        return orchestrator.run_operation(session, target)

    # ------------------------------------------------------------------
    # Records and result
    # ------------------------------------------------------------------

    @staticmethod
    def _record(
        context: RunContext,
        target: Target,
        status: CapabilityStatus,
        message: str,
        error_class: Optional[ErrorClass] = None,
    ) -> None:
        context.aggregator.upsert(
            CapabilityRecord(target=target.name, status=status, message=message, error_class=error_class)
        )

    def _record_unsupported(self, context: RunContext, target: Target, exc: VersionError) -> None:
        target.version = exc.version
        self._record(
            context,
            target,
            CapabilityStatus.UNSUPPORTED,
            f"vCenter release unsupported (version {exc.version}).",
            ErrorClass.VERSION,
        )

    def _new_context(self, mode: RunMode) -> RunContext:
        connections = ConnectionManager(
            self.transport,
            max_attempts=self.settings.max_connect_attempts,
            allow_multiple_sessions=self.settings.allow_multiple_sessions,
        )
        return RunContext(settings=self.settings, mode=mode, connections=connections)

    def _result(self, context: RunContext) -> RunResult:
        exit_code = decide_exit_code(context.aggregator.records)
        logger.info("Run finished: exit code %s (%d)", exit_code.name, exit_code.value)
        return RunResult(
            exit_code=exit_code,
            mode=context.mode,
            aggregator=context.aggregator,
            teardown_failures=context.teardown_failures,
        )


def decide_exit_code(records: list[CapabilityRecord]) -> ExitCode:
    """
    Pick the process exit code from the final records.

    Precedence: task failure, invocation failure, connection failure,
    missing credential. Unsupported targets are an expected outcome and
    only fail the run when no target reached the operation at all.
    """
    classes = {r.error_class for r in records}
    if ErrorClass.TASK in classes:
        return ExitCode.TASK_FAILED
    if ErrorClass.INVOCATION in classes:
        return ExitCode.OPERATION_FAILED
    if ErrorClass.CONNECTION in classes:
        return ExitCode.CONNECTION_ERROR
    if ErrorClass.CREDENTIAL in classes:
        return ExitCode.RESOURCE_NOT_FOUND

    reached = any(
        r.status in (CapabilityStatus.UNRESTRICTED, CapabilityStatus.RESTRICTED)
        for r in records
    )
    if records and not reached and ErrorClass.VERSION in classes:
        return ExitCode.VERSION_ERROR
    return ExitCode.SUCCESS
