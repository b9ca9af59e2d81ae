"""
Task orchestration for the remote long-running operation.

Invokes the operation on one target, polls it to a terminal state and
turns the result into a CapabilityRecord. One target at a time: the call
returns only when the task is terminal or the transport fails.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from autocapcheck.domain.error_classifier import classify_error
from autocapcheck.domain.errors import CapCheckError, TaskFailed
from autocapcheck.domain.models import (
    CapabilityRecord,
    CapabilityStatus,
    EndpointKind,
    ErrorClass,
    RunMode,
    Session,
    Target,
    TaskHandle,
    TaskSnapshot,
)
from autocapcheck.domain.protocols import OperationApi
from autocapcheck.domain.settings import OperationSettings

logger = logging.getLogger(__name__)

UNRESTRICTED_MESSAGE = "Heterogeneous-hardware clusters(s) located."
RESTRICTED_MESSAGE = "No heterogeneous-hardware clusters(s) located."

STATUS_SUCCEEDED = "SUCCEEDED"
STATUS_FAILED = "FAILED"
STATUS_BLOCKED = "BLOCKED"


class TaskOrchestrator:
    """
    Runs the remote operation on a single target session.

    Usage:
        orchestrator = TaskOrchestrator(api, settings.operation, RunMode.ORCHESTRATED)
        record = orchestrator.run_operation(session, target)
    """

    def __init__(
        self,
        api: OperationApi,
        operation: OperationSettings | None = None,
        mode: RunMode = RunMode.ORCHESTRATED,
        poll_interval: float = 1.0,
        progress_callback: Callable[[str], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            api: Remote operation API
            operation: Result flag and running-state spellings
            mode: Orchestrated mode enables the workload-domain health warning
            poll_interval: Seconds between polls
            progress_callback: Receives one progress line per poll
            sleep: Blocking wait used between polls
            clock: Monotonic clock used for elapsed time
        """
        self.api = api
        self.operation = operation or OperationSettings()
        self.mode = mode
        self.poll_interval = poll_interval
        self.progress_callback = progress_callback
        self._sleep = sleep
        self._clock = clock
        self._running = {s.upper() for s in self.operation.running_states}

    def run_operation(self, session: Session, target: Target) -> CapabilityRecord:
        """
        Invoke, poll and classify the operation on one target.

        Never raises for remote failures; they become a Failed record.

        Args:
            session: Version-checked session for the target
            target: Target being processed

        Returns:
            CapabilityRecord with the terminal outcome
        """
        if not session.is_eligible:
            return self._failed(
                target,
                f"Session to {target.name} has not passed the version gate.",
                ErrorClass.INVOCATION,
            )

        try:
            handle = self.api.invoke(session)
        except CapCheckError as exc:
            message = classify_error(exc, EndpointKind.TARGET, target.name, session.principal)
            logger.error("Could not start the operation on %s: %s", target.name, message)
            return self._failed(target, message, ErrorClass.INVOCATION)

        logger.info("Started task %s on %s", handle.task_id, target.name)
        try:
            status = self._wait(session, target, handle)
            final = self.api.fetch_result(session, handle)
        except CapCheckError as exc:
            message = classify_error(exc, EndpointKind.TARGET, target.name, session.principal)
            logger.error("Lost track of task %s on %s: %s", handle.task_id, target.name, message)
            return self._failed(target, f"Task tracking failed: {message}", ErrorClass.TASK)

        return self._classify(target, status, final)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _wait(self, session: Session, target: Target, handle: TaskHandle) -> str:
        start = self._clock()
        snapshot = self._poll(session, handle)
        while snapshot.status.upper() in self._running:
            elapsed = int(self._clock() - start)
            self._progress(f"{target.name}: task {snapshot.status.lower()} ({elapsed}s elapsed)")
            self._sleep(self.poll_interval)
            snapshot = self._poll(session, handle)

        elapsed = int(self._clock() - start)
        logger.info(
            "Task %s on %s finished with %s after %ds",
            handle.task_id, target.name, snapshot.status, elapsed,
        )
        return snapshot.status.upper()

    def _poll(self, session: Session, handle: TaskHandle) -> TaskSnapshot:
        if not session.is_open or session.endpoint.lower() != handle.endpoint.lower():
            raise TaskFailed(f"Task {handle.task_id} is no longer valid: its session was closed")
        return self.api.poll(session, handle)

    def _progress(self, line: str) -> None:
        logger.debug(line)
        if self.progress_callback:
            self.progress_callback(line)

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def _classify(self, target: Target, status: str, final: TaskSnapshot) -> CapabilityRecord:
        if status == STATUS_SUCCEEDED:
            if _flag_enabled(final.result, self.operation.result_flag):
                self._check_grouping_health(target)
                return CapabilityRecord(
                    target=target.name,
                    status=CapabilityStatus.UNRESTRICTED,
                    message=UNRESTRICTED_MESSAGE,
                )
            return CapabilityRecord(
                target=target.name,
                status=CapabilityStatus.RESTRICTED,
                message=RESTRICTED_MESSAGE,
            )

        if status == STATUS_BLOCKED:
            logger.error("Task on %s is blocked", target.name)
            logger.debug("Blocked task payload for %s: result=%r error=%r", target.name, final.result, final.error)
            return self._failed(
                target,
                "Task blocked on the vCenter Server. Re-run with --verbose for details.",
                ErrorClass.TASK,
            )

        if status == STATUS_FAILED:
            logger.error("Task on %s failed", target.name)
        else:
            logger.error("Task on %s ended in unrecognized state %s", target.name, status)
        logger.debug("Task result for %s: result=%r error=%r", target.name, final.result, final.error)
        return self._failed(
            target,
            f"Task ended with status {status}. Re-run with --verbose for details.",
            ErrorClass.TASK,
        )

    def _check_grouping_health(self, target: Target) -> None:
        if self.mode is not RunMode.ORCHESTRATED:
            return
        health = (target.grouping_health or "").upper()
        if health == "ERROR":
            warning = (
                f"Workload domain {target.grouping or target.name} reports an ERROR status "
                "in SDDC Manager; review it before relying on this result."
            )
            logger.warning(warning)
            if self.progress_callback:
                self.progress_callback(warning)

    @staticmethod
    def _failed(target: Target, message: str, error_class: ErrorClass) -> CapabilityRecord:
        return CapabilityRecord(
            target=target.name,
            status=CapabilityStatus.FAILED,
            message=message,
            error_class=error_class,
        )


def _flag_enabled(result: Any, key: str) -> bool:
    """Read the boolean capability flag from a task result payload."""
    if isinstance(result, bool):
        return result
    if isinstance(result, dict):
        value = result.get(key)
        if isinstance(value, str):
            return value.strip().lower() == "true"
        return value is True
    return False
