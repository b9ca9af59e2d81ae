"""
Tests for task invocation, polling and result classification.
"""

import logging

from pydantic import SecretStr

from autocapcheck.application.task_orchestrator import (
    RESTRICTED_MESSAGE,
    UNRESTRICTED_MESSAGE,
    TaskOrchestrator,
)
from autocapcheck.domain.errors import ErrorKind, TransportError
from autocapcheck.domain.models import (
    CapabilityStatus,
    EndpointKind,
    ErrorClass,
    RunMode,
    Session,
    SessionState,
    Target,
)

from conftest import FakeClock, FakeOperationApi

VC = "vc01.example.com"


def eligible_session(endpoint: str = VC) -> Session:
    return Session(endpoint=endpoint, kind=EndpointKind.TARGET, principal="admin",
                   version="9.0.0", token=SecretStr("t"), state=SessionState.IN_USE)


class TestRunOperation:
    """Test one target's operation lifecycle."""

    def setup_method(self):
        self.api = FakeOperationApi()
        self.clock = FakeClock()
        self.progress = []
        self.orchestrator = TaskOrchestrator(
            self.api,
            poll_interval=1.0,
            progress_callback=self.progress.append,
            sleep=self.clock.sleep,
            clock=self.clock,
        )
        self.target = Target(name=VC, grouping="wld01", grouping_health="ACTIVE")

    def test_flag_true_is_unrestricted(self):
        self.api.results[VC] = {"heterogeneous_hardware_located": True}
        record = self.orchestrator.run_operation(eligible_session(), self.target)
        assert record.status is CapabilityStatus.UNRESTRICTED
        assert record.message == UNRESTRICTED_MESSAGE
        assert record.error_class is None

    def test_flag_false_is_restricted(self):
        self.api.results[VC] = {"heterogeneous_hardware_located": False}
        record = self.orchestrator.run_operation(eligible_session(), self.target)
        assert record.status is CapabilityStatus.RESTRICTED
        assert record.message == RESTRICTED_MESSAGE

    def test_missing_flag_is_restricted(self):
        self.api.results[VC] = None
        record = self.orchestrator.run_operation(eligible_session(), self.target)
        assert record.status is CapabilityStatus.RESTRICTED

    def test_string_flag_is_accepted(self):
        self.api.results[VC] = {"heterogeneous_hardware_located": "true"}
        assert self.orchestrator.run_operation(eligible_session(), self.target).status is CapabilityStatus.UNRESTRICTED

    def test_polls_until_terminal_and_reports_progress(self):
        self.api.polls[VC] = ["QUEUED", "RUNNING", "RUNNING", "SUCCEEDED"]
        self.api.results[VC] = {"heterogeneous_hardware_located": True}
        record = self.orchestrator.run_operation(eligible_session(), self.target)
        assert record.status is CapabilityStatus.UNRESTRICTED
        assert self.clock.sleeps == [1.0, 1.0, 1.0]
        assert self.progress == [
            f"{VC}: task queued (0s elapsed)",
            f"{VC}: task running (1s elapsed)",
            f"{VC}: task running (2s elapsed)",
        ]
        assert self.api.fetched == [VC]

    def test_failed_task(self, caplog):
        self.api.polls[VC] = ["RUNNING", "FAILED"]
        self.api.results[VC] = {"detail": "scan aborted"}
        with caplog.at_level(logging.DEBUG, logger="autocapcheck.application.task_orchestrator"):
            record = self.orchestrator.run_operation(eligible_session(), self.target)
        assert record.status is CapabilityStatus.FAILED
        assert record.error_class is ErrorClass.TASK
        assert "FAILED" in record.message
        assert "scan aborted" in caplog.text

    def test_blocked_task_logs_payload_at_debug(self, caplog):
        self.api.polls[VC] = ["BLOCKED"]
        self.api.results[VC] = {"reason": "waiting on host"}
        with caplog.at_level(logging.DEBUG, logger="autocapcheck.application.task_orchestrator"):
            record = self.orchestrator.run_operation(eligible_session(), self.target)
        assert record.status is CapabilityStatus.FAILED
        assert "blocked" in record.message.lower()
        debug_lines = [r.getMessage() for r in caplog.records if r.levelno == logging.DEBUG]
        assert any("waiting on host" in line for line in debug_lines)

    def test_unrecognized_terminal_state(self):
        self.api.polls[VC] = ["CANCELED"]
        record = self.orchestrator.run_operation(eligible_session(), self.target)
        assert record.status is CapabilityStatus.FAILED
        assert "CANCELED" in record.message

    def test_invoke_failure_skips_polling(self):
        self.api.invoke_errors[VC] = TransportError("HTTP 404 Not Found", kind=ErrorKind.MISSING_CAPABILITY)
        record = self.orchestrator.run_operation(eligible_session(), self.target)
        assert record.status is CapabilityStatus.FAILED
        assert record.error_class is ErrorClass.INVOCATION
        assert "does not provide the required API" in record.message
        assert not self.api.fetched
        assert not self.clock.sleeps

    def test_poll_transport_error_is_failed_not_raised(self):
        self.api.poll_errors[VC] = TransportError("Connection reset by peer")
        record = self.orchestrator.run_operation(eligible_session(), self.target)
        assert record.status is CapabilityStatus.FAILED
        assert record.error_class is ErrorClass.TASK
        assert record.message.startswith("Task tracking failed:")

    def test_ineligible_session_is_refused(self):
        session = eligible_session()
        session.state = SessionState.CONNECTED
        record = self.orchestrator.run_operation(session, self.target)
        assert record.status is CapabilityStatus.FAILED
        assert not self.api.invoked

    def test_closed_session_invalidates_handle(self):
        """Polling stops once the owning session has been closed."""
        session = eligible_session()
        self.api.polls[VC] = ["RUNNING", "SUCCEEDED"]
        self.orchestrator._sleep = lambda _: setattr(session, "state", SessionState.DISCONNECTED)
        record = self.orchestrator.run_operation(session, self.target)
        assert record.status is CapabilityStatus.FAILED
        assert record.error_class is ErrorClass.TASK


class TestGroupingHealthWarning:
    """Test the workload-domain health warning."""

    def _run(self, mode, health):
        api = FakeOperationApi()
        api.results[VC] = {"heterogeneous_hardware_located": True}
        progress = []
        orchestrator = TaskOrchestrator(api, mode=mode, progress_callback=progress.append, sleep=lambda _: None)
        record = orchestrator.run_operation(
            eligible_session(), Target(name=VC, grouping="wld01", grouping_health=health)
        )
        return record, progress

    def test_warns_in_orchestrated_mode(self, caplog):
        with caplog.at_level(logging.WARNING):
            record, progress = self._run(RunMode.ORCHESTRATED, "ERROR")
        assert record.status is CapabilityStatus.UNRESTRICTED
        assert any("wld01" in line for line in progress)
        assert "ERROR status" in caplog.text

    def test_silent_in_direct_mode(self):
        record, progress = self._run(RunMode.DIRECT, "ERROR")
        assert record.status is CapabilityStatus.UNRESTRICTED
        assert not progress

    def test_silent_when_healthy(self):
        _, progress = self._run(RunMode.ORCHESTRATED, "ACTIVE")
        assert not progress
