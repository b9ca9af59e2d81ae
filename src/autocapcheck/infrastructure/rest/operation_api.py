"""
vCenter Server long-running operation.

The operation is started as a task (POST {path}?vmw-task=true returns
the task id) and tracked through the CIS tasks API
(GET /api/cis/tasks/{task}).
"""

import logging
from typing import Any, Dict

from autocapcheck.domain.errors import ErrorKind, TransportError
from autocapcheck.domain.models import Session, TaskHandle, TaskSnapshot
from autocapcheck.domain.settings import OperationSettings
from autocapcheck.infrastructure.rest.client import RestClient
from autocapcheck.infrastructure.rest.session_transport import auth_headers

logger = logging.getLogger(__name__)


class VcenterOperationApi:
    """OperationApi backed by the vCenter Server REST API."""

    def __init__(self, client: RestClient, operation: OperationSettings | None = None):
        self.client = client
        self.operation = operation or OperationSettings()

    def invoke(self, session: Session) -> TaskHandle:
        """Start the operation and return its task handle."""
        data = self.client.request(
            "POST",
            session.endpoint,
            self.operation.path,
            headers=auth_headers(session),
            params={"vmw-task": "true"},
        )
        if isinstance(data, dict):
            data = data.get("value") or data.get("task")
        if not isinstance(data, str) or not data:
            raise TransportError(
                f"POST {self.operation.path}: response carries no task id",
                kind=ErrorKind.NOT_AN_API,
            )
        logger.debug("Started task %s on %s", data, session.endpoint)
        return TaskHandle(task_id=data, endpoint=session.endpoint)

    def poll(self, session: Session, handle: TaskHandle) -> TaskSnapshot:
        """Return the current task status."""
        info = self._task_info(session, handle)
        return TaskSnapshot(status=str(info.get("status", "")))

    def fetch_result(self, session: Session, handle: TaskHandle) -> TaskSnapshot:
        """Return the terminal status with the result or error payload."""
        info = self._task_info(session, handle)
        return TaskSnapshot(
            status=str(info.get("status", "")),
            result=info.get("result"),
            error=info.get("error"),
        )

    def _task_info(self, session: Session, handle: TaskHandle) -> Dict[str, Any]:
        path = f"/api/cis/tasks/{handle.task_id}"
        data = self.client.request("GET", session.endpoint, path, headers=auth_headers(session))
        if isinstance(data, dict) and isinstance(data.get("value"), dict):
            data = data["value"]
        if not isinstance(data, dict):
            raise TransportError(f"GET {path}: unexpected task payload", kind=ErrorKind.NOT_AN_API)
        return data
