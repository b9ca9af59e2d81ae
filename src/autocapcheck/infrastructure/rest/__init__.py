"""REST adapters for SDDC Manager and vCenter Server."""

from autocapcheck.infrastructure.rest.client import RestClient
from autocapcheck.infrastructure.rest.directory import SddcDirectory
from autocapcheck.infrastructure.rest.operation_api import VcenterOperationApi
from autocapcheck.infrastructure.rest.session_transport import RestSessionTransport, auth_headers

__all__ = [
    "RestClient",
    "RestSessionTransport",
    "SddcDirectory",
    "VcenterOperationApi",
    "auth_headers",
]
