"""
SDDC Manager inventory and credential store.

GET /v1/domains lists the workload domains with their vCenter Server and
SSO domain. GET /v1/credentials?resourceType=PSC lists the SSO
credentials; each entry names its workload domain, which is mapped back
to the domain's SSO realm.
"""

import logging
from typing import Any, Dict, List

from pydantic import SecretStr

from autocapcheck.domain.models import Grouping, Session, StoredCredential
from autocapcheck.infrastructure.rest.client import RestClient
from autocapcheck.infrastructure.rest.session_transport import auth_headers

logger = logging.getLogger(__name__)


def _elements(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, dict):
        return [e for e in data.get("elements", []) if isinstance(e, dict)]
    return []


class SddcDirectory:
    """DirectoryService backed by the SDDC Manager public API."""

    def __init__(self, client: RestClient):
        self.client = client
        self._realm_by_domain: Dict[str, str] = {}

    def list_groupings(self, session: Session) -> List[Grouping]:
        """List workload domains in inventory order."""
        data = self.client.request("GET", session.endpoint, "/v1/domains", headers=auth_headers(session))
        groupings: List[Grouping] = []
        for domain in _elements(data):
            vcenters = domain.get("vcenters") or []
            fqdn = vcenters[0].get("fqdn") if vcenters and isinstance(vcenters[0], dict) else None
            realm_id = domain.get("ssoId")
            if domain.get("id") and realm_id:
                self._realm_by_domain[domain["id"]] = realm_id

            is_primary = domain.get("isManagementSsoDomain")
            if is_primary is None:
                is_primary = domain.get("type") == "MANAGEMENT"

            groupings.append(Grouping(
                name=domain.get("name") or domain.get("id", "unknown"),
                realm_id=realm_id,
                is_primary_realm=bool(is_primary),
                member_endpoint_fqdn=fqdn,
                health_status=domain.get("status"),
            ))
        logger.debug("SDDC Manager %s lists %d workload domain(s)", session.endpoint, len(groupings))
        return groupings

    def list_credentials(self, session: Session, scope: str) -> List[StoredCredential]:
        """
        List stored credentials of one resource type.

        The returned secrets are plaintext held in SecretStr; callers blank
        them once the needed entry has been copied.
        """
        if not self._realm_by_domain:
            self.list_groupings(session)

        data = self.client.request(
            "GET",
            session.endpoint,
            "/v1/credentials",
            headers=auth_headers(session),
            params={"resourceType": scope},
        )
        entries = _elements(data)
        credentials: List[StoredCredential] = []
        for entry in entries:
            resource = entry.get("resource") or {}
            domain_id = resource.get("domainId")
            credentials.append(StoredCredential(
                username=entry.get("username", ""),
                secret=SecretStr(entry.get("password") or ""),
                realm_id=self._realm_by_domain.get(domain_id) if domain_id else None,
                grouping_id=domain_id,
                is_system=entry.get("accountType") == "SYSTEM",
            ))
            entry.pop("password", None)
        logger.debug("Credential store returned %d %s entr(ies)", len(credentials), scope)
        return credentials
