"""
Credential resolution from the control plane's credential store.

Targets in the management realm use the designated SYSTEM SSO credential;
targets in an isolated realm use the credential scoped to that realm.
Each realm is looked up at most once per run.
"""

from __future__ import annotations

import logging

from pydantic import SecretStr

from autocapcheck.domain.errors import (
    CredentialNotFound,
    ErrorKind,
    InsufficientPermission,
    NetworkError,
    TransportAuthError,
    TransportError,
)
from autocapcheck.domain.models import Credential, Session, StoredCredential, Target
from autocapcheck.domain.protocols import DirectoryService

logger = logging.getLogger(__name__)

# Resource type of SSO administrator credentials in the store
SSO_SCOPE = "PSC"
PRIMARY_REALM_KEY = "__primary__"


class CredentialResolver:
    """
    Resolves the credential to use for each target.

    Usage:
        resolver = CredentialResolver(directory, control_plane_session)
        credential = resolver.resolve(target)   # one-time copy
    """

    def __init__(self, directory: DirectoryService, session: Session) -> None:
        self.directory = directory
        self.session = session
        self._cache: dict[str, Credential] = {}

    def resolve(self, target: Target) -> Credential:
        """
        Return a one-time credential for a target.

        Args:
            target: Target whose realm selects the credential

        Returns:
            A fresh Credential copy the caller may clear after use

        Raises:
            CredentialNotFound: The store has no entry for the realm
            InsufficientPermission: The control-plane user may not read credentials
            NetworkError: The store could not be reached
        """
        key = PRIMARY_REALM_KEY if target.is_primary_realm else (target.realm_id or target.name)
        if key not in self._cache:
            self._cache[key] = self._lookup(target)
        return self._cache[key].model_copy()

    def clear(self) -> None:
        """Blank every cached secret and forget the cache."""
        for credential in self._cache.values():
            credential.clear()
        self._cache.clear()

    def _lookup(self, target: Target) -> Credential:
        realm = target.realm_id or "<none>"
        if target.is_primary_realm:
            logger.debug("Looking up management SSO credential for %s", target.name)
        else:
            logger.debug("Looking up isolated-realm credential for %s (realm %s)", target.name, realm)

        entries = self._fetch()
        try:
            match = self._select(entries, target)
            if match is None:
                raise CredentialNotFound(
                    f"No SSO credential found for {target.name} (realm {realm}) "
                    "in the SDDC Manager credential store."
                )
            credential = Credential(
                username=match.username,
                password=SecretStr(match.secret.get_secret_value()),
                realm_id=target.realm_id,
            )
        finally:
            for entry in entries:
                entry.secret = SecretStr("")
            del entries

        logger.info("Resolved credential %s for %s", credential.username, target.name)
        return credential

    def _fetch(self) -> list[StoredCredential]:
        try:
            return self.directory.list_credentials(self.session, SSO_SCOPE)
        except TransportAuthError as exc:
            if exc.kind is ErrorKind.NO_PERMISSION or exc.status_code == 403:
                raise InsufficientPermission(
                    f"User {self.session.principal} lacks permission to read credentials "
                    f"from {self.session.endpoint}. Use an account with the ADMIN role."
                ) from exc
            raise
        except TransportError as exc:
            raise NetworkError(f"Failed to read credentials from {self.session.endpoint}: {exc}") from exc

    @staticmethod
    def _select(entries: list[StoredCredential], target: Target) -> StoredCredential | None:
        in_realm = [e for e in entries if target.realm_id is None or e.realm_id == target.realm_id]
        if target.is_primary_realm:
            system = [e for e in in_realm if e.is_system]
            return system[0] if system else None
        if target.realm_id is None:
            return None
        system = [e for e in in_realm if e.is_system]
        if system:
            return system[0]
        return in_realm[0] if in_realm else None
