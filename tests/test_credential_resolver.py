"""
Tests for realm-scoped credential resolution.
"""

import logging

import pytest
from pydantic import SecretStr

from autocapcheck.application.credential_resolver import SSO_SCOPE, CredentialResolver
from autocapcheck.domain.errors import (
    AuthenticationError,
    CredentialNotFound,
    ErrorKind,
    InsufficientPermission,
    NetworkError,
    TransportAuthError,
    TransportError,
)
from autocapcheck.domain.models import EndpointKind, Session, Target

from conftest import FakeDirectory, stored


def control_session() -> Session:
    return Session(endpoint="sddc.example.com", kind=EndpointKind.CONTROL_PLANE,
                   principal="admin@local", token=SecretStr("t"))


class TestCredentialResolver:
    """Test credential selection, caching and secret hygiene."""

    def setup_method(self):
        self.directory = FakeDirectory(credentials=[
            stored("svc@vsphere.local", "svc-secret", "sso-mgmt"),
            stored("administrator@vsphere.local", "mgmt-secret", "sso-mgmt", is_system=True),
            stored("administrator@iso.local", "iso-secret", "sso-iso", is_system=True),
            stored("user@other.local", "other-secret", "sso-other"),
        ])
        self.resolver = CredentialResolver(self.directory, control_session())

    def test_primary_realm_uses_system_credential(self):
        target = Target(name="vc-mgmt", realm_id="sso-mgmt", is_primary_realm=True)
        credential = self.resolver.resolve(target)
        assert credential.username == "administrator@vsphere.local"
        assert credential.get_password() == "mgmt-secret"

    def test_isolated_realm_uses_realm_credential(self):
        credential = self.resolver.resolve(Target(name="vc-iso", realm_id="sso-iso"))
        assert credential.username == "administrator@iso.local"
        assert credential.realm_id == "sso-iso"

    def test_isolated_realm_without_system_entry_uses_first_match(self):
        credential = self.resolver.resolve(Target(name="vc-other", realm_id="sso-other"))
        assert credential.username == "user@other.local"

    def test_missing_realm_raises_not_found(self):
        with pytest.raises(CredentialNotFound):
            self.resolver.resolve(Target(name="vc-x", realm_id="sso-missing"))

    def test_primary_realm_without_system_entry_raises_not_found(self):
        directory = FakeDirectory(credentials=[stored("svc@vsphere.local", "s", "sso-mgmt")])
        resolver = CredentialResolver(directory, control_session())
        with pytest.raises(CredentialNotFound):
            resolver.resolve(Target(name="vc-mgmt", realm_id="sso-mgmt", is_primary_realm=True))

    def test_one_lookup_per_realm(self):
        """Targets sharing a realm reuse the cached credential."""
        self.resolver.resolve(Target(name="vc1", realm_id="sso-mgmt", is_primary_realm=True))
        self.resolver.resolve(Target(name="vc2", realm_id="sso-mgmt", is_primary_realm=True))
        self.resolver.resolve(Target(name="vc3", realm_id="sso-iso"))
        assert self.directory.credential_calls == 2

    def test_each_caller_gets_its_own_copy(self):
        """Clearing one copy does not affect later resolutions."""
        target = Target(name="vc1", realm_id="sso-iso")
        first = self.resolver.resolve(target)
        first.clear()
        second = self.resolver.resolve(target)
        assert first.is_cleared
        assert second.get_password() == "iso-secret"

    def test_store_secrets_are_blanked_after_lookup(self):
        self.resolver.resolve(Target(name="vc1", realm_id="sso-iso"))
        assert self.directory.handed_out
        assert all(e.secret.get_secret_value() == "" for e in self.directory.handed_out)

    def test_clear_forgets_cached_credentials(self):
        target = Target(name="vc1", realm_id="sso-iso")
        handed = self.resolver.resolve(target)
        self.resolver.clear()
        assert handed.get_password() == "iso-secret"
        self.resolver.resolve(target)
        assert self.directory.credential_calls == 2

    def test_secret_never_logged(self, caplog):
        with caplog.at_level(logging.DEBUG):
            credential = self.resolver.resolve(Target(name="vc1", realm_id="sso-iso"))
        assert "iso-secret" not in caplog.text
        assert "iso-secret" not in repr(credential)

    def test_forbidden_store_raises_insufficient_permission(self):
        self.directory.credentials_error = TransportAuthError(
            "HTTP 403", kind=ErrorKind.NO_PERMISSION, status_code=403
        )
        with pytest.raises(InsufficientPermission):
            self.resolver.resolve(Target(name="vc1", realm_id="sso-iso"))

    def test_other_auth_failure_propagates(self):
        self.directory.credentials_error = TransportAuthError("HTTP 401", kind=ErrorKind.BAD_CREDENTIALS)
        with pytest.raises(AuthenticationError):
            self.resolver.resolve(Target(name="vc1", realm_id="sso-iso"))

    def test_unreachable_store_raises_network_error(self):
        self.directory.credentials_error = TransportError("Connection refused")
        with pytest.raises(NetworkError):
            self.resolver.resolve(Target(name="vc1", realm_id="sso-iso"))


def test_scope_is_sso():
    assert SSO_SCOPE == "PSC"
