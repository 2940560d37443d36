"""
Tests for storage mode resolution.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from errors import AuthRequiredError
from storage.local import LocalStore
from storage.mode import GuestMode, ModeResolver, RemoteMode, require_identity
from storage.remote import RemoteStore


@pytest.fixture
def resolver(guest_session, db_provider):
    return ModeResolver(guest_session, db_provider)


class FixedIdentity:
    def __init__(self, identity):
        self.identity = identity

    def current_identity(self):
        return self.identity


class TestResolve:

    def test_signed_in_by_default(self, resolver, identity):
        mode = resolver.resolve(identity)
        assert mode == RemoteMode(identity)
        assert not mode.is_guest

    def test_follows_guest_flag(self, resolver, guest_session, identity):
        guest_session.enable()
        mode = resolver.resolve(identity)
        assert isinstance(mode, GuestMode)
        assert mode.is_guest

        guest_session.disable()
        assert isinstance(resolver.resolve(identity), RemoteMode)

    def test_resolve_from_identity_provider(self, resolver, identity):
        assert resolver.resolve_from(FixedIdentity(identity)) == RemoteMode(identity)


class TestBackends:

    def test_remote_backend(self, resolver, identity):
        backend = resolver.backend(identity)
        assert isinstance(backend, RemoteStore)
        assert backend.owner_id == identity.id

    def test_guest_backend(self, resolver, guest_session):
        guest_session.enable()
        backend = resolver.backend()
        assert isinstance(backend, LocalStore)
        assert backend.owner_id.startswith("guest_")

    def test_unknown_mode(self, resolver):
        with pytest.raises(TypeError):
            resolver.backend_for(object())

    def test_remote_without_identity(self, resolver):
        with pytest.raises(AuthRequiredError):
            resolver.backend(None).owner_id


class TestRequireIdentity:

    def test_remote(self, identity):
        assert require_identity(RemoteMode(identity)) is identity

    def test_remote_anonymous(self):
        with pytest.raises(AuthRequiredError):
            require_identity(RemoteMode(None))

    def test_guest(self, guest_session):
        with pytest.raises(AuthRequiredError):
            require_identity(GuestMode(guest_session.store()))
