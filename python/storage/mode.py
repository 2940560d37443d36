"""
Storage mode selection.

The mode is an explicit value passed to the orchestrator and the stores
rather than a global flag checked inside each operation:

    RemoteMode(identity)   signed-in user, relational Remote Store
    GuestMode(store)       guest user, on-device Local Store

ModeResolver reads the persisted guest flag every time it resolves, so a
switch between modes mid-session takes effect on the next operation.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Union

from database.connection import DatabaseSessionProvider
from errors import AuthRequiredError
from storage.base import StorageBackend
from storage.entities import Identity
from storage.local import GuestSession, LocalStore
from storage.remote import RemoteStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteMode:
    identity: Optional[Identity]

    @property
    def is_guest(self) -> bool:
        return False


@dataclass(frozen=True)
class GuestMode:
    store: LocalStore

    @property
    def is_guest(self) -> bool:
        return True


Mode = Union[RemoteMode, GuestMode]


class IdentityProvider(Protocol):
    """Source of the signed-in user, if any"""

    def current_identity(self) -> Optional[Identity]:
        ...


class ModeResolver:
    """Turns the guest flag plus the current identity into a Mode and a backend"""

    def __init__(self, guest_session: GuestSession, db_provider: DatabaseSessionProvider):
        self.guest_session = guest_session
        self.db_provider = db_provider

    def resolve(self, identity: Optional[Identity] = None) -> Mode:
        if self.guest_session.is_guest_mode():
            return GuestMode(self.guest_session.store())
        return RemoteMode(identity)

    def resolve_from(self, identity_provider: IdentityProvider) -> Mode:
        return self.resolve(identity_provider.current_identity())

    def backend_for(self, mode: Mode) -> StorageBackend:
        if isinstance(mode, GuestMode):
            return mode.store
        if isinstance(mode, RemoteMode):
            return RemoteStore(mode.identity, self.db_provider)
        raise TypeError(f"Unknown storage mode: {mode!r}")

    def backend(self, identity: Optional[Identity] = None) -> StorageBackend:
        return self.backend_for(self.resolve(identity))


def require_identity(mode: Mode) -> Identity:
    """The signed-in identity of a remote mode.

    Raises:
        AuthRequiredError: guest mode, or remote mode without an identity
    """
    if isinstance(mode, RemoteMode) and mode.identity is not None:
        return mode.identity
    raise AuthRequiredError()
