"""
Storage package: one backend interface with a remote (SQL) and a local
(guest, on-device JSON) implementation, plus mode selection and the
submission store.
"""

from storage.base import StorageBackend, DEFAULT_HISTORY_LIMIT
from storage.entities import (
    Identity,
    SearchQuery,
    PersonProfile,
    SearchResult,
    SearchHistoryEntry,
    FavoriteEntry,
    UserProfile,
    SearchOutcome,
    Submission,
)
from storage.local import LocalMedium, MemoryMedium, FileMedium, LocalStore, GuestSession
from storage.remote import RemoteStore
from storage.mode import RemoteMode, GuestMode, Mode, IdentityProvider, ModeResolver, require_identity
from storage.submissions import SubmissionStore, validate_submission

__all__ = [
    'StorageBackend',
    'DEFAULT_HISTORY_LIMIT',
    'Identity',
    'SearchQuery',
    'PersonProfile',
    'SearchResult',
    'SearchHistoryEntry',
    'FavoriteEntry',
    'UserProfile',
    'SearchOutcome',
    'Submission',
    'LocalMedium',
    'MemoryMedium',
    'FileMedium',
    'LocalStore',
    'GuestSession',
    'RemoteStore',
    'RemoteMode',
    'GuestMode',
    'Mode',
    'IdentityProvider',
    'ModeResolver',
    'require_identity',
    'SubmissionStore',
    'validate_submission',
]
