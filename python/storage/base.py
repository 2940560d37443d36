"""
Storage Backend contract

One interface, two implementations: RemoteStore (relational, multi-user) and
LocalStore (one JSON document on this device). Core logic depends only on
this class; which implementation runs is decided by the explicit Mode value
(see storage.mode).
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional, Sequence

from errors import ValidationError
from providers.client import Category
from search.records import CanonicalRecord
from storage.entities import (
    FavoriteEntry,
    PersonProfile,
    SearchHistoryEntry,
    SearchOutcome,
    SearchQuery,
    SearchResult,
    UserProfile,
)

DEFAULT_HISTORY_LIMIT = 50


class StorageBackend(ABC):
    """Persistence operations every mode must support identically"""

    @property
    @abstractmethod
    def owner_id(self) -> str:
        """Id of the owner all writes are scoped to.

        Raises:
            AuthRequiredError: remote mode without a bound identity
        """

    # Search pipeline writes

    @abstractmethod
    def save_query(
        self,
        first_name: str,
        last_name: str,
        age: Optional[int] = None,
        location: Optional[str] = None
    ) -> SearchQuery:
        """Persist a new immutable query for the current owner."""

    @abstractmethod
    def upsert_profile(self, first_name: str, last_name: str, patch: Mapping[str, Any]) -> PersonProfile:
        """Remote: update the profile with this exact name, or insert. Local: always insert.

        ``patch`` may carry ``age`` and ``metadata``.
        """

    @abstractmethod
    def append_category_records(
        self,
        profile_id: str,
        category: Category,
        records: Sequence[CanonicalRecord]
    ) -> List[Dict[str, Any]]:
        """Append one category's records to a profile; returns the stored rows."""

    @abstractmethod
    def save_result(self, query_id: str, profile_id: str, score: int) -> SearchResult:
        """Persist the single result of a query."""

    @abstractmethod
    def append_history(self, owner_id: str, query_id: str) -> SearchHistoryEntry:
        """Log one search execution."""

    # History

    @abstractmethod
    def get_history(self, owner_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[Dict[str, Any]]:
        """Newest first; each entry carries its ``search_query`` and ``search_result``."""

    @abstractmethod
    def delete_history_entry(self, owner_id: str, history_id: str) -> bool:
        """Remove one history row; False when there was nothing to remove."""

    @abstractmethod
    def delete_all_history(self, owner_id: str) -> int:
        """Clear the owner's history; returns the number of rows removed."""

    # Favorites

    @abstractmethod
    def get_favorites(self, owner_id: str) -> List[Dict[str, Any]]:
        """Newest first; each entry carries its ``search_query`` and ``search_result``."""

    @abstractmethod
    def add_favorite(self, owner_id: str, query_id: str, label: Optional[str] = None) -> FavoriteEntry:
        """Favorite a query. Favoriting it again returns the existing entry."""

    @abstractmethod
    def remove_favorite(self, owner_id: str, favorite_id: str) -> bool:
        """Remove a favorite; False when there was nothing to remove."""

    @abstractmethod
    def update_favorite_label(self, owner_id: str, favorite_id: str, label: Optional[str]) -> FavoriteEntry:
        """Relabel a favorite.

        Raises:
            NotFoundError: no such favorite for the owner
        """

    @abstractmethod
    def is_favorited(self, owner_id: str, query_id: str) -> bool:
        """Whether the owner has favorited the query."""

    # Queries and results

    @abstractmethod
    def delete_query(self, owner_id: str, query_id: str) -> None:
        """Delete a query with its result, history rows and favorites.

        Person profiles and their category records are left alone.

        Raises:
            NotFoundError: no such query for the owner
        """

    @abstractmethod
    def get_result_by_query_id(self, owner_id: str, query_id: str) -> SearchOutcome:
        """Read back a finished search.

        Raises:
            NotFoundError: the query does not exist or never got a result
        """

    # Account

    @abstractmethod
    def get_profile(self, owner_id: str) -> UserProfile:
        """The owner's account profile (the synthetic guest profile locally)."""

    @abstractmethod
    def update_profile(self, owner_id: str, patch: Mapping[str, Any]) -> UserProfile:
        """Update ``first_name`` / ``last_name``.

        Raises:
            ValidationError: patch holds other fields
        """

    @abstractmethod
    def delete_account(self, owner_id: str) -> None:
        """Remove the owner's profile and everything it owns."""


PROFILE_FIELDS = ('first_name', 'last_name')


def check_profile_patch(patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Validate an account profile patch shared by both stores"""
    unknown = sorted(set(patch) - set(PROFILE_FIELDS))
    if unknown:
        raise ValidationError(
            f"Profile fields cannot be updated: {', '.join(unknown)}",
            field=unknown[0],
            suggestion=f"Only {', '.join(PROFILE_FIELDS)} can be changed."
        )
    return {key: patch[key] for key in PROFILE_FIELDS if key in patch}
