"""
Remote Store (signed-in mode)

StorageBackend over the relational database. Every call runs in its own
session_scope() transaction and is timed by database.monitoring.query_timer.
Repository and SQLAlchemy failures surface as StorageError; lookups that find
nothing for the owner surface as NotFoundError.
"""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import models
from database.connection import DatabaseSessionProvider
from database.monitoring import query_timer
from database.repositories import (
    CategoryRecordRepository,
    EntityNotFoundError,
    FavoriteRepository,
    PersonProfileRepository,
    RepositoryError,
    SearchHistoryRepository,
    SearchQueryRepository,
    SearchResultRepository,
    UserProfileRepository,
)
from errors import AuthRequiredError, NotFoundError, StorageError
from providers.client import Category
from search.records import CanonicalRecord, RECORD_KEYS
from storage.base import StorageBackend, DEFAULT_HISTORY_LIMIT, check_profile_patch
from storage.entities import (
    FavoriteEntry,
    Identity,
    PersonProfile,
    SearchHistoryEntry,
    SearchOutcome,
    SearchQuery,
    SearchResult,
    UserProfile,
    iso,
)

logger = logging.getLogger(__name__)


# ============================================
# ROW CONVERSION
# ============================================

def _plain(value: Any) -> Any:
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        return iso(value)
    return value


def row_to_dict(row: Any) -> Dict[str, Any]:
    """Column attributes of an ORM row as JSON-friendly values"""
    return {attr.key: _plain(getattr(row, attr.key)) for attr in inspect(row).mapper.column_attrs}


def query_entity(row: models.SearchQuery) -> SearchQuery:
    return SearchQuery(
        id=str(row.id),
        owner_id=row.user_id,
        first_name=row.first_name,
        last_name=row.last_name,
        age=row.age,
        location=row.location,
        created_at=row.created_at,
    )


def result_entity(row: models.SearchResult) -> SearchResult:
    return SearchResult(
        id=str(row.id),
        search_query_id=str(row.search_query_id),
        person_profile_id=str(row.person_profile_id),
        confidence_score=row.confidence_score,
        created_at=row.created_at,
    )


def profile_entity(row: models.PersonProfile, include_records: bool = True) -> PersonProfile:
    profile = PersonProfile(
        id=str(row.id),
        first_name=row.first_name,
        last_name=row.last_name,
        age=row.age,
        last_updated=row.last_updated,
        metadata=dict(row.metadata_ or {}),
    )
    if include_records:
        for key in RECORD_KEYS.values():
            profile.records[key] = [row_to_dict(r) for r in getattr(row, key)]
    return profile


def user_entity(row: models.UserProfile) -> UserProfile:
    return UserProfile(
        id=row.id,
        email=row.email,
        first_name=row.first_name,
        last_name=row.last_name,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _joined(entry: Dict[str, Any], query_row, result_row) -> Dict[str, Any]:
    entry['search_query'] = query_entity(query_row).to_dict() if query_row is not None else None
    entry['search_result'] = result_entity(result_row).to_dict() if result_row is not None else None
    return entry


# ============================================
# REMOTE STORE
# ============================================

class RemoteStore(StorageBackend):
    """StorageBackend bound to one signed-in identity"""

    def __init__(self, identity: Optional[Identity], db_provider: DatabaseSessionProvider):
        self.identity = identity
        self.db = db_provider

    @property
    def owner_id(self) -> str:
        if self.identity is None:
            raise AuthRequiredError()
        return self.identity.id

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        with query_timer(operation):
            try:
                with self.db.session_scope() as session:
                    yield session
            except EntityNotFoundError as e:
                raise NotFoundError(str(e))
            except RepositoryError as e:
                logger.error("Repository error during %s: %s", operation, e)
                raise StorageError(f"{operation} failed: {e}")
            except SQLAlchemyError as e:
                logger.error("Database error during %s: %s", operation, e)
                raise StorageError(f"{operation} failed: {e}")

    # Search pipeline writes

    def save_query(self, first_name, last_name, age=None, location=None) -> SearchQuery:
        owner = self.owner_id
        with self._session("save_query") as session:
            UserProfileRepository(session).ensure(owner, self.identity.email)
            row = SearchQueryRepository(session).create(owner, first_name, last_name, age, location)
            return query_entity(row)

    def upsert_profile(self, first_name: str, last_name: str, patch: Mapping[str, Any]) -> PersonProfile:
        with self._session("upsert_profile") as session:
            row, created = PersonProfileRepository(session).upsert(
                first_name,
                last_name,
                age=patch.get('age'),
                metadata=patch.get('metadata'),
            )
            logger.debug("Person profile %s %s", row.id, "created" if created else "updated")
            return profile_entity(row, include_records=False)

    def append_category_records(
        self,
        profile_id: str,
        category: Category,
        records: Sequence[CanonicalRecord]
    ) -> List[Dict[str, Any]]:
        key = RECORD_KEYS[Category(category)]
        with self._session(f"append_{key}") as session:
            rows = CategoryRecordRepository(session).add_many(
                profile_id, key, [record.to_dict() for record in records]
            )
            return [row_to_dict(row) for row in rows]

    def save_result(self, query_id: str, profile_id: str, score: int) -> SearchResult:
        with self._session("save_result") as session:
            return result_entity(SearchResultRepository(session).create(query_id, profile_id, score))

    def append_history(self, owner_id: str, query_id: str) -> SearchHistoryEntry:
        with self._session("append_history") as session:
            row = SearchHistoryRepository(session).add(owner_id, query_id)
            return SearchHistoryEntry(
                id=str(row.id),
                owner_id=row.user_id,
                search_query_id=str(row.search_query_id),
                searched_at=row.searched_at,
            )

    # History

    def get_history(self, owner_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[Dict[str, Any]]:
        with self._session("get_history") as session:
            rows = SearchHistoryRepository(session).list_for_user(owner_id, limit)
            results = SearchResultRepository(session).get_for_queries([r.search_query_id for r in rows])
            return [
                _joined(
                    SearchHistoryEntry(
                        id=str(r.id),
                        owner_id=r.user_id,
                        search_query_id=str(r.search_query_id),
                        searched_at=r.searched_at,
                    ).to_dict(),
                    r.query,
                    results.get(r.search_query_id),
                )
                for r in rows
            ]

    def delete_history_entry(self, owner_id: str, history_id: str) -> bool:
        with self._session("delete_history_entry") as session:
            return SearchHistoryRepository(session).delete(history_id, owner_id)

    def delete_all_history(self, owner_id: str) -> int:
        with self._session("delete_all_history") as session:
            return SearchHistoryRepository(session).delete_all(owner_id)

    # Favorites

    @staticmethod
    def _favorite_entity(row: models.FavoriteSearch) -> FavoriteEntry:
        return FavoriteEntry(
            id=str(row.id),
            owner_id=row.user_id,
            search_query_id=str(row.search_query_id),
            label=row.label,
            favorited_at=row.favorited_at,
        )

    def get_favorites(self, owner_id: str) -> List[Dict[str, Any]]:
        with self._session("get_favorites") as session:
            rows = FavoriteRepository(session).list_for_user(owner_id)
            results = SearchResultRepository(session).get_for_queries([r.search_query_id for r in rows])
            return [
                _joined(self._favorite_entity(r).to_dict(), r.query, results.get(r.search_query_id))
                for r in rows
            ]

    def add_favorite(self, owner_id: str, query_id: str, label: Optional[str] = None) -> FavoriteEntry:
        with self._session("add_favorite") as session:
            if SearchQueryRepository(session).get_for_user(query_id, owner_id) is None:
                raise NotFoundError(f"Search query not found: {query_id}")
            row, created = FavoriteRepository(session).add(owner_id, query_id, label)
            if not created:
                logger.debug("Query %s already favorited", query_id)
            return self._favorite_entity(row)

    def remove_favorite(self, owner_id: str, favorite_id: str) -> bool:
        with self._session("remove_favorite") as session:
            return FavoriteRepository(session).delete(favorite_id, owner_id)

    def update_favorite_label(self, owner_id: str, favorite_id: str, label: Optional[str]) -> FavoriteEntry:
        with self._session("update_favorite_label") as session:
            return self._favorite_entity(FavoriteRepository(session).update_label(favorite_id, owner_id, label))

    def is_favorited(self, owner_id: str, query_id: str) -> bool:
        with self._session("is_favorited") as session:
            return FavoriteRepository(session).get_by_query(owner_id, query_id) is not None

    # Queries and results

    def delete_query(self, owner_id: str, query_id: str) -> None:
        with self._session("delete_query") as session:
            if not SearchQueryRepository(session).delete_for_user(query_id, owner_id):
                raise NotFoundError(f"Search query not found: {query_id}")

    def get_result_by_query_id(self, owner_id: str, query_id: str) -> SearchOutcome:
        with self._session("get_result_by_query_id") as session:
            query_row = SearchQueryRepository(session).get_for_user(query_id, owner_id)
            result_row = SearchResultRepository(session).get_by_query_id(query_id) if query_row else None
            if result_row is None:
                raise NotFoundError(f"No search result for query: {query_id}")
            result = result_entity(result_row)
            return SearchOutcome(
                search_query=query_entity(query_row),
                search_result=result,
                person_profile=profile_entity(result_row.person_profile),
                confidence_score=result.confidence_score,
            )

    # Account

    def get_profile(self, owner_id: str) -> UserProfile:
        with self._session("get_profile") as session:
            email = self.identity.email if self.identity and self.identity.id == owner_id else None
            return user_entity(UserProfileRepository(session).ensure(owner_id, email))

    def update_profile(self, owner_id: str, patch: Mapping[str, Any]) -> UserProfile:
        updates = check_profile_patch(patch)
        with self._session("update_profile") as session:
            return user_entity(UserProfileRepository(session).update(owner_id, updates))

    def delete_account(self, owner_id: str) -> None:
        with self._session("delete_account") as session:
            if not UserProfileRepository(session).delete(owner_id):
                raise NotFoundError(f"Profile not found: {owner_id}")
        logger.info("Account %s deleted", owner_id)
