"""
Repository Pattern for Persona Database Operations

Provides the data access layer behind the Remote Store. Every repository
works on a caller-owned Session and only flushes; committing is the job of
DatabaseSessionProvider.session_scope().
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from uuid import UUID

from sqlalchemy import select, delete, and_
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from database.models import (
    UserProfile,
    SearchQuery,
    PersonProfile,
    SearchResult,
    SearchHistory,
    FavoriteSearch,
    PersonInfoSubmission,
    SubmissionStatus,
    CATEGORY_MODELS,
    SUBMISSION_CHILD_MODELS,
)

logger = logging.getLogger(__name__)

IdLike = Union[UUID, str]


class RepositoryError(Exception):
    """Base exception for repository errors."""
    pass


class EntityNotFoundError(RepositoryError):
    """Raised when an entity is not found."""
    pass


class DuplicateEntityError(RepositoryError):
    """Raised when attempting to create a duplicate entity."""
    pass


def to_uuid(value: Optional[IdLike]) -> Optional[UUID]:
    """Parse an id; None for anything that is not a UUID (e.g. a guest id)"""
    if value is None or isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


def _column_values(model, data: Mapping[str, Any]) -> Dict[str, Any]:
    """Keep only keys that are columns of model"""
    columns = set(model.__table__.columns.keys())
    return {key: value for key, value in data.items() if key in columns and key != 'id'}


# ============================================
# USER PROFILES
# ============================================

class UserProfileRepository:
    """Repository for account profiles."""

    UPDATABLE_FIELDS = ('first_name', 'last_name')

    def __init__(self, session: Session):
        self.session = session

    def get(self, user_id: str) -> Optional[UserProfile]:
        return self.session.get(UserProfile, user_id)

    def ensure(self, user_id: str, email: Optional[str] = None) -> UserProfile:
        """Get the profile for user_id, creating it on first use."""
        profile = self.get(user_id)
        if profile is None:
            profile = UserProfile(id=user_id, email=email)
            self.session.add(profile)
            self.session.flush()
            logger.debug("Created profile row for user %s", user_id)
        return profile

    def update(self, user_id: str, updates: Mapping[str, Any]) -> UserProfile:
        """
        Update allowed profile fields.

        Raises:
            EntityNotFoundError: If the profile does not exist
        """
        profile = self.get(user_id)
        if profile is None:
            raise EntityNotFoundError(f"Profile not found: {user_id}")
        for key in self.UPDATABLE_FIELDS:
            if key in updates:
                setattr(profile, key, updates[key])
        profile.updated_at = datetime.now(timezone.utc)
        self.session.flush()
        return profile

    def delete(self, user_id: str) -> bool:
        """Delete a profile; queries, history and favorites cascade."""
        result = self.session.execute(delete(UserProfile).where(UserProfile.id == user_id))
        return result.rowcount > 0


# ============================================
# SEARCH QUERIES
# ============================================

class SearchQueryRepository:
    """Repository for search queries."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        user_id: str,
        first_name: str,
        last_name: str,
        age: Optional[int] = None,
        location: Optional[str] = None
    ) -> SearchQuery:
        query = SearchQuery(
            user_id=user_id,
            first_name=first_name,
            last_name=last_name,
            age=age,
            location=location
        )
        self.session.add(query)
        self.session.flush()
        return query

    def get_for_user(self, query_id: IdLike, user_id: str) -> Optional[SearchQuery]:
        qid = to_uuid(query_id)
        if qid is None:
            return None
        stmt = select(SearchQuery).where(
            and_(SearchQuery.id == qid, SearchQuery.user_id == user_id)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def delete_for_user(self, query_id: IdLike, user_id: str) -> bool:
        """Delete a query; its result, history rows and favorites cascade."""
        qid = to_uuid(query_id)
        if qid is None:
            return False
        result = self.session.execute(
            delete(SearchQuery).where(and_(SearchQuery.id == qid, SearchQuery.user_id == user_id))
        )
        return result.rowcount > 0


# ============================================
# PERSON PROFILES & CATEGORY RECORDS
# ============================================

class PersonProfileRepository:
    """Repository for aggregated person profiles."""

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, profile_id: IdLike) -> Optional[PersonProfile]:
        pid = to_uuid(profile_id)
        return self.session.get(PersonProfile, pid) if pid else None

    def find_by_name(self, first_name: str, last_name: str) -> Optional[PersonProfile]:
        """Exact first+last name match; the most recently updated wins."""
        stmt = select(PersonProfile).where(
            and_(PersonProfile.first_name == first_name, PersonProfile.last_name == last_name)
        ).order_by(PersonProfile.last_updated.desc()).limit(1)
        return self.session.execute(stmt).scalars().first()

    def upsert(
        self,
        first_name: str,
        last_name: str,
        age: Optional[int] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> Tuple[PersonProfile, bool]:
        """
        Update the profile with this exact name, or insert one.

        On update a missing age or empty metadata keeps the stored value.

        Returns:
            Tuple of (profile, created)
        """
        profile = self.find_by_name(first_name, last_name)
        now = datetime.now(timezone.utc)
        if profile is not None:
            profile.age = age or profile.age
            profile.metadata_ = metadata or profile.metadata_
            profile.last_updated = now
            self.session.flush()
            return profile, False

        profile = PersonProfile(
            first_name=first_name,
            last_name=last_name,
            age=age,
            metadata_=metadata or {},
            last_updated=now
        )
        self.session.add(profile)
        self.session.flush()
        return profile, True


class CategoryRecordRepository:
    """Repository for the six category record tables."""

    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def model_for(key: str):
        try:
            return CATEGORY_MODELS[key]
        except KeyError:
            raise RepositoryError(f"Unknown record category: {key}")

    def add_many(self, profile_id: IdLike, key: str, records: Sequence[Mapping[str, Any]]) -> List[Any]:
        """
        Append records for one category to a profile. No deduplication.

        Raises:
            EntityNotFoundError: If the person profile does not exist
        """
        model = self.model_for(key)
        pid = to_uuid(profile_id)
        if pid is None or self.session.get(PersonProfile, pid) is None:
            raise EntityNotFoundError(f"Person profile not found: {profile_id}")

        rows = [model(person_profile_id=pid, **_column_values(model, record)) for record in records]
        self.session.add_all(rows)
        self.session.flush()
        return rows

    def list_for_profile(self, profile_id: IdLike, key: str) -> List[Any]:
        model = self.model_for(key)
        pid = to_uuid(profile_id)
        if pid is None:
            return []
        stmt = select(model).where(model.person_profile_id == pid).order_by(model.created_at)
        return list(self.session.execute(stmt).scalars().all())


# ============================================
# RESULTS, HISTORY, FAVORITES
# ============================================

class SearchResultRepository:
    """Repository for search results."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, query_id: IdLike, profile_id: IdLike, confidence_score: int) -> SearchResult:
        """
        Raises:
            DuplicateEntityError: If the query already has a result
        """
        result = SearchResult(
            search_query_id=to_uuid(query_id),
            person_profile_id=to_uuid(profile_id),
            confidence_score=confidence_score
        )
        try:
            self.session.add(result)
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateEntityError(f"Result already exists for query {query_id}: {e}")
        return result

    def get_by_query_id(self, query_id: IdLike) -> Optional[SearchResult]:
        qid = to_uuid(query_id)
        if qid is None:
            return None
        stmt = select(SearchResult).where(SearchResult.search_query_id == qid)
        return self.session.execute(stmt).scalar_one_or_none()

    def get_for_queries(self, query_ids: Sequence[UUID]) -> Dict[UUID, SearchResult]:
        if not query_ids:
            return {}
        stmt = select(SearchResult).where(SearchResult.search_query_id.in_(list(query_ids)))
        return {r.search_query_id: r for r in self.session.execute(stmt).unique().scalars().all()}


class SearchHistoryRepository:
    """Repository for the per-execution search log."""

    def __init__(self, session: Session):
        self.session = session

    def add(self, user_id: str, query_id: IdLike) -> SearchHistory:
        entry = SearchHistory(user_id=user_id, search_query_id=to_uuid(query_id))
        self.session.add(entry)
        self.session.flush()
        return entry

    def list_for_user(self, user_id: str, limit: int = 50) -> List[SearchHistory]:
        """Newest first"""
        stmt = select(SearchHistory).where(
            SearchHistory.user_id == user_id
        ).order_by(SearchHistory.searched_at.desc()).limit(limit)
        return list(self.session.execute(stmt).unique().scalars().all())

    def delete(self, history_id: IdLike, user_id: str) -> bool:
        hid = to_uuid(history_id)
        if hid is None:
            return False
        result = self.session.execute(
            delete(SearchHistory).where(and_(SearchHistory.id == hid, SearchHistory.user_id == user_id))
        )
        return result.rowcount > 0

    def delete_all(self, user_id: str) -> int:
        result = self.session.execute(delete(SearchHistory).where(SearchHistory.user_id == user_id))
        return result.rowcount


class FavoriteRepository:
    """Repository for saved searches."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, favorite_id: IdLike, user_id: str) -> Optional[FavoriteSearch]:
        fid = to_uuid(favorite_id)
        if fid is None:
            return None
        stmt = select(FavoriteSearch).where(
            and_(FavoriteSearch.id == fid, FavoriteSearch.user_id == user_id)
        )
        return self.session.execute(stmt).unique().scalar_one_or_none()

    def get_by_query(self, user_id: str, query_id: IdLike) -> Optional[FavoriteSearch]:
        qid = to_uuid(query_id)
        if qid is None:
            return None
        stmt = select(FavoriteSearch).where(
            and_(FavoriteSearch.user_id == user_id, FavoriteSearch.search_query_id == qid)
        )
        return self.session.execute(stmt).unique().scalar_one_or_none()

    def add(self, user_id: str, query_id: IdLike, label: Optional[str] = None) -> Tuple[FavoriteSearch, bool]:
        """
        Favorite a query. An existing favorite for the pair is returned untouched.

        Returns:
            Tuple of (favorite, created)
        """
        existing = self.get_by_query(user_id, query_id)
        if existing is not None:
            return existing, False

        favorite = FavoriteSearch(user_id=user_id, search_query_id=to_uuid(query_id), label=label)
        try:
            self.session.add(favorite)
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateEntityError(f"Query {query_id} is already a favorite: {e}")
        return favorite, True

    def update_label(self, favorite_id: IdLike, user_id: str, label: Optional[str]) -> FavoriteSearch:
        """
        Raises:
            EntityNotFoundError: If the favorite does not exist for the user
        """
        favorite = self.get(favorite_id, user_id)
        if favorite is None:
            raise EntityNotFoundError(f"Favorite not found: {favorite_id}")
        favorite.label = label
        self.session.flush()
        return favorite

    def delete(self, favorite_id: IdLike, user_id: str) -> bool:
        fid = to_uuid(favorite_id)
        if fid is None:
            return False
        result = self.session.execute(
            delete(FavoriteSearch).where(and_(FavoriteSearch.id == fid, FavoriteSearch.user_id == user_id))
        )
        return result.rowcount > 0

    def list_for_user(self, user_id: str) -> List[FavoriteSearch]:
        """Newest first"""
        stmt = select(FavoriteSearch).where(
            FavoriteSearch.user_id == user_id
        ).order_by(FavoriteSearch.favorited_at.desc())
        return list(self.session.execute(stmt).unique().scalars().all())


# ============================================
# SUBMISSIONS
# ============================================

class SubmissionRepository:
    """Repository for crowdsourced person-info submissions."""

    def __init__(self, session: Session):
        self.session = session

    def create(
        self,
        user_id: str,
        first_name: str,
        last_name: str,
        age: Optional[int] = None,
        person_profile_id: Optional[IdLike] = None,
        children: Optional[Mapping[str, Sequence[Mapping[str, Any]]]] = None
    ) -> PersonInfoSubmission:
        """
        Create a pending submission with its child rows in one flush.

        Args:
            children: collection name (see SUBMISSION_CHILD_MODELS) -> row dicts
        """
        submission = PersonInfoSubmission(
            user_id=user_id,
            person_profile_id=to_uuid(person_profile_id),
            first_name=first_name,
            last_name=last_name,
            age=age,
            status=SubmissionStatus.PENDING.value
        )
        for name, rows in (children or {}).items():
            model = SUBMISSION_CHILD_MODELS.get(name)
            if model is None:
                raise RepositoryError(f"Unknown submission collection: {name}")
            getattr(submission, name).extend(model(**_column_values(model, row)) for row in rows)

        self.session.add(submission)
        self.session.flush()
        return submission

    def get(self, submission_id: IdLike) -> Optional[PersonInfoSubmission]:
        sid = to_uuid(submission_id)
        return self.session.get(PersonInfoSubmission, sid) if sid else None

    def list_approved(
        self,
        person_profile_id: Optional[IdLike] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None
    ) -> List[PersonInfoSubmission]:
        """Approved submissions for a profile id, else for an exact name."""
        stmt = select(PersonInfoSubmission).where(
            PersonInfoSubmission.status == SubmissionStatus.APPROVED.value
        )
        if person_profile_id:
            pid = to_uuid(person_profile_id)
            if pid is None:
                return []
            stmt = stmt.where(PersonInfoSubmission.person_profile_id == pid)
        elif first_name and last_name:
            stmt = stmt.where(and_(
                PersonInfoSubmission.first_name == first_name,
                PersonInfoSubmission.last_name == last_name
            ))
        stmt = stmt.order_by(PersonInfoSubmission.created_at.desc())
        return list(self.session.execute(stmt).scalars().all())

    def list_pending(self, limit: int = 50) -> List[PersonInfoSubmission]:
        """Newest first"""
        stmt = select(PersonInfoSubmission).where(
            PersonInfoSubmission.status == SubmissionStatus.PENDING.value
        ).order_by(PersonInfoSubmission.created_at.desc()).limit(limit)
        return list(self.session.execute(stmt).scalars().all())
