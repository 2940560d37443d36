"""
SQLAlchemy ORM Models for the Persona Remote Store

Tables:
1. profiles - Account profile of a signed-in user (id from the identity provider)
2. search_queries - One row per search a user runs; immutable
3. person_profiles - Aggregated person data, upserted by exact first+last name
4. search_results - One result per query, linking query -> person profile
5. addresses / phone_numbers / social_media / criminal_records / relatives /
   property_records - Category records, append-only, owned by a person profile
6. search_history - One row per search execution
7. favorite_searches - Saved queries, unique per (user, query)
8. person_info_submissions (+ child tables) - Crowdsourced person data awaiting review

Foreign keys cascade on delete, so removing a query removes its result,
history and favorites, and removing a profile removes its category records.
Column types are portable: PostgreSQL in production, SQLite in tests.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum as PyEnum
from typing import List, Optional

from sqlalchemy import (
    String, Integer, Float, Boolean, DateTime, Text, JSON, Uuid,
    ForeignKey, Index, CheckConstraint, UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship, declarative_base, Mapped, mapped_column

# Base class for all models
Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere
JsonType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


# ============================================
# ENUMS
# ============================================

class SubmissionStatus(str, PyEnum):
    """Review state of a person-info submission"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


# ============================================
# MIXIN CLASSES
# ============================================

class TimestampMixin:
    """Mixin for created_at and updated_at timestamps"""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        onupdate=utcnow
    )


def _uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(Uuid, primary_key=True, default=new_uuid)


# ============================================
# USERS
# ============================================

class UserProfile(Base, TimestampMixin):
    """
    Account profile of a signed-in user.

    The id is the identity provider's user id. Deleting the profile deletes
    the user's queries, history and favorites through the cascades.
    """
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    queries: Mapped[List["SearchQuery"]] = relationship(
        "SearchQuery",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<UserProfile(id={self.id})>"


# ============================================
# SEARCH
# ============================================

class SearchQuery(Base):
    """A search as the user typed it. Never mutated."""
    __tablename__ = "search_queries"

    id: Mapped[uuid.UUID] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    first_name: Mapped[str] = mapped_column(String(200), nullable=False)
    last_name: Mapped[str] = mapped_column(String(200), nullable=False)
    age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    location: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    user: Mapped["UserProfile"] = relationship("UserProfile", back_populates="queries")
    result: Mapped[Optional["SearchResult"]] = relationship(
        "SearchResult",
        back_populates="query",
        uselist=False,
        passive_deletes=True
    )

    __table_args__ = (
        Index('ix_search_queries_user_created', 'user_id', 'created_at'),
    )

    def __repr__(self) -> str:
        return f"<SearchQuery(id={self.id}, user_id={self.user_id})>"


class PersonProfile(Base):
    """
    Aggregated data about one person.

    Remote-mode searches upsert this by exact (first_name, last_name), so
    repeated searches for the same name accumulate category records here.
    """
    __tablename__ = "person_profiles"

    id: Mapped[uuid.UUID] = _uuid_pk()
    first_name: Mapped[str] = mapped_column(String(200), nullable=False)
    last_name: Mapped[str] = mapped_column(String(200), nullable=False)
    age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False
    )
    # Provider enrichment not modeled as categories (aliases, emails, propertyRecords, ...)
    metadata_: Mapped[dict] = mapped_column("metadata", JsonType, default=dict, nullable=False)

    addresses: Mapped[List["Address"]] = relationship(
        "Address", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )
    phone_numbers: Mapped[List["PhoneNumber"]] = relationship(
        "PhoneNumber", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )
    social_media: Mapped[List["SocialMedia"]] = relationship(
        "SocialMedia", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )
    criminal_records: Mapped[List["CriminalRecord"]] = relationship(
        "CriminalRecord", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )
    relatives: Mapped[List["Relative"]] = relationship(
        "Relative", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )
    property_records: Mapped[List["PropertyRecord"]] = relationship(
        "PropertyRecord", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )

    __table_args__ = (
        Index('ix_person_profiles_name', 'first_name', 'last_name'),
    )

    def __repr__(self) -> str:
        return f"<PersonProfile(id={self.id})>"


class SearchResult(Base):
    """Outcome of one query. Immutable after creation."""
    __tablename__ = "search_results"

    id: Mapped[uuid.UUID] = _uuid_pk()
    search_query_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("search_queries.id", ondelete="CASCADE"),
        nullable=False,
        unique=True
    )
    person_profile_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("person_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    confidence_score: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    query: Mapped["SearchQuery"] = relationship("SearchQuery", back_populates="result")
    person_profile: Mapped["PersonProfile"] = relationship("PersonProfile", lazy="joined")

    __table_args__ = (
        CheckConstraint('confidence_score >= 0 AND confidence_score <= 100', name='ck_result_score_range'),
    )

    def __repr__(self) -> str:
        return f"<SearchResult(id={self.id}, score={self.confidence_score})>"


# ============================================
# CATEGORY RECORDS
# ============================================

class CategoryRecordMixin:
    """Columns shared by every category record table"""
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    raw: Mapped[Optional[dict]] = mapped_column(JsonType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


def _profile_fk() -> Mapped[uuid.UUID]:
    return mapped_column(
        Uuid,
        ForeignKey("person_profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )


class Address(Base, CategoryRecordMixin):
    __tablename__ = "addresses"

    person_profile_id: Mapped[uuid.UUID] = _profile_fk()
    street: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    zip_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    country: Mapped[str] = mapped_column(String(100), default="USA", nullable=False)
    is_current: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    start_date: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    end_date: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)


class PhoneNumber(Base, CategoryRecordMixin):
    __tablename__ = "phone_numbers"

    person_profile_id: Mapped[uuid.UUID] = _profile_fk()
    number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    type: Mapped[str] = mapped_column(String(50), default="mobile", nullable=False)
    is_current: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_verified: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)


class SocialMedia(Base, CategoryRecordMixin):
    __tablename__ = "social_media"

    person_profile_id: Mapped[uuid.UUID] = _profile_fk()
    platform: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    username: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_active: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)


class CriminalRecord(Base, CategoryRecordMixin):
    __tablename__ = "criminal_records"

    person_profile_id: Mapped[uuid.UUID] = _profile_fk()
    case_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    charge: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(100), default="unknown", nullable=False)
    record_date: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    jurisdiction: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)


class Relative(Base, CategoryRecordMixin):
    __tablename__ = "relatives"

    person_profile_id: Mapped[uuid.UUID] = _profile_fk()
    first_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    relationship: Mapped[str] = mapped_column(String(100), default="unknown", nullable=False)
    age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class PropertyRecord(Base, CategoryRecordMixin):
    __tablename__ = "property_records"

    person_profile_id: Mapped[uuid.UUID] = _profile_fk()
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    zip_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    property_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    assessed_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    purchase_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    purchase_date: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)


# Category key (see search.records.RECORD_KEYS) -> ORM model
CATEGORY_MODELS = {
    "addresses": Address,
    "phone_numbers": PhoneNumber,
    "social_media": SocialMedia,
    "criminal_records": CriminalRecord,
    "relatives": Relative,
    "property_records": PropertyRecord,
}


# ============================================
# HISTORY & FAVORITES
# ============================================

class SearchHistory(Base):
    """One row per search execution"""
    __tablename__ = "search_history"

    id: Mapped[uuid.UUID] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False
    )
    search_query_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("search_queries.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    searched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    query: Mapped["SearchQuery"] = relationship("SearchQuery", lazy="joined")

    __table_args__ = (
        Index('ix_search_history_user_time', 'user_id', 'searched_at'),
    )


class FavoriteSearch(Base):
    """A saved query; at most one per (user, query)"""
    __tablename__ = "favorite_searches"

    id: Mapped[uuid.UUID] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False
    )
    search_query_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("search_queries.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    label: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    favorited_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    query: Mapped["SearchQuery"] = relationship("SearchQuery", lazy="joined")

    __table_args__ = (
        UniqueConstraint('user_id', 'search_query_id', name='uq_favorite_user_query'),
    )


# ============================================
# SUBMISSIONS
# ============================================

class PersonInfoSubmission(Base, TimestampMixin):
    """
    User-submitted person data awaiting reviewer approval.

    Status moves pending -> approved|rejected once; after that only the
    reviewer notes may change.
    """
    __tablename__ = "person_info_submissions"

    id: Mapped[uuid.UUID] = _uuid_pk()
    user_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    person_profile_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("person_profiles.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )
    first_name: Mapped[str] = mapped_column(String(200), nullable=False)
    last_name: Mapped[str] = mapped_column(String(200), nullable=False)
    age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20),
        default=SubmissionStatus.PENDING.value,
        nullable=False,
        index=True
    )
    reviewer_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    verified_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    addresses: Mapped[List["SubmissionAddress"]] = relationship(
        "SubmissionAddress", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )
    phone_numbers: Mapped[List["SubmissionPhoneNumber"]] = relationship(
        "SubmissionPhoneNumber", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )
    social_media: Mapped[List["SubmissionSocialMedia"]] = relationship(
        "SubmissionSocialMedia", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )
    criminal_records: Mapped[List["SubmissionCriminalRecord"]] = relationship(
        "SubmissionCriminalRecord", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )
    relatives: Mapped[List["SubmissionRelative"]] = relationship(
        "SubmissionRelative", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )
    past_names: Mapped[List["SubmissionPastName"]] = relationship(
        "SubmissionPastName", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )
    proofs: Mapped[List["SubmissionProof"]] = relationship(
        "SubmissionProof", cascade="all, delete-orphan", passive_deletes=True, lazy="selectin"
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name='ck_submission_status'
        ),
        Index('ix_submission_name', 'first_name', 'last_name'),
        Index('ix_submission_status_created', 'status', 'created_at'),
    )

    def __repr__(self) -> str:
        return f"<PersonInfoSubmission(id={self.id}, status={self.status})>"


def _submission_fk() -> Mapped[uuid.UUID]:
    return mapped_column(
        Uuid,
        ForeignKey("person_info_submissions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )


class SubmissionAddress(Base):
    __tablename__ = "person_info_addresses"

    id: Mapped[uuid.UUID] = _uuid_pk()
    submission_id: Mapped[uuid.UUID] = _submission_fk()
    street: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    zip_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    country: Mapped[str] = mapped_column(String(100), default="USA", nullable=False)
    is_current: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    start_date: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    end_date: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)


class SubmissionPhoneNumber(Base):
    __tablename__ = "person_info_phone_numbers"

    id: Mapped[uuid.UUID] = _uuid_pk()
    submission_id: Mapped[uuid.UUID] = _submission_fk()
    number: Mapped[str] = mapped_column(String(50), nullable=False)
    type: Mapped[str] = mapped_column(String(50), default="mobile", nullable=False)
    is_current: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_verified: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)


class SubmissionSocialMedia(Base):
    __tablename__ = "person_info_social_media"

    id: Mapped[uuid.UUID] = _uuid_pk()
    submission_id: Mapped[uuid.UUID] = _submission_fk()
    platform: Mapped[str] = mapped_column(String(100), nullable=False)
    username: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class SubmissionCriminalRecord(Base):
    __tablename__ = "person_info_criminal_records"

    id: Mapped[uuid.UUID] = _uuid_pk()
    submission_id: Mapped[uuid.UUID] = _submission_fk()
    case_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    charge: Mapped[str] = mapped_column(Text, default="", nullable=False)
    status: Mapped[str] = mapped_column(String(100), default="unknown", nullable=False)
    record_date: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    jurisdiction: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)


class SubmissionRelative(Base):
    __tablename__ = "person_info_relatives"

    id: Mapped[uuid.UUID] = _uuid_pk()
    submission_id: Mapped[uuid.UUID] = _submission_fk()
    first_name: Mapped[str] = mapped_column(String(200), default="", nullable=False)
    last_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    relationship: Mapped[str] = mapped_column(String(100), default="unknown", nullable=False)
    age: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class SubmissionPastName(Base):
    __tablename__ = "person_info_past_names"

    id: Mapped[uuid.UUID] = _uuid_pk()
    submission_id: Mapped[uuid.UUID] = _submission_fk()
    name: Mapped[str] = mapped_column(String(400), nullable=False)


class SubmissionProof(Base):
    """Reference to an uploaded proof document; the file itself lives in object storage"""
    __tablename__ = "person_info_proofs"

    id: Mapped[uuid.UUID] = _uuid_pk()
    submission_id: Mapped[uuid.UUID] = _submission_fk()
    storage_path: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    content_type: Mapped[str] = mapped_column(
        String(200),
        default="application/octet-stream",
        nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


# Submission child collection -> ORM model
SUBMISSION_CHILD_MODELS = {
    "addresses": SubmissionAddress,
    "phone_numbers": SubmissionPhoneNumber,
    "social_media": SubmissionSocialMedia,
    "criminal_records": SubmissionCriminalRecord,
    "relatives": SubmissionRelative,
    "past_names": SubmissionPastName,
    "proofs": SubmissionProof,
}
