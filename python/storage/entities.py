"""
Storage-agnostic entities shared by the Remote Store and the Local Store.

Ids are strings in both modes: UUIDs remotely, prefixed tokens locally
(``query_<hex>``). Timestamps are timezone-aware datetimes in memory and
ISO-8601 strings in dictionaries.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from search.records import empty_record_lists


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_local_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def parse_dt(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace('Z', '+00:00'))


@dataclass(frozen=True)
class Identity:
    """Signed-in user as reported by the identity provider"""
    id: str
    email: Optional[str] = None


@dataclass
class SearchQuery:
    id: str
    owner_id: str
    first_name: str
    last_name: str
    age: Optional[int] = None
    location: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.owner_id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'age': self.age,
            'location': self.location,
            'created_at': iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SearchQuery':
        return cls(
            id=data['id'],
            owner_id=data['user_id'],
            first_name=data['first_name'],
            last_name=data['last_name'],
            age=data.get('age'),
            location=data.get('location'),
            created_at=parse_dt(data.get('created_at')) or utcnow(),
        )


@dataclass
class PersonProfile:
    """Person data plus, when loaded, its category record lists"""
    id: str
    first_name: str
    last_name: str
    age: Optional[int] = None
    last_updated: datetime = field(default_factory=utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)
    records: Dict[str, List[Dict[str, Any]]] = field(default_factory=empty_record_lists)

    def to_dict(self, include_records: bool = True) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'age': self.age,
            'last_updated': iso(self.last_updated),
            'metadata': self.metadata,
        }
        if include_records:
            data.update(self.records)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PersonProfile':
        records = empty_record_lists()
        for key in records:
            records[key] = list(data.get(key) or [])
        return cls(
            id=data['id'],
            first_name=data['first_name'],
            last_name=data['last_name'],
            age=data.get('age'),
            last_updated=parse_dt(data.get('last_updated')) or utcnow(),
            metadata=dict(data.get('metadata') or {}),
            records=records,
        )


@dataclass
class SearchResult:
    id: str
    search_query_id: str
    person_profile_id: str
    confidence_score: int
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'search_query_id': self.search_query_id,
            'person_profile_id': self.person_profile_id,
            'confidence_score': self.confidence_score,
            'created_at': iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SearchResult':
        return cls(
            id=data['id'],
            search_query_id=data['search_query_id'],
            person_profile_id=data['person_profile_id'],
            confidence_score=int(data['confidence_score']),
            created_at=parse_dt(data.get('created_at')) or utcnow(),
        )


@dataclass
class SearchHistoryEntry:
    id: str
    owner_id: str
    search_query_id: str
    searched_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.owner_id,
            'search_query_id': self.search_query_id,
            'searched_at': iso(self.searched_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SearchHistoryEntry':
        return cls(
            id=data['id'],
            owner_id=data['user_id'],
            search_query_id=data['search_query_id'],
            searched_at=parse_dt(data.get('searched_at')) or utcnow(),
        )


@dataclass
class FavoriteEntry:
    id: str
    owner_id: str
    search_query_id: str
    label: Optional[str] = None
    favorited_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.owner_id,
            'search_query_id': self.search_query_id,
            'label': self.label,
            'favorited_at': iso(self.favorited_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FavoriteEntry':
        return cls(
            id=data['id'],
            owner_id=data['user_id'],
            search_query_id=data['search_query_id'],
            label=data.get('label'),
            favorited_at=parse_dt(data.get('favorited_at')) or utcnow(),
        )


@dataclass
class UserProfile:
    id: str
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'created_at': iso(self.created_at),
            'updated_at': iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserProfile':
        return cls(
            id=data['id'],
            email=data.get('email'),
            first_name=data.get('first_name'),
            last_name=data.get('last_name'),
            created_at=parse_dt(data.get('created_at')) or utcnow(),
            updated_at=parse_dt(data.get('updated_at')),
        )


@dataclass
class SearchOutcome:
    """What a search returns, and what a stored result reads back as"""
    search_query: SearchQuery
    search_result: SearchResult
    person_profile: PersonProfile
    confidence_score: int

    @property
    def property_records(self) -> List[Dict[str, Any]]:
        return self.person_profile.records.get('property_records') or list(
            self.person_profile.metadata.get('propertyRecords') or []
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'search_query': self.search_query.to_dict(),
            'search_result': self.search_result.to_dict(),
            'person_profile': self.person_profile.to_dict(),
            'confidence_score': self.confidence_score,
            'property_records': self.property_records,
        }


@dataclass
class Submission:
    id: str
    submitter_id: str
    first_name: str
    last_name: str
    status: str = "pending"
    person_profile_id: Optional[str] = None
    age: Optional[int] = None
    reviewer_notes: Optional[str] = None
    verified_at: Optional[datetime] = None
    verified_by: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    children: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'user_id': self.submitter_id,
            'person_profile_id': self.person_profile_id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'age': self.age,
            'status': self.status,
            'reviewer_notes': self.reviewer_notes,
            'verified_at': iso(self.verified_at),
            'verified_by': self.verified_by,
            'created_at': iso(self.created_at),
        }
        data.update(self.children)
        return data
