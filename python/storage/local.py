"""
Local Store (guest mode)

All guest state lives in one JSON document on this device:

    {profile, searchHistory, favorites, searchQueries, searchResults, personProfiles}

Every mutating call reads the document, changes it and writes the whole
document back, replacing it atomically. There is no locking: two processes
sharing a medium follow last-writer-wins. The medium is capacity-bounded
like browser localStorage and raises StorageFullError when a write would
exceed its quota.
"""

import copy
import errno
import json
import logging
import os
import re
import tempfile
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from errors import NotFoundError, StorageError, StorageFullError
from providers.client import Category
from search.records import CanonicalRecord, RECORD_KEYS
from storage.base import StorageBackend, DEFAULT_HISTORY_LIMIT, check_profile_patch
from storage.entities import (
    FavoriteEntry,
    PersonProfile,
    SearchHistoryEntry,
    SearchOutcome,
    SearchQuery,
    SearchResult,
    UserProfile,
    iso,
    new_local_id,
    parse_dt,
    utcnow,
)

logger = logging.getLogger(__name__)

DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024
GUEST_EMAIL = "guest@persona.local"

DOCUMENT_LISTS = ('searchHistory', 'favorites', 'searchQueries', 'searchResults', 'personProfiles')


# ============================================
# MEDIA
# ============================================

class LocalMedium(ABC):
    """A small quota-bounded key/value string store"""

    def __init__(self, quota_bytes: int = DEFAULT_QUOTA_BYTES):
        self.quota_bytes = quota_bytes

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def _write(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...

    @abstractmethod
    def used_bytes(self, exclude: Optional[str] = None) -> int:
        ...

    def set(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value as a whole.

        Raises:
            StorageFullError: the write would exceed the quota
        """
        needed = self.used_bytes(exclude=key) + len(value.encode('utf-8'))
        if needed > self.quota_bytes:
            raise StorageFullError(
                f"Local storage is full ({needed} of {self.quota_bytes} bytes needed)"
            )
        self._write(key, value)


class MemoryMedium(LocalMedium):
    """In-process medium, used by tests and short-lived sessions"""

    def __init__(self, quota_bytes: int = DEFAULT_QUOTA_BYTES):
        super().__init__(quota_bytes)
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def _write(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def used_bytes(self, exclude: Optional[str] = None) -> int:
        return sum(len(v.encode('utf-8')) for k, v in self._data.items() if k != exclude)

    def keys(self) -> List[str]:
        return list(self._data)


class FileMedium(LocalMedium):
    """One file per key under a device-local directory"""

    _KEY_RE = re.compile(r'[^A-Za-z0-9_.-]')

    def __init__(self, directory: str, quota_bytes: int = DEFAULT_QUOTA_BYTES):
        super().__init__(quota_bytes)
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{self._KEY_RE.sub('_', key)}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding='utf-8')
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Could not read local storage key {key}: {e}")

    def _write(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix='.tmp-', suffix='.json')
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as f:
                    f.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            if e.errno in (errno.ENOSPC, errno.EDQUOT):
                raise StorageFullError(f"Device storage is full: {e}")
            raise StorageError(f"Could not write local storage key {key}: {e}")

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Could not remove local storage key {key}: {e}")

    def used_bytes(self, exclude: Optional[str] = None) -> int:
        if not self.directory.exists():
            return 0
        skip = self._path(exclude).name if exclude else None
        return sum(
            p.stat().st_size for p in self.directory.glob('*.json')
            if p.name != skip and not p.name.startswith('.tmp-')
        )


# ============================================
# LOCAL STORE
# ============================================

def new_document() -> Dict[str, Any]:
    """Fresh guest document with the synthetic guest profile"""
    profile = UserProfile(
        id=f"guest_{int(time.time() * 1000)}",
        email=GUEST_EMAIL,
        first_name="Guest",
        last_name="User",
    ).to_dict()
    profile.pop('updated_at')
    doc: Dict[str, Any] = {'profile': profile}
    for key in DOCUMENT_LISTS:
        doc[key] = []
    return doc


def _join(item: Dict[str, Any], doc: Dict[str, Any]) -> Dict[str, Any]:
    query_id = item['search_query_id']
    query = next((q for q in doc['searchQueries'] if q['id'] == query_id), None)
    result = next((r for r in doc['searchResults'] if r['search_query_id'] == query_id), None)
    return dict(item, search_query=query, search_result=result)


def _newest_first(items: List[Dict[str, Any]], key: str) -> List[Dict[str, Any]]:
    # Equal timestamps keep append order, later entries first
    ordered = sorted(
        enumerate(items),
        key=lambda pair: (parse_dt(pair[1].get(key)) or utcnow(), pair[0]),
        reverse=True
    )
    return [item for _, item in ordered]


class LocalStore(StorageBackend):
    """StorageBackend over a single JSON document in a LocalMedium"""

    def __init__(self, medium: LocalMedium, storage_key: str = "persona_guest_data"):
        self.medium = medium
        self.storage_key = storage_key
        self._blank: Optional[Dict[str, Any]] = None

    # Document I/O

    def exists(self) -> bool:
        return self.medium.get(self.storage_key) is not None

    def _load(self) -> Dict[str, Any]:
        text = self.medium.get(self.storage_key)
        if text is None:
            # Reads see an empty document; only writes create it
            if self._blank is None:
                self._blank = new_document()
            return copy.deepcopy(self._blank)
        self._blank = None
        try:
            doc = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error("Guest document %s is corrupt: %s", self.storage_key, e)
            raise StorageError(f"Local storage document is corrupt: {e}")
        if not isinstance(doc, dict) or not isinstance(doc.get('profile'), dict):
            raise StorageError("Local storage document has an unexpected shape")
        for key in DOCUMENT_LISTS:
            doc.setdefault(key, [])
        return doc

    def _save(self, doc: Dict[str, Any]) -> None:
        try:
            self.medium.set(self.storage_key, json.dumps(doc, separators=(',', ':'), default=str))
        except StorageFullError:
            logger.error("Guest document %s exceeds local storage quota", self.storage_key)
            raise

    def initialize(self) -> UserProfile:
        """Create the document if it does not exist yet"""
        doc = self._load()
        if not self.exists():
            self._save(doc)
        return UserProfile.from_dict(doc['profile'])

    def clear(self) -> None:
        self.medium.remove(self.storage_key)
        self._blank = None

    @property
    def owner_id(self) -> str:
        return self._load()['profile']['id']

    # Search pipeline writes

    def save_query(self, first_name, last_name, age=None, location=None) -> SearchQuery:
        doc = self._load()
        query = SearchQuery(
            id=new_local_id('query'),
            owner_id=doc['profile']['id'],
            first_name=first_name,
            last_name=last_name,
            age=age,
            location=location,
        )
        doc['searchQueries'].append(query.to_dict())
        self._save(doc)
        return query

    def upsert_profile(self, first_name: str, last_name: str, patch: Mapping[str, Any]) -> PersonProfile:
        # Guest searches never merge: every search gets its own profile
        doc = self._load()
        profile = PersonProfile(
            id=new_local_id('profile'),
            first_name=first_name,
            last_name=last_name,
            age=patch.get('age'),
            metadata=dict(patch.get('metadata') or {}),
        )
        doc['personProfiles'].append(profile.to_dict())
        self._save(doc)
        return profile

    def append_category_records(
        self,
        profile_id: str,
        category: Category,
        records: Sequence[CanonicalRecord]
    ) -> List[Dict[str, Any]]:
        key = RECORD_KEYS[Category(category)]
        doc = self._load()
        profile = next((p for p in doc['personProfiles'] if p['id'] == profile_id), None)
        if profile is None:
            raise NotFoundError(f"Person profile not found: {profile_id}")
        rows = [
            dict(record.to_dict(), id=new_local_id('record'), person_profile_id=profile_id)
            for record in records
        ]
        profile.setdefault(key, []).extend(rows)
        self._save(doc)
        return rows

    def save_result(self, query_id: str, profile_id: str, score: int) -> SearchResult:
        doc = self._load()
        result = SearchResult(
            id=new_local_id('result'),
            search_query_id=query_id,
            person_profile_id=profile_id,
            confidence_score=score,
        )
        doc['searchResults'].append(result.to_dict())
        self._save(doc)
        return result

    def append_history(self, owner_id: str, query_id: str) -> SearchHistoryEntry:
        doc = self._load()
        entry = SearchHistoryEntry(id=new_local_id('history'), owner_id=owner_id, search_query_id=query_id)
        doc['searchHistory'].append(entry.to_dict())
        self._save(doc)
        return entry

    # History

    def get_history(self, owner_id: str, limit: int = DEFAULT_HISTORY_LIMIT) -> List[Dict[str, Any]]:
        doc = self._load()
        entries = [h for h in doc['searchHistory'] if h.get('user_id') == owner_id]
        return [_join(h, doc) for h in _newest_first(entries, 'searched_at')[:limit]]

    def delete_history_entry(self, owner_id: str, history_id: str) -> bool:
        doc = self._load()
        before = len(doc['searchHistory'])
        doc['searchHistory'] = [
            h for h in doc['searchHistory']
            if not (h['id'] == history_id and h.get('user_id') == owner_id)
        ]
        if len(doc['searchHistory']) == before:
            return False
        self._save(doc)
        return True

    def delete_all_history(self, owner_id: str) -> int:
        doc = self._load()
        kept = [h for h in doc['searchHistory'] if h.get('user_id') != owner_id]
        removed = len(doc['searchHistory']) - len(kept)
        if removed:
            doc['searchHistory'] = kept
            self._save(doc)
        return removed

    # Favorites

    def get_favorites(self, owner_id: str) -> List[Dict[str, Any]]:
        doc = self._load()
        favorites = [f for f in doc['favorites'] if f.get('user_id') == owner_id]
        return [_join(f, doc) for f in _newest_first(favorites, 'favorited_at')]

    def add_favorite(self, owner_id: str, query_id: str, label: Optional[str] = None) -> FavoriteEntry:
        doc = self._load()
        existing = next(
            (f for f in doc['favorites'] if f['search_query_id'] == query_id and f.get('user_id') == owner_id),
            None
        )
        if existing is not None:
            return FavoriteEntry.from_dict(existing)
        if not any(q['id'] == query_id for q in doc['searchQueries']):
            raise NotFoundError(f"Search query not found: {query_id}")

        favorite = FavoriteEntry(id=new_local_id('favorite'), owner_id=owner_id, search_query_id=query_id, label=label)
        doc['favorites'].append(favorite.to_dict())
        self._save(doc)
        return favorite

    def remove_favorite(self, owner_id: str, favorite_id: str) -> bool:
        doc = self._load()
        kept = [f for f in doc['favorites'] if not (f['id'] == favorite_id and f.get('user_id') == owner_id)]
        if len(kept) == len(doc['favorites']):
            return False
        doc['favorites'] = kept
        self._save(doc)
        return True

    def update_favorite_label(self, owner_id: str, favorite_id: str, label: Optional[str]) -> FavoriteEntry:
        doc = self._load()
        favorite = next(
            (f for f in doc['favorites'] if f['id'] == favorite_id and f.get('user_id') == owner_id),
            None
        )
        if favorite is None:
            raise NotFoundError(f"Favorite not found: {favorite_id}")
        favorite['label'] = label
        self._save(doc)
        return FavoriteEntry.from_dict(favorite)

    def is_favorited(self, owner_id: str, query_id: str) -> bool:
        doc = self._load()
        return any(f['search_query_id'] == query_id and f.get('user_id') == owner_id for f in doc['favorites'])

    # Queries and results

    def delete_query(self, owner_id: str, query_id: str) -> None:
        doc = self._load()
        if not any(q['id'] == query_id and q.get('user_id') == owner_id for q in doc['searchQueries']):
            raise NotFoundError(f"Search query not found: {query_id}")
        doc['searchQueries'] = [q for q in doc['searchQueries'] if q['id'] != query_id]
        doc['searchResults'] = [r for r in doc['searchResults'] if r['search_query_id'] != query_id]
        doc['searchHistory'] = [h for h in doc['searchHistory'] if h['search_query_id'] != query_id]
        doc['favorites'] = [f for f in doc['favorites'] if f['search_query_id'] != query_id]
        self._save(doc)

    def get_result_by_query_id(self, owner_id: str, query_id: str) -> SearchOutcome:
        doc = self._load()
        query = next((q for q in doc['searchQueries'] if q['id'] == query_id and q.get('user_id') == owner_id), None)
        result = next((r for r in doc['searchResults'] if r['search_query_id'] == query_id), None)
        if query is None or result is None:
            raise NotFoundError(f"No search result for query: {query_id}")
        profile = next((p for p in doc['personProfiles'] if p['id'] == result['person_profile_id']), None)
        if profile is None:
            raise NotFoundError(f"Person profile not found: {result['person_profile_id']}")
        search_result = SearchResult.from_dict(result)
        return SearchOutcome(
            search_query=SearchQuery.from_dict(query),
            search_result=search_result,
            person_profile=PersonProfile.from_dict(profile),
            confidence_score=search_result.confidence_score,
        )

    # Account

    def get_profile(self, owner_id: str) -> UserProfile:
        return UserProfile.from_dict(self._load()['profile'])

    def update_profile(self, owner_id: str, patch: Mapping[str, Any]) -> UserProfile:
        updates = check_profile_patch(patch)
        doc = self._load()
        doc['profile'].update(updates)
        doc['profile']['updated_at'] = iso(utcnow())
        self._save(doc)
        return UserProfile.from_dict(doc['profile'])

    def delete_account(self, owner_id: str) -> None:
        self.clear()
        logger.info("Guest document %s deleted", self.storage_key)


# ============================================
# GUEST SESSION
# ============================================

class GuestSession:
    """Guest-mode flag and document lifecycle on one medium.

    The flag is read from the medium on every call so a switch made by
    another part of the application is seen immediately.
    """

    def __init__(
        self,
        medium: LocalMedium,
        storage_key: str = "persona_guest_data",
        flag_key: str = "persona_guest_user"
    ):
        self.medium = medium
        self.storage_key = storage_key
        self.flag_key = flag_key

    def is_guest_mode(self) -> bool:
        return self.medium.get(self.flag_key) == "true"

    def store(self) -> LocalStore:
        return LocalStore(self.medium, self.storage_key)

    def enable(self) -> UserProfile:
        """Turn guest mode on and make sure the guest document exists"""
        self.medium.set(self.flag_key, "true")
        profile = self.store().initialize()
        logger.info("Guest mode enabled")
        return profile

    def disable(self) -> None:
        """Turn guest mode off and delete every trace of guest data"""
        self.medium.remove(self.flag_key)
        self.medium.remove(self.storage_key)
        logger.info("Guest mode disabled, local data cleared")
