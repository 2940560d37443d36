"""
Search Orchestrator

Runs one person search end to end:

1. validate the input and persist the query
2. fetch all eight provider categories concurrently, settling every one
3. normalize each category inside its own slot (a parse failure is a
   category failure), substituting empty data for failed categories
4. merge contact enrichment into the person metadata
5. upsert the person profile and append the category records
6. score, persist the result and the history entry

Category failures are logged and contained. Failures to persist the query,
the profile, the result or the history entry propagate as StorageError.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from errors import StorageError, StorageFullError, ValidationError
from log_utils import mask_name, sanitize_for_logging
from providers.client import Category, ProviderClient
from search.normalizers import merge_enrichment, normalize_category
from search.records import RECORD_KEYS, CanonicalRecord
from search.scoring import presence_map, score
from storage.base import StorageBackend
from storage.entities import SearchOutcome
from storage.mode import Mode

logger = logging.getLogger(__name__)

FETCH_ORDER: Tuple[Category, ...] = (
    Category.PERSON,
    Category.ADDRESS,
    Category.PHONE,
    Category.SOCIAL,
    Category.CRIMINAL,
    Category.RELATIVES,
    Category.PROPERTY,
    Category.CONTACT_ENRICHMENT,
)

SINGLE_CATEGORIES = (Category.PERSON, Category.CONTACT_ENRICHMENT)


@dataclass
class SearchInput:
    """A person search as entered by the user"""
    first_name: str
    last_name: str
    age: Optional[int] = None
    location: Optional[str] = None

    def validated(self) -> 'SearchInput':
        """Trimmed copy of the input.

        Raises:
            ValidationError: first or last name empty after trimming
        """
        first_name = (self.first_name or '').strip()
        last_name = (self.last_name or '').strip()
        if not first_name:
            raise ValidationError("First name is required", field='first_name')
        if not last_name:
            raise ValidationError("Last name is required", field='last_name')
        if self.age is not None and (isinstance(self.age, bool) or not isinstance(self.age, int) or self.age < 0):
            raise ValidationError("Age must be a non-negative whole number", field='age')
        location = (self.location or '').strip() or None
        return SearchInput(first_name, last_name, self.age, location)

    def params(self) -> Dict[str, Any]:
        return {
            'first_name': self.first_name,
            'last_name': self.last_name,
            'age': self.age,
            'location': self.location,
        }


class SearchOrchestrator:
    """Coordinates provider fan-out, normalization, scoring and storage"""

    def __init__(self, provider_client: ProviderClient, backend_for: Callable[[Mode], StorageBackend]):
        self.provider_client = provider_client
        self.backend_for = backend_for

    async def _fetch_normalized(self, category: Category, params: Mapping[str, Any]):
        payload = await self.provider_client.fetch_category(category, params)
        return normalize_category(category, payload)

    async def fetch_all(self, params: Mapping[str, Any]) -> Dict[Category, Any]:
        """Fetch and normalize every category; failed categories come back empty"""
        settled = await asyncio.gather(
            *(self._fetch_normalized(category, params) for category in FETCH_ORDER),
            return_exceptions=True
        )

        data: Dict[Category, Any] = {}
        for category, outcome in zip(FETCH_ORDER, settled):
            if isinstance(outcome, BaseException):
                logger.warning(
                    "Category %s failed: %s: %s",
                    category.value, type(outcome).__name__, sanitize_for_logging(str(outcome), 200)
                )
                outcome = None if category in SINGLE_CATEGORIES else []
            data[category] = outcome
        return data

    def _append_records(
        self,
        backend: StorageBackend,
        profile_id: str,
        category: Category,
        records: List[CanonicalRecord]
    ) -> List[Dict[str, Any]]:
        if not records:
            return []
        try:
            return backend.append_category_records(profile_id, category, records)
        except StorageFullError:
            raise
        except StorageError as e:
            logger.error("Could not store %s records for profile %s: %s", category.value, profile_id, e)
            return [record.to_dict() for record in records]

    async def search_person(self, query: SearchInput, mode: Mode) -> SearchOutcome:
        """
        Run a search and persist its outcome.

        Raises:
            ValidationError: names missing
            AuthRequiredError: remote mode without an identity
            StorageError: the query, profile, result or history could not be stored
        """
        query = query.validated()
        backend = self.backend_for(mode)
        search_query = backend.save_query(query.first_name, query.last_name, query.age, query.location)
        logger.info(
            "Search %s started for %s %s",
            search_query.id, mask_name(query.first_name), mask_name(query.last_name)
        )

        data = await self.fetch_all(query.params())
        person = data[Category.PERSON]
        enrichment = data[Category.CONTACT_ENRICHMENT]
        property_records = data[Category.PROPERTY]

        metadata = merge_enrichment(person, enrichment)
        if property_records:
            metadata['propertyRecords'] = [record.to_dict(include_raw=False) for record in property_records]
        age = query.age if query.age is not None else metadata.get('age')

        profile = backend.upsert_profile(query.first_name, query.last_name, {'age': age, 'metadata': metadata})
        for category, key in RECORD_KEYS.items():
            profile.records[key] = self._append_records(backend, profile.id, category, data[category])

        confidence = score(presence_map(
            person,
            addresses=data[Category.ADDRESS],
            phones=data[Category.PHONE],
            social=data[Category.SOCIAL],
            criminal=data[Category.CRIMINAL],
            property_records=property_records,
            relatives=data[Category.RELATIVES],
        ))

        search_result = backend.save_result(search_query.id, profile.id, confidence)
        backend.append_history(backend.owner_id, search_query.id)

        succeeded = sum(1 for category in FETCH_ORDER if data[category])
        logger.info(
            "Search %s completed with score %d (%d/%d categories returned data)",
            search_query.id, confidence, succeeded, len(FETCH_ORDER)
        )
        return SearchOutcome(
            search_query=search_query,
            search_result=search_result,
            person_profile=profile,
            confidence_score=confidence,
        )
