"""
Shared fixtures: an in-memory SQLite database, an in-memory local medium
and a stub provider client that answers from canned payloads.
"""

import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from database.connection import create_test_provider
from errors import ProviderError
from providers.client import Category
from storage.entities import Identity
from storage.local import GuestSession, MemoryMedium


class StubProviderClient:
    """Answers fetch_category from a payload table; listed categories fail"""

    def __init__(
        self,
        payloads: Optional[Mapping[Category, Any]] = None,
        failures: Iterable[Category] = ()
    ):
        self.payloads: Dict[Category, Any] = dict(payloads or {})
        self.failures = set(failures)
        self.calls: List[Category] = []

    async def fetch_category(self, category: Category, params: Mapping[str, Any]) -> Any:
        self.calls.append(category)
        if category in self.failures:
            raise ProviderError(f"{category.value} unavailable", category=category.value, status_code=503)
        return self.payloads.get(category, [])


ALL_CATEGORIES = tuple(Category)


def john_doe_payloads() -> Dict[Category, Any]:
    """Person data, one address, one social profile and one relative"""
    return {
        Category.PERSON: {'persons': [{
            'name': {'firstName': 'John', 'lastName': 'Doe'},
            'age': '35',
            'emails': [{'emailAddress': 'john.doe@example.com'}],
        }]},
        Category.ADDRESS: {'addresses': [
            {'street': '1 Main St', 'city': 'New York', 'state': 'NY', 'zipCode': '10001', 'isCurrent': True},
        ]},
        Category.PHONE: [],
        Category.SOCIAL: {'results': [{'network': 'LinkedIn', 'handle': 'jdoe'}]},
        Category.CRIMINAL: [],
        Category.RELATIVES: {'relatives': [{'firstName': 'Jane', 'lastName': 'Doe', 'relation': 'spouse'}]},
        Category.PROPERTY: {'properties': []},
        Category.CONTACT_ENRICHMENT: {'person': {'phones': [{'number': '212-555-0100'}]}},
    }


@pytest.fixture
def db_provider():
    """Fresh in-memory database with all tables"""
    provider = create_test_provider()
    yield provider
    provider.close()


@pytest.fixture
def medium():
    return MemoryMedium()


@pytest.fixture
def guest_session(medium):
    return GuestSession(medium)


@pytest.fixture
def identity():
    return Identity(id="user-123", email="user@example.com")
