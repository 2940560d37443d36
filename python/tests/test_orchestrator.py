"""
Tests for the search orchestrator: provider fan-out, failure containment,
scoring and persistence in both storage modes.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import ALL_CATEGORIES, StubProviderClient, john_doe_payloads
from errors import AuthRequiredError, StorageError, StorageFullError, ValidationError
from providers.client import Category
from search.orchestrator import SearchInput, SearchOrchestrator
from storage.local import LocalStore
from storage.mode import GuestMode, ModeResolver, RemoteMode


class FlakyLocalStore(LocalStore):
    """LocalStore whose category appends fail with a chosen error"""

    def __init__(self, medium, failing: Category, error: Exception):
        super().__init__(medium)
        self.failing = failing
        self.error = error

    def append_category_records(self, profile_id, category, records):
        if category == self.failing:
            raise self.error
        return super().append_category_records(profile_id, category, records)


@pytest.fixture
def resolver(guest_session, db_provider):
    return ModeResolver(guest_session, db_provider)


def orchestrator_for(provider, resolver):
    return SearchOrchestrator(provider, resolver.backend_for)


def john_doe():
    return SearchInput("John", "Doe", 35, "New York, NY")


# ============================================
# FAN-OUT & SCORING
# ============================================

class TestFanOut:

    @pytest.mark.asyncio
    async def test_every_category_is_requested(self, resolver, identity):
        provider = StubProviderClient(john_doe_payloads())
        await orchestrator_for(provider, resolver).search_person(john_doe(), RemoteMode(identity))
        assert sorted(c.value for c in provider.calls) == sorted(c.value for c in ALL_CATEGORIES)

    @pytest.mark.asyncio
    async def test_all_categories_fail(self, resolver, identity):
        provider = StubProviderClient(failures=ALL_CATEGORIES)
        orchestrator = orchestrator_for(provider, resolver)
        outcome = await orchestrator.search_person(john_doe(), RemoteMode(identity))

        assert outcome.confidence_score == 0
        assert all(records == [] for records in outcome.person_profile.records.values())

        backend = resolver.backend(identity)
        history = backend.get_history(identity.id)
        assert len(history) == 1
        assert history[0]['search_query_id'] == outcome.search_query.id
        assert history[0]['search_result']['confidence_score'] == 0

    @pytest.mark.asyncio
    async def test_person_and_two_addresses(self, resolver, identity):
        provider = StubProviderClient({
            Category.PERSON: {'firstName': 'John', 'lastName': 'Doe'},
            Category.ADDRESS: [{'city': 'Austin'}, {'city': 'Dallas'}],
        })
        outcome = await orchestrator_for(provider, resolver).search_person(john_doe(), RemoteMode(identity))
        assert outcome.confidence_score == 35
        assert len(outcome.person_profile.records['addresses']) == 2

    @pytest.mark.asyncio
    async def test_one_failed_category_is_contained(self, resolver, identity):
        provider = StubProviderClient(john_doe_payloads(), failures=[Category.PERSON])
        outcome = await orchestrator_for(provider, resolver).search_person(john_doe(), RemoteMode(identity))
        # address 5 + social 3 + relative 2
        assert outcome.confidence_score == 10
        assert len(outcome.person_profile.records['addresses']) == 1

    @pytest.mark.asyncio
    async def test_unparseable_payload_is_a_category_failure(self, resolver, identity):
        payloads = john_doe_payloads()
        payloads[Category.SOCIAL] = "<html>rate limited</html>"
        outcome = await orchestrator_for(StubProviderClient(payloads), resolver).search_person(
            john_doe(), RemoteMode(identity)
        )
        assert outcome.confidence_score == 32
        assert outcome.person_profile.records['social_media'] == []


# ============================================
# JOHN DOE IN BOTH MODES
# ============================================

class TestBothModes:

    async def _run(self, mode, resolver):
        provider = StubProviderClient(john_doe_payloads())
        return await orchestrator_for(provider, resolver).search_person(john_doe(), mode)

    def _check(self, outcome):
        records = outcome.person_profile.records
        assert outcome.confidence_score == 35
        assert len(records['addresses']) == 1
        assert records['addresses'][0]['zip_code'] == '10001'
        assert records['addresses'][0]['is_current'] is True
        assert len(records['social_media']) == 1
        assert records['social_media'][0]['platform'] == 'LinkedIn'
        assert len(records['relatives']) == 1
        assert records['relatives'][0]['relationship'] == 'spouse'
        assert records['phone_numbers'] == []
        assert records['criminal_records'] == []
        assert records['property_records'] == []
        assert outcome.person_profile.age == 35
        assert outcome.person_profile.metadata['phones'] == ['212-555-0100']
        assert outcome.search_query.location == "New York, NY"

    @pytest.mark.asyncio
    async def test_remote(self, resolver, identity):
        outcome = await self._run(RemoteMode(identity), resolver)
        self._check(outcome)
        stored = resolver.backend(identity).get_result_by_query_id(identity.id, outcome.search_query.id)
        assert stored.confidence_score == 35
        assert len(stored.person_profile.records['social_media']) == 1

    @pytest.mark.asyncio
    async def test_guest(self, resolver, guest_session):
        guest_session.enable()
        mode = resolver.resolve()
        outcome = await self._run(mode, resolver)
        self._check(outcome)
        assert outcome.search_query.id.startswith("query_")
        stored = mode.store.get_result_by_query_id(mode.store.owner_id, outcome.search_query.id)
        assert stored.confidence_score == 35
        assert len(mode.store.get_history(mode.store.owner_id)) == 1

    @pytest.mark.asyncio
    async def test_outcome_serializes(self, resolver, identity):
        outcome = await self._run(RemoteMode(identity), resolver)
        data = outcome.to_dict()
        assert data['confidence_score'] == 35
        assert data['search_result']['search_query_id'] == data['search_query']['id']
        assert data['property_records'] == []


# ============================================
# ERRORS
# ============================================

class TestErrors:

    @pytest.mark.asyncio
    @pytest.mark.parametrize("first,last,age", [
        ("", "Doe", None),
        ("John", "   ", None),
        ("John", "Doe", -1),
    ])
    async def test_invalid_input_is_rejected_before_fetching(self, resolver, identity, first, last, age):
        provider = StubProviderClient(john_doe_payloads())
        with pytest.raises(ValidationError):
            await orchestrator_for(provider, resolver).search_person(SearchInput(first, last, age), RemoteMode(identity))
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_names_are_trimmed(self, resolver, identity):
        provider = StubProviderClient(john_doe_payloads())
        outcome = await orchestrator_for(provider, resolver).search_person(
            SearchInput("  John ", " Doe", None, "  "), RemoteMode(identity)
        )
        assert (outcome.search_query.first_name, outcome.search_query.last_name) == ("John", "Doe")
        assert outcome.search_query.location is None

    @pytest.mark.asyncio
    async def test_remote_needs_identity(self, resolver):
        provider = StubProviderClient(john_doe_payloads())
        with pytest.raises(AuthRequiredError):
            await orchestrator_for(provider, resolver).search_person(john_doe(), RemoteMode(None))

    @pytest.mark.asyncio
    async def test_category_storage_error_is_contained(self, medium):
        store = FlakyLocalStore(medium, Category.SOCIAL, StorageError("disk hiccup"))
        provider = StubProviderClient(john_doe_payloads())
        outcome = await SearchOrchestrator(provider, lambda mode: store).search_person(
            john_doe(), GuestMode(store)
        )
        assert outcome.confidence_score == 35
        assert outcome.person_profile.records['social_media'][0]['platform'] == 'LinkedIn'
        assert len(store.get_history(store.owner_id)) == 1

    @pytest.mark.asyncio
    async def test_storage_full_propagates(self, medium):
        store = FlakyLocalStore(medium, Category.ADDRESS, StorageFullError())
        provider = StubProviderClient(john_doe_payloads())
        with pytest.raises(StorageFullError):
            await SearchOrchestrator(provider, lambda mode: store).search_person(john_doe(), GuestMode(store))
