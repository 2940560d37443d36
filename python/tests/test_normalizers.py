"""
Tests for the field normalizers: key-path resolution, naming tolerance,
defaults, list unwrapping and enrichment merging.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from errors import NormalizationError, ProviderError
from providers.client import Category
from search.normalizers import (
    as_bool,
    as_float,
    as_int,
    as_text,
    first_present,
    merge_enrichment,
    normalize_address,
    normalize_category,
    normalize_criminal,
    normalize_enrichment,
    normalize_person,
    normalize_phone,
    normalize_property,
    normalize_relative,
    resolve_path,
)
from search.records import Address, PhoneNumber


# ============================================
# COERCION
# ============================================

class TestCoercion:

    def test_as_text(self):
        assert as_text("  Austin ") == "Austin"
        assert as_text("   ") is None
        assert as_text(None) is None
        assert as_text(78701) == "78701"
        assert as_text(True) is None

    def test_as_int(self):
        assert as_int("42 years") == 42
        assert as_int(41.9) == 41
        assert as_int("unknown") is None
        assert as_int(False) is None

    def test_as_int_needs_a_whole_number(self):
        assert as_int(" 35 ") == 35
        assert as_int("35.0") == 35
        assert as_int("abc-5") is None
        assert as_int("-5") is None
        assert as_int("born 1980, age 44") is None

    def test_as_float(self):
        assert as_float("$250,000") == 250000.0
        assert as_float(12) == 12.0
        assert as_float("n/a") is None

    def test_as_bool(self):
        assert as_bool("Yes") is True
        assert as_bool("disconnected") is False
        assert as_bool(0) is False
        assert as_bool("maybe") is None


class TestResolvePath:

    def test_folded_key_match(self):
        assert resolve_path({'ZipCode': '10001'}, 'zip_code') == '10001'
        assert resolve_path({'zip-code': '10001'}, 'zip_code') == '10001'

    def test_nested_path_through_list(self):
        payload = {'name': [{'firstName': 'John'}]}
        assert resolve_path(payload, 'name.first_name') == 'John'

    def test_missing_path(self):
        assert first_present({'a': 1}, ['a.b', 'c']) is None
        assert first_present({'a': '', 'c': 'x'}, ['a', 'c']) == 'x'


# ============================================
# RECORD NORMALIZERS
# ============================================

class TestAddress:

    def test_snake_and_camel_case_are_equal(self):
        snake = normalize_address({
            'street': '1 Main St', 'city': 'Austin', 'state': 'TX',
            'zip_code': '78701', 'is_current': True,
        })
        camel = normalize_address({
            'street': '1 Main St', 'city': 'Austin', 'state': 'TX',
            'zipCode': '78701', 'isCurrent': 'yes',
        })
        assert snake == camel
        assert snake.raw != camel.raw

    def test_defaults(self):
        address = normalize_address({})
        assert address == Address()
        assert address.country == "USA"
        assert address.is_current is False

    def test_alternate_keys(self):
        address = normalize_address({'addressLine1': '9 Elm', 'postalCode': '02134', 'lastReportedDate': '2020-01'})
        assert address.street == '9 Elm'
        assert address.zip_code == '02134'
        assert address.end_date == '2020-01'

    def test_uncoercible_value_falls_back_to_default(self):
        assert normalize_address({'isCurrent': 'maybe'}).is_current is False

    def test_raw_is_kept(self):
        payload = {'street': '1 Main St'}
        assert normalize_address(payload).raw == payload


class TestOtherRecords:

    def test_phone_defaults(self):
        phone = normalize_phone({'phoneNumber': '555-0100'})
        assert phone == PhoneNumber(number='555-0100')
        assert phone.type == "mobile"
        assert phone.is_current is True

    def test_criminal_jurisdiction_falls_back_to_state(self):
        record = normalize_criminal({'offense': 'Speeding', 'state': 'TX'})
        assert record.charge == 'Speeding'
        assert record.jurisdiction == 'TX'
        assert record.status == 'unknown'

    def test_relative_nested_name(self):
        relative = normalize_relative({'name': {'firstName': 'Jane', 'lastName': 'Doe'}, 'age': '60'})
        assert (relative.first_name, relative.last_name, relative.age) == ('Jane', 'Doe', 60)
        assert relative.relationship == 'unknown'

    def test_property_values(self):
        record = normalize_property({
            'propertyAddress': {'street': '5 Oak Rd', 'city': 'Dallas'},
            'totalAssessedValue': '$310,500',
            'salePrice': 280000,
        })
        assert record.address == '5 Oak Rd'
        assert record.city == 'Dallas'
        assert record.assessed_value == 310500.0
        assert record.purchase_price == 280000.0


# ============================================
# CATEGORY PAYLOADS
# ============================================

class TestCategoryPayloads:

    @pytest.mark.parametrize("payload", [
        [{'city': 'Austin'}, {'city': 'Dallas'}],
        {'addresses': [{'city': 'Austin'}, {'city': 'Dallas'}]},
        {'results': [{'city': 'Austin'}, {'city': 'Dallas'}]},
        {'addresses': [{'city': 'Austin'}, 'noise', {'city': 'Dallas'}]},
    ])
    def test_list_wrappers(self, payload):
        records = normalize_category(Category.ADDRESS, payload)
        assert [r.city for r in records] == ['Austin', 'Dallas']

    def test_object_without_list_is_empty(self):
        assert normalize_category(Category.PHONE, {'message': 'no matches'}) == []

    @pytest.mark.parametrize("payload", ["not json", 42, None, True])
    def test_scalar_payload_raises(self, payload):
        with pytest.raises(NormalizationError):
            normalize_category(Category.SOCIAL, payload)

    def test_normalization_error_is_a_provider_error(self):
        with pytest.raises(ProviderError):
            normalize_category(Category.PERSON, "oops")

    def test_person_from_wrapped_list(self):
        person = normalize_person({'persons': [{
            'name': {'firstName': 'John', 'middleName': 'Q', 'lastName': 'Doe'},
            'age': '40',
            'akas': [{'fullName': 'Johnny Doe'}],
        }]})
        assert person.first_name == 'John'
        assert person.middle_name == 'Q'
        assert person.age == 40
        assert person.aliases == ['Johnny Doe']

    def test_person_empty_list_is_none(self):
        assert normalize_person({'persons': []}) is None
        assert normalize_person([]) is None

    def test_enrichment_fields(self):
        enrichment = normalize_enrichment({'person': {
            'phones': [{'number': '555-0100'}, {'number': '555-0100'}],
            'jobs': [{'company': 'Acme'}],
        }})
        assert enrichment.phones == ['555-0100']
        assert enrichment.employment == [{'company': 'Acme'}]
        assert enrichment.education == []


class TestMergeEnrichment:

    def test_fills_only_gaps(self):
        person = normalize_person({'firstName': 'John', 'lastName': 'Doe'})
        enrichment = normalize_enrichment({
            'firstName': 'Johnny',
            'age': 41,
            'emails': ['john@example.com'],
            'phones': ['555-0100'],
        })
        merged = merge_enrichment(person, enrichment)
        assert merged['first_name'] == 'John'
        assert merged['age'] == 41
        assert merged['emails'] == ['john@example.com']
        assert merged['phones'] == ['555-0100']
        assert 'raw' not in merged

    def test_no_person(self):
        enrichment = normalize_enrichment({'firstName': 'Jane'})
        assert merge_enrichment(None, enrichment)['first_name'] == 'Jane'

    def test_nothing(self):
        assert merge_enrichment(None, None) == {}
