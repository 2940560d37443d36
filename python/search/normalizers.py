"""
Field Normalizers

Map heterogeneous provider JSON into the canonical records of search.records.

Each canonical field is described by a FieldSpec: an ordered list of
candidate key-paths (dotted for nested objects) tried left to right, the
first present value winning. Key matching falls back to a folded comparison
(case, underscores and dashes ignored), so ``zipCode``, ``zip_code`` and
``ZipCode`` all resolve through the single candidate ``zip_code``.

Missing optional fields never raise. The only error is a payload that is
neither a JSON object nor a JSON array (NormalizationError).
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Type

from errors import NormalizationError
from providers.client import Category
from search.records import (
    Address,
    CanonicalRecord,
    ContactEnrichment,
    CriminalRecord,
    PersonRecord,
    PhoneNumber,
    PropertyRecord,
    Relative,
    SocialMediaProfile,
)

logger = logging.getLogger(__name__)

_MISSING = object()
_FOLD_RE = re.compile(r'[\s_\-]')


# ============================================
# COERCION
# ============================================

def _fold(key: str) -> str:
    return _FOLD_RE.sub('', key).lower()


def as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        value = value.strip()
        return value or None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return None


def as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        # Whole value must be a number, optionally followed by a unit word ("42 years")
        match = re.fullmatch(r'\s*(\d+)(?:\.\d+)?(?:\s*[A-Za-z]+)?\s*', value)
        return int(match.group(1)) if match else None
    return None


def as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        cleaned = re.sub(r'[^\d.\-]', '', value)
        try:
            return float(cleaned)
        except ValueError:
            return None
    return None


def as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ('true', 'yes', 'y', '1', 'current', 'active', 'connected'):
            return True
        if lowered in ('false', 'no', 'n', '0', 'inactive', 'disconnected'):
            return False
    return None


def as_text_list(value: Any, item_paths: Sequence[str] = ()) -> Optional[List[str]]:
    """A list of strings, or of objects holding the string under item_paths"""
    if value is None:
        return None
    items = value if isinstance(value, list) else [value]
    result = []
    for item in items:
        if isinstance(item, Mapping):
            item = first_present(item, item_paths)
        text = as_text(item)
        if text and text not in result:
            result.append(text)
    return result or None


def as_object_list(value: Any) -> Optional[List[Dict[str, Any]]]:
    if isinstance(value, Mapping):
        value = [value]
    if not isinstance(value, list):
        return None
    return [dict(item) for item in value if isinstance(item, Mapping)] or None


# ============================================
# KEY-PATH RESOLUTION
# ============================================

def _get_key(mapping: Mapping[str, Any], key: str) -> Any:
    if key in mapping:
        return mapping[key]
    folded = _fold(key)
    for candidate, value in mapping.items():
        if isinstance(candidate, str) and _fold(candidate) == folded:
            return value
    return _MISSING


def resolve_path(payload: Any, path: str) -> Any:
    """Follow a dotted key-path; list segments take their first element"""
    current = payload
    for part in path.split('.'):
        if isinstance(current, list):
            current = current[0] if current else _MISSING
        if not isinstance(current, Mapping):
            return _MISSING
        current = _get_key(current, part)
        if current is _MISSING:
            return _MISSING
    return current


def _is_present(value: Any) -> bool:
    if value is _MISSING or value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    if isinstance(value, (list, dict)) and not value:
        return False
    return True


def first_present(payload: Any, paths: Sequence[str]) -> Any:
    for path in paths:
        value = resolve_path(payload, path)
        if _is_present(value):
            return value
    return None


@dataclass(frozen=True)
class FieldSpec:
    """One canonical field: candidate key-paths, coercion and default"""
    name: str
    paths: Tuple[str, ...]
    coerce: Callable[[Any], Any] = as_text
    default: Any = None

    def extract(self, payload: Mapping[str, Any]) -> Any:
        for path in self.paths:
            value = resolve_path(payload, path)
            if not _is_present(value):
                continue
            coerced = self.coerce(value)
            if coerced is not None:
                return coerced
        return self.default() if callable(self.default) else self.default


def apply_specs(record_type: Type[CanonicalRecord], specs: Sequence[FieldSpec], payload: Mapping[str, Any]):
    values = {spec.name: spec.extract(payload) for spec in specs}
    return record_type(raw=payload, **values)


def _texts(*item_paths: str) -> Callable[[Any], Optional[List[str]]]:
    return lambda value: as_text_list(value, item_paths)


# ============================================
# FIELD TABLES
# ============================================

ADDRESS_FIELDS = (
    FieldSpec('street', ('street', 'street_address', 'address_line1', 'line1', 'full_street', 'address')),
    FieldSpec('city', ('city', 'locality', 'town')),
    FieldSpec('state', ('state', 'state_code', 'region', 'province')),
    FieldSpec('zip_code', ('zip_code', 'zip', 'postal_code', 'zip5')),
    FieldSpec('country', ('country', 'country_code'), default="USA"),
    FieldSpec('is_current', ('is_current', 'current', 'is_active'), coerce=as_bool, default=False),
    FieldSpec('start_date', ('start_date', 'first_reported_date', 'first_seen', 'from_date')),
    FieldSpec('end_date', ('end_date', 'last_reported_date', 'last_seen', 'to_date')),
)

PHONE_FIELDS = (
    FieldSpec('number', ('number', 'phone', 'phone_number', 'phone_no', 'telephone')),
    FieldSpec('type', ('type', 'phone_type', 'line_type'), default="mobile"),
    FieldSpec('is_current', ('is_current', 'current', 'is_connected', 'is_active'), coerce=as_bool, default=True),
    FieldSpec('last_verified', ('last_verified', 'last_reported_date', 'last_seen')),
)

SOCIAL_FIELDS = (
    FieldSpec('platform', ('platform', 'network', 'site', 'source')),
    FieldSpec('username', ('username', 'user_name', 'handle', 'screen_name')),
    FieldSpec('url', ('url', 'profile_url', 'link')),
    FieldSpec('last_active', ('last_active', 'last_seen', 'last_activity')),
)

CRIMINAL_FIELDS = (
    FieldSpec('case_number', ('case_number', 'case_no', 'case_id', 'docket_number')),
    FieldSpec('charge', ('charge', 'offense', 'offense_description', 'crime', 'description')),
    FieldSpec('status', ('status', 'disposition', 'case_status'), default="unknown"),
    FieldSpec('record_date', ('date', 'record_date', 'offense_date', 'filing_date', 'case_date')),
    FieldSpec('jurisdiction', ('jurisdiction', 'county', 'court', 'state')),
)

RELATIVE_FIELDS = (
    FieldSpec('first_name', ('first_name', 'name.first_name', 'given_name')),
    FieldSpec('last_name', ('last_name', 'name.last_name', 'surname', 'family_name')),
    FieldSpec('relationship', ('relationship', 'relation', 'relative_type', 'type'), default="unknown"),
    FieldSpec('age', ('age', 'current_age'), coerce=as_int),
)

PROPERTY_FIELDS = (
    FieldSpec('address', ('address', 'property_address.street', 'street', 'full_address')),
    FieldSpec('city', ('city', 'property_address.city')),
    FieldSpec('state', ('state', 'property_address.state')),
    FieldSpec('zip_code', ('zip_code', 'zip', 'property_address.zip', 'postal_code')),
    FieldSpec('property_type', ('property_type', 'land_use', 'use_code', 'type')),
    FieldSpec('assessed_value', ('assessed_value', 'total_assessed_value', 'market_value', 'value'), coerce=as_float),
    FieldSpec('purchase_price', ('purchase_price', 'sale_price', 'last_sale_price'), coerce=as_float),
    FieldSpec('purchase_date', ('purchase_date', 'sale_date', 'last_sale_date', 'recording_date')),
)

_NAME_FIELDS = (
    FieldSpec('first_name', ('first_name', 'name.first_name', 'name.first', 'given_name')),
    FieldSpec('middle_name', ('middle_name', 'name.middle_name', 'name.middle')),
    FieldSpec('last_name', ('last_name', 'name.last_name', 'name.last', 'surname')),
    FieldSpec('age', ('age', 'current_age'), coerce=as_int),
    FieldSpec('date_of_birth', ('date_of_birth', 'dob', 'birth_date', 'dob_first_seen')),
    FieldSpec('location', ('location', 'city_state', 'addresses.full_address', 'address.full_address')),
    FieldSpec('aliases', ('aliases', 'akas', 'also_known_as'), coerce=_texts('full_name', 'name'), default=list),
    FieldSpec('emails', ('emails', 'email_addresses', 'email'), coerce=_texts('email_address', 'email'), default=list),
)

PERSON_FIELDS = _NAME_FIELDS

ENRICHMENT_FIELDS = _NAME_FIELDS + (
    FieldSpec('phones', ('phones', 'phone_numbers', 'phone'), coerce=_texts('number', 'phone_number', 'phone'), default=list),
    FieldSpec('employment', ('employment', 'jobs', 'employers'), coerce=as_object_list, default=list),
    FieldSpec('education', ('education', 'schools'), coerce=as_object_list, default=list),
)

# Keys under which a provider may wrap a category's record list
LIST_KEYS: Dict[Category, Tuple[str, ...]] = {
    Category.ADDRESS: ('addresses', 'address_history', 'results', 'data'),
    Category.PHONE: ('phones', 'phone_numbers', 'results', 'data'),
    Category.SOCIAL: ('social_media', 'social_profiles', 'profiles', 'results', 'data'),
    Category.CRIMINAL: ('records', 'criminal_records', 'offenses', 'results', 'data'),
    Category.RELATIVES: ('relatives', 'relatives_summary', 'results', 'data'),
    Category.PROPERTY: ('property_records', 'properties', 'results', 'data'),
}

_SINGLE_KEYS: Dict[Category, Tuple[str, ...]] = {
    Category.PERSON: ('persons', 'person', 'people', 'results', 'data'),
    Category.CONTACT_ENRICHMENT: ('person', 'persons', 'contact', 'results', 'data'),
}


# ============================================
# PAYLOAD SHAPE
# ============================================

def _check_payload(payload: Any, category: Category) -> None:
    if not isinstance(payload, (Mapping, list)):
        raise NormalizationError(
            f"Expected a JSON object or array for {category.value}, got {type(payload).__name__}",
            category=category.value
        )


def extract_records(payload: Any, category: Category) -> List[Mapping[str, Any]]:
    """Unwrap a bare array or an object holding the array under a known key"""
    _check_payload(payload, category)
    items: Any = payload
    if isinstance(payload, Mapping):
        items = []
        for key in LIST_KEYS.get(category, ()):
            value = _get_key(payload, key)
            if isinstance(value, list):
                items = value
                break
    records = [item for item in items if isinstance(item, Mapping)]
    if len(records) != len(items):
        logger.debug("Skipped %d non-object %s items", len(items) - len(records), category.value)
    return records


def _extract_single(payload: Any, category: Category) -> Optional[Mapping[str, Any]]:
    _check_payload(payload, category)
    if isinstance(payload, list):
        return next((item for item in payload if isinstance(item, Mapping)), None)
    for key in _SINGLE_KEYS[category]:
        value = _get_key(payload, key)
        if isinstance(value, list):
            return next((item for item in value if isinstance(item, Mapping)), None)
        if isinstance(value, Mapping):
            return value
    return payload


# ============================================
# PER-RECORD NORMALIZERS
# ============================================

def normalize_address(record: Mapping[str, Any]) -> Address:
    return apply_specs(Address, ADDRESS_FIELDS, record)


def normalize_phone(record: Mapping[str, Any]) -> PhoneNumber:
    return apply_specs(PhoneNumber, PHONE_FIELDS, record)


def normalize_social(record: Mapping[str, Any]) -> SocialMediaProfile:
    return apply_specs(SocialMediaProfile, SOCIAL_FIELDS, record)


def normalize_criminal(record: Mapping[str, Any]) -> CriminalRecord:
    return apply_specs(CriminalRecord, CRIMINAL_FIELDS, record)


def normalize_relative(record: Mapping[str, Any]) -> Relative:
    return apply_specs(Relative, RELATIVE_FIELDS, record)


def normalize_property(record: Mapping[str, Any]) -> PropertyRecord:
    return apply_specs(PropertyRecord, PROPERTY_FIELDS, record)


def normalize_person(payload: Any) -> Optional[PersonRecord]:
    """Normalize a person-search payload; None when it holds no person"""
    record = _extract_single(payload, Category.PERSON)
    if record is None:
        return None
    return apply_specs(PersonRecord, PERSON_FIELDS, record)


def normalize_enrichment(payload: Any) -> Optional[ContactEnrichment]:
    """Normalize a contact-enrichment payload; None when it holds no contact"""
    record = _extract_single(payload, Category.CONTACT_ENRICHMENT)
    if record is None:
        return None
    return apply_specs(ContactEnrichment, ENRICHMENT_FIELDS, record)


RECORD_NORMALIZERS: Dict[Category, Callable[[Mapping[str, Any]], CanonicalRecord]] = {
    Category.ADDRESS: normalize_address,
    Category.PHONE: normalize_phone,
    Category.SOCIAL: normalize_social,
    Category.CRIMINAL: normalize_criminal,
    Category.RELATIVES: normalize_relative,
    Category.PROPERTY: normalize_property,
}


def normalize_category(category: Category, payload: Any):
    """Normalize a whole category payload.

    Returns a list of records for list categories, or a single record (or
    None) for person and contact-enrichment.
    """
    category = Category(category)
    if category is Category.PERSON:
        return normalize_person(payload)
    if category is Category.CONTACT_ENRICHMENT:
        return normalize_enrichment(payload)
    normalizer = RECORD_NORMALIZERS[category]
    return [normalizer(record) for record in extract_records(payload, category)]


def merge_enrichment(person: Optional[PersonRecord], enrichment: Optional[ContactEnrichment]) -> Dict[str, Any]:
    """Build profile metadata from person data, filling gaps from enrichment.

    A person field is overwritten only when it is absent (None or empty).
    Enrichment-only fields (phones, employment, education) are added as is.
    """
    merged: Dict[str, Any] = person.to_dict(include_raw=False) if person else {}
    if enrichment is None:
        return merged
    for key, value in enrichment.to_dict(include_raw=False).items():
        if not _is_present(merged.get(key)) and _is_present(value):
            merged[key] = value
    return merged
