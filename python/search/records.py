"""
Canonical record shapes produced by the field normalizers.

Every record keeps the provider payload it came from in ``raw``. ``raw`` is
excluded from equality and repr, so two payloads that spell the same address
differently normalize to equal records.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional

from providers.client import Category


@dataclass
class CanonicalRecord:
    """Base for all normalized records"""

    def to_dict(self, include_raw: bool = True) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in fields(self) if f.name != 'raw'}
        if include_raw:
            data['raw'] = getattr(self, 'raw', None)
        return data


@dataclass
class Address(CanonicalRecord):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: str = "USA"
    is_current: bool = False
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    raw: Any = field(default=None, compare=False, repr=False)


@dataclass
class PhoneNumber(CanonicalRecord):
    number: Optional[str] = None
    type: str = "mobile"
    is_current: bool = True
    last_verified: Optional[str] = None
    raw: Any = field(default=None, compare=False, repr=False)


@dataclass
class SocialMediaProfile(CanonicalRecord):
    platform: Optional[str] = None
    username: Optional[str] = None
    url: Optional[str] = None
    last_active: Optional[str] = None
    raw: Any = field(default=None, compare=False, repr=False)


@dataclass
class CriminalRecord(CanonicalRecord):
    case_number: Optional[str] = None
    charge: Optional[str] = None
    status: str = "unknown"
    record_date: Optional[str] = None
    jurisdiction: Optional[str] = None
    raw: Any = field(default=None, compare=False, repr=False)


@dataclass
class Relative(CanonicalRecord):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    relationship: str = "unknown"
    age: Optional[int] = None
    raw: Any = field(default=None, compare=False, repr=False)


@dataclass
class PropertyRecord(CanonicalRecord):
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    property_type: Optional[str] = None
    assessed_value: Optional[float] = None
    purchase_price: Optional[float] = None
    purchase_date: Optional[str] = None
    raw: Any = field(default=None, compare=False, repr=False)


@dataclass
class PersonRecord(CanonicalRecord):
    """Singular person-search data, merged into PersonProfile.metadata"""
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    age: Optional[int] = None
    date_of_birth: Optional[str] = None
    location: Optional[str] = None
    aliases: List[str] = field(default_factory=list)
    emails: List[str] = field(default_factory=list)
    raw: Any = field(default=None, compare=False, repr=False)


@dataclass
class ContactEnrichment(CanonicalRecord):
    """Contact-enrichment data; only fills gaps in PersonRecord"""
    first_name: Optional[str] = None
    middle_name: Optional[str] = None
    last_name: Optional[str] = None
    age: Optional[int] = None
    date_of_birth: Optional[str] = None
    location: Optional[str] = None
    aliases: List[str] = field(default_factory=list)
    emails: List[str] = field(default_factory=list)
    phones: List[str] = field(default_factory=list)
    employment: List[Dict[str, Any]] = field(default_factory=list)
    education: List[Dict[str, Any]] = field(default_factory=list)
    raw: Any = field(default=None, compare=False, repr=False)


# Category -> key of the record list on a profile, in storage and results
RECORD_KEYS: Dict[Category, str] = {
    Category.ADDRESS: "addresses",
    Category.PHONE: "phone_numbers",
    Category.SOCIAL: "social_media",
    Category.CRIMINAL: "criminal_records",
    Category.RELATIVES: "relatives",
    Category.PROPERTY: "property_records",
}

RECORD_CATEGORIES = tuple(RECORD_KEYS)


def empty_record_lists() -> Dict[str, List[Dict[str, Any]]]:
    return {key: [] for key in RECORD_KEYS.values()}
