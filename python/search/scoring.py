"""
Confidence Scorer

Additive point model over the categories a search found. Each category has a
fixed cap; the sum is normalized against the fixed maximum (100) and rounded
half-up to an integer in [0, 100].
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence


@dataclass(frozen=True)
class CategoryWeight:
    """Points for one category. per_item=None means all-or-nothing."""
    key: str
    max_points: int
    per_item: Optional[int] = None

    def earned(self, count: int) -> int:
        if count <= 0:
            return 0
        if self.per_item is None:
            return self.max_points
        return min(self.max_points, count * self.per_item)


WEIGHTS = (
    CategoryWeight('person', 25),
    CategoryWeight('addresses', 20, 5),
    CategoryWeight('phones', 15, 5),
    CategoryWeight('social', 10, 3),
    CategoryWeight('criminal', 10),
    CategoryWeight('property', 10, 5),
    CategoryWeight('relatives', 10, 2),
)

MAX_POINTS = sum(w.max_points for w in WEIGHTS)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _count(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return max(0, value)
    return 0


def score(presence: Mapping[str, Any]) -> int:
    """Compute the confidence score from per-category counts.

    ``presence`` maps a category key to its record count (person: 1 or 0,
    or a bool). Missing keys and malformed counts count as zero.
    """
    earned = sum(w.earned(_count(presence.get(w.key, 0))) for w in WEIGHTS)
    return max(0, min(100, round_half_up(100 * earned / MAX_POINTS)))


def presence_map(
    person: Any,
    addresses: Sequence[Any] = (),
    phones: Sequence[Any] = (),
    social: Sequence[Any] = (),
    criminal: Sequence[Any] = (),
    property_records: Sequence[Any] = (),
    relatives: Sequence[Any] = ()
) -> Dict[str, int]:
    """Build the presence map from normalized category data"""
    return {
        'person': 1 if person is not None else 0,
        'addresses': len(addresses or ()),
        'phones': len(phones or ()),
        'social': len(social or ()),
        'criminal': len(criminal or ()),
        'property': len(property_records or ()),
        'relatives': len(relatives or ()),
    }
