"""
Search package: canonical records, field normalizers and confidence scoring.

The orchestrator lives in search.orchestrator and is imported from there,
since it depends on the storage package.
"""

from search.records import RECORD_KEYS, RECORD_CATEGORIES, empty_record_lists
from search.normalizers import normalize_category, merge_enrichment
from search.scoring import score, presence_map

__all__ = [
    'RECORD_KEYS',
    'RECORD_CATEGORIES',
    'empty_record_lists',
    'normalize_category',
    'merge_enrichment',
    'score',
    'presence_map',
]
