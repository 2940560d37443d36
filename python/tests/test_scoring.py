"""
Tests for the confidence scorer.
"""

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from search.records import Address, PhoneNumber
from search.scoring import MAX_POINTS, presence_map, round_half_up, score


class TestScore:

    def test_max_points(self):
        assert MAX_POINTS == 100

    def test_nothing_found(self):
        assert score({}) == 0
        assert score(presence_map(None)) == 0

    def test_person_and_two_addresses(self):
        assert score({'person': 1, 'addresses': 2}) == 35

    def test_person_address_social_relative(self):
        assert score({'person': 1, 'addresses': 1, 'social': 1, 'relatives': 1}) == 35

    @pytest.mark.parametrize("presence,expected", [
        ({'person': 1}, 25),
        ({'person': True}, 25),
        ({'addresses': 3}, 15),
        ({'addresses': 10}, 20),
        ({'phones': 2}, 10),
        ({'phones': 9}, 15),
        ({'social': 4}, 10),
        ({'criminal': 1}, 10),
        ({'criminal': 7}, 10),
        ({'property': 1}, 5),
        ({'relatives': 3}, 6),
        ({'relatives': 50}, 10),
    ])
    def test_category_points(self, presence, expected):
        assert score(presence) == expected

    def test_everything_caps_at_100(self):
        presence = {
            'person': 1, 'addresses': 4, 'phones': 3, 'social': 4,
            'criminal': 1, 'property': 2, 'relatives': 5,
        }
        assert score(presence) == 100
        assert score({key: 1000 for key in presence}) == 100

    def test_malformed_counts_are_zero(self):
        assert score({'person': -1, 'addresses': '3', 'phones': None}) == 0

    def test_unknown_keys_ignored(self):
        assert score({'horoscope': 5, 'person': 1}) == 25


class TestHelpers:

    @pytest.mark.parametrize("value,expected", [(0.5, 1), (1.49, 1), (2.5, 3), (34.5, 35)])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected

    def test_presence_map_counts(self):
        presence = presence_map(
            object(),
            addresses=[Address(), Address()],
            phones=[PhoneNumber()],
            social=None,
        )
        assert presence == {
            'person': 1, 'addresses': 2, 'phones': 1, 'social': 0,
            'criminal': 0, 'property': 0, 'relatives': 0,
        }
