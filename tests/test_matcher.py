"""
Unit tests for the nearest taxonomy entry lookup.
"""
import math

import pytest

from palette_atlas.errors import MatchError
from palette_atlas.features.matcher import nearest_entry, nearest_index
from palette_atlas.io.models import TaxonomyEntry
from palette_atlas.load.taxonomy import Taxonomy


class TestNearestEntry:
    """Test exhaustive nearest-neighbor matching in RGB space"""

    def test_exact_match(self, taxonomy):
        assert nearest_entry(taxonomy, (0, 255, 0)).xkcd_name == "green"

    def test_closest_by_squared_distance(self, taxonomy):
        """A dim red lands on dark red rather than red"""
        assert nearest_entry(taxonomy, (140, 10, 5)).xkcd_name == "dark red"
        assert nearest_entry(taxonomy, (10, 10, 100)).xkcd_name == "navy"

    def test_accepts_float_channels(self, taxonomy):
        assert nearest_entry(taxonomy, (250.4, 3.2, 1.9)).xkcd_name == "red"

    def test_tie_resolves_to_first_entry(self):
        """Equidistant entries resolve to table order"""
        taxonomy = Taxonomy(
            [
                TaxonomyEntry((0, 0, 0), "first", "a", "a", "a"),
                TaxonomyEntry((20, 0, 0), "second", "b", "b", "b"),
            ]
        )
        assert nearest_index(taxonomy, (10, 0, 0)) == 0

    def test_empty_taxonomy_raises(self):
        with pytest.raises(MatchError, match="taxonomy not loaded"):
            nearest_entry(Taxonomy([]), (1, 2, 3))

    @pytest.mark.parametrize(
        "query",
        [(1, 2), (1, 2, 3, 4), (math.nan, 0, 0), (0, math.inf, 0), ("a", "b", "c")],
    )
    def test_malformed_query_raises(self, taxonomy, query):
        with pytest.raises(MatchError):
            nearest_entry(taxonomy, query)
