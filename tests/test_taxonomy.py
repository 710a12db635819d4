"""
Unit tests for taxonomy parsing and the per-level ordinal namings.
"""
import json
import logging

import pytest

from palette_atlas.errors import TaxonomyError
from palette_atlas.features.distributions import build_family_palette, rgb_to_hex
from palette_atlas.io.models import LEVELS, HierarchyLevel
from palette_atlas.load.taxonomy import parse_taxonomy

from conftest import TAXONOMY_ROWS


class TestParseTaxonomy:
    """Test loading of the taxonomy JSON table"""

    def test_parses_all_valid_rows(self, taxonomy):
        """Every well-formed row becomes an entry in table order"""
        assert len(taxonomy) == len(TAXONOMY_ROWS)
        first = taxonomy[0]
        assert first.rgb == (255, 0, 0)
        assert first.xkcd_name == "red"
        assert first.design_name == "scarlet"
        assert first.common_name == "red"
        assert first.family_name == "red"

    def test_drops_malformed_rows_and_logs_count(self, caplog):
        """Rows with missing or non-numeric channels are excluded"""
        rows = list(TAXONOMY_ROWS) + [
            {**TAXONOMY_ROWS[0], "xkcd_color": "broken", "xkcd_r": "oops"},
            {**TAXONOMY_ROWS[0], "xkcd_color": "missing", "xkcd_g": None},
            {**TAXONOMY_ROWS[0], "xkcd_color": "too bright", "xkcd_b": 300},
        ]
        with caplog.at_level(logging.WARNING):
            taxonomy = parse_taxonomy(json.dumps(rows))

        assert len(taxonomy) == len(TAXONOMY_ROWS)
        names = [entry.xkcd_name for entry in taxonomy]
        assert "broken" not in names
        assert "missing" not in names
        assert "too bright" not in names
        assert "Dropped 3 malformed taxonomy rows" in caplog.text

    def test_empty_table_is_allowed(self):
        """An empty array parses to an empty taxonomy"""
        taxonomy = parse_taxonomy(b"[]")
        assert len(taxonomy) == 0
        for level in LEVELS:
            assert taxonomy.cardinality(level) == 0

    def test_invalid_json_raises(self):
        """Unparseable payloads are load failures"""
        with pytest.raises(TaxonomyError):
            parse_taxonomy(b"{not json")

    def test_non_array_raises(self):
        with pytest.raises(TaxonomyError):
            parse_taxonomy(b'{"xkcd_color": "red"}')

    def test_missing_column_raises(self):
        """A table without a required column is rejected"""
        rows = [{k: v for k, v in row.items() if k != "color_family"} for row in TAXONOMY_ROWS]
        with pytest.raises(TaxonomyError, match="color_family"):
            parse_taxonomy(json.dumps(rows))


class TestOrdinalMappings:
    """Test the name <-> index mappings of every level"""

    def test_mappings_are_bijections_in_first_occurrence_order(self, taxonomy):
        """Each level numbers its distinct names 0..n-1 by first appearance"""
        for level in LEVELS:
            seen = []
            for entry in taxonomy:
                name = entry.name_at(level)
                if name not in seen:
                    seen.append(name)
            ordinal = taxonomy.ordinal(level)
            assert list(taxonomy.names(level)) == seen
            assert sorted(ordinal.values()) == list(range(len(seen)))
            for index, name in enumerate(taxonomy.names(level)):
                assert ordinal[name] == index

    def test_level_cardinalities(self, taxonomy):
        assert taxonomy.cardinality(HierarchyLevel.XKCD) == 5
        assert taxonomy.cardinality(HierarchyLevel.DESIGN) == 5
        assert taxonomy.cardinality(HierarchyLevel.COMMON) == 3
        assert taxonomy.cardinality(HierarchyLevel.FAMILY) == 3
        assert taxonomy.names(HierarchyLevel.FAMILY) == ("red", "green", "blue")

    def test_ordinal_mapping_is_read_only(self, taxonomy):
        with pytest.raises(TypeError):
            taxonomy.ordinal(HierarchyLevel.FAMILY)["purple"] = 9


class TestHierarchyLevelParsing:
    """Test level selectors accepted from messages and the CLI"""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("xkcd", HierarchyLevel.XKCD),
            ("design_color", HierarchyLevel.DESIGN),
            ("Common", HierarchyLevel.COMMON),
            ("color_family", HierarchyLevel.FAMILY),
        ],
    )
    def test_parse_accepts_values_and_columns(self, raw, expected):
        assert HierarchyLevel.parse(raw) is expected

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError):
            HierarchyLevel.parse("hue")


class TestFamilyPalette:
    """Test representative colors per family"""

    def test_family_palette_averages_entries(self, taxonomy):
        """Each family color is the mean of its entries' reference colors"""
        palette = build_family_palette(taxonomy)
        assert palette == [
            rgb_to_hex((191.5, 0, 0)),
            "#00ff00",
            rgb_to_hex((0, 0, 191.5)),
        ]

    def test_rgb_to_hex_clamps_and_rounds(self):
        assert rgb_to_hex((300, -4, 12.6)) == "#ff000d"
        assert rgb_to_hex((0, 0, 0)) == "#000000"
