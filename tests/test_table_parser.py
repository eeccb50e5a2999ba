"""Tests for the common-spec table parser."""

import pytest

from spec_reconciler.config import NO_COMMON_OPTIONS
from spec_reconciler.models import SpecificationRecord, Tier
from spec_reconciler.table_parser import parse_common_spec_table, parse_options_simple


STAGE1 = [
    SpecificationRecord("Grade", ["304", "316", "430"], Tier.PRIMARY),
    SpecificationRecord("Finish", ["Polished", "Matt"], Tier.SECONDARY),
    SpecificationRecord("Width", ["1000 mm", "1250 mm"]),
]

TABLE = """Specification Name | Stage 1 Category | Common Options
--- | --- | ---
Material Grade | Primary | 304, 316
Finish | Secondary |
Color | Primary | Red
"""


class TestParseCommonSpecTable:
    """Tests for parse_common_spec_table function."""

    def test_table(self):
        entries = parse_common_spec_table(TABLE, STAGE1)
        assert [(e.spec_name, e.category, e.common_options) for e in entries] == [
            ("Grade", "Primary", ["304", "316"]),
            ("Finish", "Secondary", [NO_COMMON_OPTIONS]),
        ]

    def test_anchored_to_stage1_name(self):
        entry = parse_common_spec_table("Material Grade | Primary | 304, 316", STAGE1)[0]
        assert entry.spec_name == "Grade"
        assert entry.source_b_name == "Material Grade"

    def test_two_columns_with_options(self):
        entries = parse_common_spec_table("Grade | 304, 430", STAGE1)
        assert entries[0].category == "Primary"
        assert entries[0].common_options == ["304", "430"]

    def test_two_columns_with_category(self):
        entries = parse_common_spec_table("Finish | tertiary", STAGE1)
        assert entries[0].category == "tertiary"
        assert entries[0].common_options == [NO_COMMON_OPTIONS]

    def test_missing_tier_defaults_to_primary(self):
        entries = parse_common_spec_table("Width | 1000 mm", STAGE1)
        assert entries[0].category == "Primary"

    def test_markdown_pipes(self):
        entries = parse_common_spec_table("| Grade | Primary | 304 |", STAGE1)
        assert entries[0].spec_name == "Grade"
        assert entries[0].common_options == ["304"]

    def test_stage1_spec_emitted_once(self):
        text = "Grade | Primary | 304\nMaterial Grade | Primary | 316"
        entries = parse_common_spec_table(text, STAGE1)
        assert len(entries) == 1
        assert entries[0].common_options == ["304"]

    def test_no_common_options_text(self):
        entries = parse_common_spec_table("Finish | Secondary | No common options", STAGE1)
        assert entries[0].common_options == [NO_COMMON_OPTIONS]

    @pytest.mark.parametrize("text", [
        "",
        "Nothing in common.",
        "Color | Primary | Red",
        "=====",
    ])
    def test_no_entries(self, text):
        assert parse_common_spec_table(text, STAGE1) == []


class TestParseOptionsSimple:
    @pytest.mark.parametrize("input_val,expected", [
        ("304, 316", ["304", "316"]),
        (" 304 ,, 316 ", ["304", "316"]),
        ("304, No common options", ["304"]),
        ("", []),
        ("   ", []),
    ])
    def test_options(self, input_val, expected):
        assert parse_options_simple(input_val) == expected
