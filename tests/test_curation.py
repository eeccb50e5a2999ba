"""Tests for buyer option curation."""

import pytest

from spec_reconciler.curation import curate, dedup_specs, enhance_options_locally, is_placeholder
from spec_reconciler.models import SpecificationRecord
from spec_reconciler.vocabulary import Vocabulary


class TestIsPlaceholder:
    @pytest.mark.parametrize("option", [
        "Other",
        "others",
        "Various sizes",
        "Size TBD",
        "Please specify",
        "Custom",
        "Any other options here",
        "Select",
    ])
    def test_placeholder(self, option):
        assert is_placeholder(option) is True

    @pytest.mark.parametrize("option", [
        "304",
        "Customized",
        "Mother Board",
        "2 mm",
        "Polished",
    ])
    def test_real_value(self, option):
        assert is_placeholder(option) is False


class TestCurate:
    """Tests for curate function."""

    def test_placeholders_and_similar_duplicates(self):
        options = ["304", "SS304", "Other", "2 mm", "2.0mm", "various sizes"]
        assert curate(options) == ["304", "2 mm"]

    def test_case_and_whitespace_duplicates(self):
        assert curate(["Polished", " polished ", "POLISHED", "Matt"]) == ["Polished", "Matt"]

    def test_grade_suffix_kept_distinct(self):
        assert curate(["304", "304L", "316", "316L"]) == ["304", "304L", "316", "316L"]

    def test_blank_values_dropped(self):
        assert curate(["", "  ", "430"]) == ["430"]

    def test_custom_vocabulary(self):
        vocab = Vocabulary(placeholder_options=("assorted",))
        assert curate(["Assorted", "Other"], vocab) == ["Other"]


class TestDedupSpecs:
    def test_same_option_set_different_names(self):
        records = [
            SpecificationRecord("Grade", ["304", "316"]),
            SpecificationRecord("Material", [" 316", "304"]),
            SpecificationRecord("Finish", ["Matt"]),
        ]
        assert [r.name for r in dedup_specs(records)] == ["Grade", "Finish"]

    def test_case_insensitive_signature(self):
        records = [SpecificationRecord("A", ["Matt"]), SpecificationRecord("B", ["MATT"])]
        assert [r.name for r in dedup_specs(records)] == ["A"]

    def test_subset_is_not_duplicate(self):
        records = [SpecificationRecord("A", ["304", "316"]), SpecificationRecord("B", ["304"])]
        assert len(dedup_specs(records)) == 2


class TestEnhanceOptionsLocally:
    def test_skips_duplicates_and_stops_at_needed(self):
        result = enhance_options_locally(["304"], ["SS304", "316", "430", "MS"], 2)
        assert result == ["316", "430"]

    def test_fewer_available_than_needed(self):
        assert enhance_options_locally(["304"], ["304", "316"], 5) == ["316"]

    def test_duplicates_within_stage1(self):
        assert enhance_options_locally([], ["2 mm", "2.0 mm", "3 mm"], 5) == ["2 mm", "3 mm"]
