"""
Contract Tests

Identifier normalization, record payload parsing and grouping-mode parsing.
"""

import pytest
from hypothesis import given, strategies as st

from engine.contracts.base import (
    Error, ErrorCode, GroupingMode, Result, canonical_id, optional_canonical_id,
)
from engine.contracts.records import ArtifactDetail, PersonDetail, Record


# =============================================================================
# IDENTIFIERS
# =============================================================================

class TestCanonicalId:

    def test_native_and_stringified_ids_collapse(self):
        assert canonical_id(42) == canonical_id("42") == canonical_id(42.0) == canonical_id(" 42 ")

    def test_non_integral_float_keeps_fraction(self):
        assert canonical_id(1.5) == "1.5"

    def test_rejects_missing_values(self):
        with pytest.raises(ValueError):
            canonical_id(None)
        with pytest.raises(ValueError):
            canonical_id("   ")
        with pytest.raises(ValueError):
            canonical_id(True)

    def test_optional_maps_blank_to_none(self):
        assert optional_canonical_id(None) is None
        assert optional_canonical_id("") is None
        assert optional_canonical_id(7) == "7"

    @given(st.integers(min_value=-10**12, max_value=10**12))
    def test_integer_forms_are_equivalent(self, value):
        assert canonical_id(value) == canonical_id(str(value)) == canonical_id(float(value))


# =============================================================================
# RESULT / ERROR
# =============================================================================

class TestResult:

    def test_success_and_failure_are_exclusive(self):
        ok = Result.success(3)
        assert ok.is_success and not ok.is_failure and ok.value == 3

        error = Error.create(ErrorCode.LOOKUP_MISS, "missing", key="x")
        failed = Result.failure(error)
        assert failed.is_failure and failed.value is None
        assert failed.error.context == (("key", "x"),)

    def test_with_context_returns_new_error(self):
        error = Error.create(ErrorCode.DATA_UNAVAILABLE, "empty")
        extended = error.with_context("url", "http://x")
        assert error.context == ()
        assert extended.context == (("url", "http://x"),)


class TestGroupingMode:

    @pytest.mark.parametrize("text, mode", [
        ("by-era", GroupingMode.BY_ERA),
        ("dynasty", GroupingMode.BY_ERA),
        ("BY-CATEGORY", GroupingMode.BY_CATEGORY),
        ("type", GroupingMode.BY_CATEGORY),
    ])
    def test_parse_accepts_aliases(self, text, mode):
        assert GroupingMode.parse(text) is mode

    def test_parse_rejects_unknown(self):
        with pytest.raises(ValueError):
            GroupingMode.parse("by-colour")


# =============================================================================
# RECORDS
# =============================================================================

class TestRecordPayload:

    def test_data_api_field_names(self):
        record = Record.from_payload({
            "id": 12,
            "name": "Li Bai",
            "type": "Person",
            "dynasty_name": "唐朝",
            "kg_node_id": 901.0,
            "desc": "Poet",
            "tags": "poetry, wine",
        })
        assert record.record_id == "12"
        assert record.category == "person"
        assert record.era == "唐朝"
        assert record.external_graph_id == "901"
        assert record.description == "Poet"
        assert record.tags == ("poetry", "wine")

    def test_typed_detail_and_extra_fields(self):
        record = Record.from_payload({
            "id": "p1",
            "name": "Su Shi",
            "category": "person",
            "dynasty": "宋",
            "source": "gazetteer",
            "detail": {
                "birth_year": "1037",
                "death_year": 1101,
                "alternative_names": {"pseudonym": "Dongpo"},
                "titles": "Hanlin scholar",
                "favourite_food": "pork",
            },
        })
        assert record.detail == PersonDetail(
            alternative_names=(("pseudonym", "Dongpo"),),
            birth_year=1037,
            death_year=1101,
            titles=("Hanlin scholar",),
        )
        assert record.extra_fields == {"favourite_food": "pork", "source": "gazetteer"}

    def test_unknown_category_keeps_detail_as_extra(self):
        record = Record.from_payload({
            "id": 3, "name": "Bell", "type": "instrument", "detail": {"material": "bronze"},
        })
        assert record.detail is None
        assert record.extra_fields["material"] == "bronze"

    def test_artifact_detail(self):
        record = Record.from_payload({
            "id": 4, "name": "Tripod", "type": "artifact",
            "detail": {"material": "bronze", "preserved_at": "Palace Museum"},
        })
        assert isinstance(record.detail, ArtifactDetail)
        assert record.detail.preserved_at == "Palace Museum"

    def test_unnamed_record_is_uninformative(self):
        record = Record.from_payload({"id": 5, "name": "  ", "type": "site"})
        assert record.is_uninformative
        assert record.display_name == "Unnamed record 5"

    def test_missing_id_is_rejected(self):
        with pytest.raises(ValueError):
            Record.from_payload({"name": "No id"})
