"""Tests for the shared vitals category table."""

from __future__ import annotations

import pytest

from hwallet.core.errors import ValidationError
from hwallet.core.storage.models import VITAL_FIELDS
from hwallet.domains.records.domain_logic.categories import (
    ALL_PROJECTION,
    CATEGORIES,
    resolve_category,
)


class TestCategoryTable:
    def test_known_categories(self):
        assert set(CATEGORIES) == {
            "blood_pressure",
            "blood_sugar",
            "heart_rate",
            "cholesterol",
            "weight",
            "temperature",
        }

    def test_fields_are_stored_columns(self):
        for category in CATEGORIES.values():
            assert set(category.defining_fields) <= set(VITAL_FIELDS)
            assert {column for column, _ in category.projection} <= set(VITAL_FIELDS)

    def test_blood_sugar_defined_by_either_reading(self):
        assert CATEGORIES["blood_sugar"].defining_fields == ("fasting_sugar", "postprandial_sugar")

    def test_point_names(self):
        assert [n for _, n in CATEGORIES["blood_pressure"].projection] == ["systolic", "diastolic"]
        assert [n for _, n in CATEGORIES["blood_sugar"].projection] == ["fasting", "postprandial"]

    def test_all_projection_excludes_height(self):
        assert "height" not in {column for column, _ in ALL_PROJECTION}
        assert len(ALL_PROJECTION) == 8


class TestResolveCategory:
    @pytest.mark.parametrize("name", [None, "", "all", "ALL"])
    def test_all_means_no_filter(self, name):
        assert resolve_category(name) is None

    def test_case_and_whitespace_insensitive(self):
        assert resolve_category(" Heart_Rate ").name == "heart_rate"

    def test_unknown_category(self):
        with pytest.raises(ValidationError, match="Unknown vital category"):
            resolve_category("bmi")
