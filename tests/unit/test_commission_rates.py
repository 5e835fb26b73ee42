"""Unit tests for the commission rate table."""

from decimal import Decimal

import pytest

from affiliate.config.commission_rates import (
    DEFAULT_RATE_TABLE,
    FAN_OUT_DEPTH,
    LEVEL_BY_DEPTH,
    CommissionRateTable,
)
from affiliate.models.enums import CategoryGroup, CommissionLevel
from affiliate.utils.exceptions import CategoryNotFoundError, NotFoundError


class TestDefaultRates:
    """Test default rate values."""

    def test_category_rates(self):
        assert DEFAULT_RATE_TABLE.category_rate(CategoryGroup.A) == Decimal("0.20")
        assert DEFAULT_RATE_TABLE.category_rate(CategoryGroup.B) == Decimal("0.30")
        assert DEFAULT_RATE_TABLE.category_rate(CategoryGroup.C) == Decimal("0.50")

    def test_level_rates(self):
        assert DEFAULT_RATE_TABLE.level_rate(CommissionLevel.F0) == Decimal("0.20")
        assert DEFAULT_RATE_TABLE.level_rate(CommissionLevel.F1) == Decimal("0.30")
        assert DEFAULT_RATE_TABLE.level_rate(CommissionLevel.F2) == Decimal("1.00")

    def test_fan_out_levels(self):
        """Direct referrer is F1, the referrer's referrer F0."""
        assert LEVEL_BY_DEPTH[1] == CommissionLevel.F1
        assert LEVEL_BY_DEPTH[2] == CommissionLevel.F0
        assert FAN_OUT_DEPTH == 2


class TestCategoryLookup:
    """Test category group lookup."""

    @pytest.mark.parametrize("raw", ["b", "B", " b "])
    def test_raw_strings(self, raw):
        assert DEFAULT_RATE_TABLE.category_rate(raw) == Decimal("0.30")

    @pytest.mark.parametrize("raw", ["z", "", None])
    def test_unknown_group(self, raw):
        with pytest.raises(CategoryNotFoundError):
            DEFAULT_RATE_TABLE.category_rate(raw)

    def test_not_found_hierarchy(self):
        """Unknown groups are lookup failures."""
        assert issubclass(CategoryNotFoundError, NotFoundError)

    def test_group_without_rate(self):
        table = CommissionRateTable(category={CategoryGroup.A: Decimal("0.1")})

        with pytest.raises(CategoryNotFoundError):
            table.category_rate(CategoryGroup.C)


class TestRateValidation:
    """Test construction-time validation."""

    def test_rate_above_one(self):
        with pytest.raises(ValueError, match="within"):
            CommissionRateTable(category={CategoryGroup.A: Decimal("1.5")})

    def test_negative_rate(self):
        with pytest.raises(ValueError):
            DEFAULT_RATE_TABLE.with_overrides(
                level={CommissionLevel.F1: Decimal("-0.1")}
            )

    def test_float_rate(self):
        with pytest.raises(ValueError, match="Decimal"):
            CommissionRateTable(category={CategoryGroup.A: 0.2})

    def test_missing_level(self):
        with pytest.raises(ValueError, match="missing"):
            CommissionRateTable(level={CommissionLevel.F1: Decimal("0.3")})


class TestOverrides:
    """Test with_overrides."""

    def test_override_keeps_other_rates(self):
        table = DEFAULT_RATE_TABLE.with_overrides(
            category={CategoryGroup.B: Decimal("0.10")}
        )

        assert table.category_rate(CategoryGroup.B) == Decimal("0.10")
        assert table.category_rate(CategoryGroup.C) == Decimal("0.50")
        assert table.level == DEFAULT_RATE_TABLE.level

    def test_default_table_unchanged(self):
        DEFAULT_RATE_TABLE.with_overrides(level={CommissionLevel.F0: Decimal("0")})

        assert DEFAULT_RATE_TABLE.level_rate(CommissionLevel.F0) == Decimal("0.20")

    def test_table_is_immutable(self):
        with pytest.raises(TypeError):
            DEFAULT_RATE_TABLE.category[CategoryGroup.A] = Decimal("0.9")
