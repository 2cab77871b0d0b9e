"""
Unit tests for the matrix level configuration.

Tests cover:
- Level table amounts and quotas
- Amount to level mapping
- N1 cascade receiver formula
- Splitting payouts into donation units
"""

from decimal import Decimal

import pytest

from donation_matrix.config.level_rules import (
    LEVEL_RULES,
    MAX_LEVEL,
    PACKAGE_AMOUNT,
    PACKAGE_UNIT_AMOUNT,
    UPGRADE_OBLIGATION_TYPES,
    cascade_receiver_position,
    get_level_by_amount,
    get_level_rule,
    is_valid_level,
    split_into_units,
)
from donation_matrix.models.enums import DonationType


class TestLevelTable:
    """Test the static level table."""

    def test_three_levels_defined(self):
        """Levels 1, 2 and 3 exist and nothing else."""
        assert sorted(LEVEL_RULES) == [1, 2, 3]
        assert MAX_LEVEL == 3

    @pytest.mark.parametrize(
        "level,unit,required",
        [
            (1, Decimal("100"), 3),
            (2, Decimal("200"), 18),
            (3, Decimal("1600"), 27),
        ],
    )
    def test_unit_amount_and_quota(self, level, unit, required):
        """Each level's unit amount and completion quota."""
        rule = get_level_rule(level)
        assert rule.unit_amount == unit
        assert rule.required_donation_count == required

    def test_upgrade_amounts(self):
        """N1 pays 200 into N2, N2 pays 1600 into N3, N3 has no upgrade."""
        assert get_level_rule(1).upgrade_amount == Decimal("200")
        assert get_level_rule(1).upgrade_type == DonationType.UPGRADE_N2
        assert get_level_rule(2).upgrade_amount == Decimal("1600")
        assert get_level_rule(2).upgrade_type == DonationType.UPGRADE_N3
        assert get_level_rule(3).upgrade_amount is None

    def test_payouts(self):
        """Cascade 100, reinjection 2000 in 200s, final payment 8000."""
        assert get_level_rule(1).payout_amount == Decimal("100")
        assert get_level_rule(1).payout_type == DonationType.CASCADE_N1
        assert get_level_rule(2).payout_amount == Decimal("2000")
        assert get_level_rule(2).payout_unit_amount == Decimal("200")
        assert get_level_rule(3).payout_amount == Decimal("8000")
        assert get_level_rule(3).payout_type == DonationType.FINAL_PAYMENT_N3

    def test_unknown_level(self):
        """Levels outside 1-3 have no rule."""
        assert get_level_rule(0) is None
        assert get_level_rule(4) is None
        assert is_valid_level(2)
        assert not is_valid_level(4)

    def test_upgrade_obligations(self):
        """The four generated types hold back donor-side advancement."""
        assert set(UPGRADE_OBLIGATION_TYPES) == {
            DonationType.CASCADE_N1,
            DonationType.UPGRADE_N2,
            DonationType.REINJECTION_N2,
            DonationType.UPGRADE_N3,
        }
        assert DonationType.PULL not in UPGRADE_OBLIGATION_TYPES


class TestLevelByAmount:
    """Test mapping a donation amount to the credited level."""

    @pytest.mark.parametrize(
        "amount,level",
        [
            (Decimal("100"), 1),
            (Decimal("200"), 2),
            (Decimal("1600"), 3),
            (Decimal("100.00000000"), 1),
        ],
    )
    def test_unit_amounts(self, amount, level):
        assert get_level_by_amount(amount) == level

    @pytest.mark.parametrize("amount", [Decimal("8000"), Decimal("50"), Decimal("0.01")])
    def test_unknown_amount_defaults_to_level_1(self, amount):
        assert get_level_by_amount(amount) == 1


class TestCascadeFormula:
    """Test the N1 cascade receiver position."""

    @pytest.mark.parametrize(
        "donor_position,receiver_position",
        [
            (1, 34),
            (2, 34),
            (3, 34),
            (4, 35),
            (5, 35),
            (6, 35),
            (7, 36),
            (50, 50),
            (99, 66),
            (100, 67),
        ],
    )
    def test_receiver_position(self, donor_position, receiver_position):
        assert cascade_receiver_position(donor_position) == receiver_position


class TestSplitIntoUnits:
    """Test splitting payout totals."""

    def test_reinjection_split(self):
        """2000 in 200 units is ten donations."""
        units = split_into_units(Decimal("2000"), Decimal("200"))
        assert units == [Decimal("200")] * 10

    def test_package_split(self):
        """The package of 8000 is forty donations of 200."""
        units = split_into_units(PACKAGE_AMOUNT, PACKAGE_UNIT_AMOUNT)
        assert len(units) == 40
        assert sum(units) == PACKAGE_AMOUNT

    def test_remainder_becomes_last_unit(self):
        units = split_into_units(Decimal("500"), Decimal("200"))
        assert units == [Decimal("200"), Decimal("200"), Decimal("100")]

    def test_single_unit(self):
        assert split_into_units(Decimal("8000"), Decimal("8000")) == [Decimal("8000")]

    def test_non_positive_unit_rejected(self):
        with pytest.raises(ValueError):
            split_into_units(Decimal("100"), Decimal("0"))
