"""
Single source of truth for the matrix level configuration.

Each level has its own queue, unit amount and completion quota. Completing a
level triggers an upgrade payment into the next level and a pay-forward
(cascade, reinjection or final payment) inside the matrix.
"""

from decimal import Decimal
from typing import NamedTuple

from donation_matrix.models.enums import DonationType


MIN_LEVEL = 1
MAX_LEVEL = 3

# N1 cascade receivers: every block of 3 positions feeds one slot from 34 up
CASCADE_N1_BLOCK_SIZE = 3
CASCADE_N1_BASE_POSITION = 34

# Package of 8000 reinjected into N2 every Nth confirmed N3 upgrade
PACKAGE_AMOUNT = Decimal("8000")
PACKAGE_UNIT_AMOUNT = Decimal("200")
PACKAGE_TYPE = DonationType.REINJECTION_N2
PACKAGE_LEVEL = 2

# Obligations that must be paid before the donor's level moves up
UPGRADE_OBLIGATION_TYPES = (
    DonationType.UPGRADE_N2,
    DonationType.CASCADE_N1,
    DonationType.UPGRADE_N3,
    DonationType.REINJECTION_N2,
)


class LevelRule(NamedTuple):
    """Static configuration of a matrix level."""

    level: int
    display_name: str
    unit_amount: Decimal
    required_donation_count: int
    upgrade_amount: Decimal | None  # paid into level + 1
    upgrade_type: DonationType | None
    payout_amount: Decimal  # cascade, reinjection or final payment total
    payout_unit_amount: Decimal  # size of each generated donation
    payout_type: DonationType


LEVEL_RULES: dict[int, LevelRule] = {
    1: LevelRule(
        level=1,
        display_name="N1",
        unit_amount=Decimal("100"),
        required_donation_count=3,
        upgrade_amount=Decimal("200"),
        upgrade_type=DonationType.UPGRADE_N2,
        payout_amount=Decimal("100"),
        payout_unit_amount=Decimal("100"),
        payout_type=DonationType.CASCADE_N1,
    ),
    2: LevelRule(
        level=2,
        display_name="N2",
        unit_amount=Decimal("200"),
        required_donation_count=18,
        upgrade_amount=Decimal("1600"),
        upgrade_type=DonationType.UPGRADE_N3,
        payout_amount=Decimal("2000"),
        payout_unit_amount=Decimal("200"),
        payout_type=DonationType.REINJECTION_N2,
    ),
    3: LevelRule(
        level=3,
        display_name="N3",
        unit_amount=Decimal("1600"),
        required_donation_count=27,
        upgrade_amount=None,
        upgrade_type=None,
        payout_amount=Decimal("8000"),
        payout_unit_amount=Decimal("8000"),
        payout_type=DonationType.FINAL_PAYMENT_N3,
    ),
}


def get_level_rule(level: int) -> LevelRule | None:
    """
    Get the rule for a level.

    Args:
        level: Level number (1-3)

    Returns:
        Level rule or None if the level does not exist
    """
    return LEVEL_RULES.get(level)


def is_valid_level(level: int) -> bool:
    """Check that a level number is part of the matrix."""
    return level in LEVEL_RULES


def get_level_by_amount(amount: Decimal) -> int:
    """
    Map a donation amount back to the level whose slot it credits.

    Unrecognised amounts fall back to level 1; existing flows rely on it.

    Args:
        amount: Donation amount

    Returns:
        Level number
    """
    for rule in LEVEL_RULES.values():
        if Decimal(amount) == rule.unit_amount:
            return rule.level
    return MIN_LEVEL


def cascade_receiver_position(donor_position: int) -> int:
    """
    Compute the N1 cascade receiver position for a donor position.

    Positions 1-3 feed 34, 4-6 feed 35, ..., 100 feeds 67.
    """
    return (donor_position - 1) // CASCADE_N1_BLOCK_SIZE + CASCADE_N1_BASE_POSITION


def split_into_units(total: Decimal, unit: Decimal) -> list[Decimal]:
    """
    Split a payout total into donation units.

    A remainder smaller than one unit becomes a final, smaller donation.
    """
    if unit <= 0:
        raise ValueError("unit must be positive")
    units = [unit] * int(total // unit)
    remainder = total - unit * len(units)
    if remainder > 0:
        units.append(remainder)
    return units
