"""
Enumerations shared by models and services.
"""

from enum import Enum


class DonationType(str, Enum):
    """Kind of obligation a donation represents."""

    PULL = "PULL"
    CASCADE_N1 = "CASCADE_N1"
    UPGRADE_N2 = "UPGRADE_N2"
    REINJECTION_N2 = "REINJECTION_N2"
    UPGRADE_N3 = "UPGRADE_N3"
    REINFORCEMENT_N3 = "REINFORCEMENT_N3"
    ADM_N3 = "ADM_N3"
    FINAL_PAYMENT_N3 = "FINAL_PAYMENT_N3"


class DonationStatus(str, Enum):
    """Donation status lifecycle."""

    PENDING_PAYMENT = "PENDING_PAYMENT"
    PENDING_CONFIRMATION = "PENDING_CONFIRMATION"
    CONFIRMED = "CONFIRMED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"


PENDING_STATUSES = (
    DonationStatus.PENDING_PAYMENT,
    DonationStatus.PENDING_CONFIRMATION,
)

# Allowed forward transitions; CONFIRMED, EXPIRED and CANCELLED are terminal
STATUS_TRANSITIONS: dict[DonationStatus, tuple[DonationStatus, ...]] = {
    DonationStatus.PENDING_PAYMENT: (
        DonationStatus.PENDING_CONFIRMATION,
        DonationStatus.EXPIRED,
        DonationStatus.CANCELLED,
    ),
    DonationStatus.PENDING_CONFIRMATION: (
        DonationStatus.CONFIRMED,
        DonationStatus.EXPIRED,
        DonationStatus.CANCELLED,
    ),
    DonationStatus.CONFIRMED: (),
    DonationStatus.EXPIRED: (),
    DonationStatus.CANCELLED: (),
}
