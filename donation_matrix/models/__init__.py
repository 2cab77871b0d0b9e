"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from donation_matrix.models.base import Base
from donation_matrix.models.donation import Donation
from donation_matrix.models.enums import (
    PENDING_STATUSES,
    DonationStatus,
    DonationType,
)
from donation_matrix.models.participant import Participant
from donation_matrix.models.queue_slot import QueueSlot


__all__ = [
    # Base
    "Base",
    # Enums
    "DonationStatus",
    "DonationType",
    "PENDING_STATUSES",
    # Models
    "Donation",
    "Participant",
    "QueueSlot",
]
