"""Data access layer."""

from donation_matrix.repositories.donation_repository import DonationRepository
from donation_matrix.repositories.participant_repository import ParticipantRepository
from donation_matrix.repositories.queue_repository import QueueRepository


__all__ = [
    "DonationRepository",
    "ParticipantRepository",
    "QueueRepository",
]
