"""
Services.

Business logic layer.
"""

from donation_matrix.services.base_service import (
    BaseService,
    log_operation,
    transaction,
)
from donation_matrix.services.donation_service import DonationService
from donation_matrix.services.matrix import MatrixEngine
from donation_matrix.services.queue_service import QueueService, QueueStats

__all__ = [
    "BaseService",
    "DonationService",
    "MatrixEngine",
    "QueueService",
    "QueueStats",
    "log_operation",
    "transaction",
]
