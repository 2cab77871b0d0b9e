"""
Donation repository.

Data access layer for Donation model: the append-only donation ledger.
"""

from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from donation_matrix.models.donation import Donation
from donation_matrix.models.enums import (
    PENDING_STATUSES,
    STATUS_TRANSITIONS,
    DonationStatus,
    DonationType,
)
from donation_matrix.repositories.base import BaseRepository
from donation_matrix.utils.datetime_utils import utc_now
from donation_matrix.utils.exceptions import ErrorCode, MatrixValidationError


class DonationRepository(BaseRepository[Donation]):
    """Donation repository with ledger queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize donation repository."""
        super().__init__(Donation, session)

    async def create_donation(
        self,
        donor_id: int,
        receiver_id: int,
        amount: Decimal,
        type: DonationType,
        deadline: datetime | None = None,
        notes: str | None = None,
    ) -> Donation:
        """
        Append a pending donation to the ledger.

        Args:
            donor_id: Paying participant
            receiver_id: Receiving participant
            amount: Amount, must be positive
            type: Donation type
            deadline: Optional payment deadline
            notes: Optional free text

        Returns:
            Created donation in PENDING_PAYMENT
        """
        if amount <= 0:
            raise MatrixValidationError(
                f"Donation amount must be positive, got {amount}",
                code=ErrorCode.INVALID_AMOUNT,
            )

        return await self.create(
            donor_id=donor_id,
            receiver_id=receiver_id,
            amount=amount,
            type=DonationType(type).value,
            status=DonationStatus.PENDING_PAYMENT.value,
            deadline=deadline,
            notes=notes,
        )

    async def find_pending(
        self, donor_id: int, types: Iterable[DonationType]
    ) -> list[Donation]:
        """
        Get a donor's outstanding donations of the given types.

        Args:
            donor_id: Donor participant ID
            types: Donation types to include

        Returns:
            Donations in PENDING_PAYMENT or PENDING_CONFIRMATION
        """
        stmt = select(Donation).where(
            Donation.donor_id == donor_id,
            Donation.type.in_([DonationType(t).value for t in types]),
            Donation.status.in_([s.value for s in PENDING_STATUSES]),
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def has_open_between(self, donor_id: int, receiver_id: int) -> bool:
        """
        Check for a pending donation between a donor and a receiver.

        Args:
            donor_id: Donor participant ID
            receiver_id: Receiver participant ID

        Returns:
            True if one exists
        """
        stmt = (
            select(func.count())
            .select_from(Donation)
            .where(
                Donation.donor_id == donor_id,
                Donation.receiver_id == receiver_id,
                Donation.status.in_([s.value for s in PENDING_STATUSES]),
            )
        )
        result = await self.session.execute(stmt)
        return (result.scalar() or 0) > 0

    async def count_confirmed(
        self, type: DonationType, since: datetime
    ) -> int:
        """
        Count confirmed donations of a type completed since a moment.

        Args:
            type: Donation type
            since: Inclusive lower bound on completed_at

        Returns:
            Count of donations
        """
        stmt = (
            select(func.count())
            .select_from(Donation)
            .where(
                Donation.type == DonationType(type).value,
                Donation.status == DonationStatus.CONFIRMED.value,
                Donation.completed_at >= since,
            )
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def transition(
        self, donation: Donation, new_status: DonationStatus
    ) -> Donation:
        """
        Move a donation along its status lifecycle.

        Args:
            donation: Donation (ideally locked by the caller)
            new_status: Target status

        Returns:
            Updated donation

        Raises:
            MatrixValidationError: Transition not allowed from current status
        """
        current = DonationStatus(donation.status)
        if new_status not in STATUS_TRANSITIONS[current]:
            raise MatrixValidationError(
                f"Donation {donation.id} cannot move from "
                f"{current.value} to {new_status.value}",
                code=ErrorCode.INVALID_STATUS_TRANSITION,
            )

        donation.status = new_status.value
        if new_status == DonationStatus.CONFIRMED:
            donation.completed_at = utc_now()

        await self.session.flush()
        return donation

    async def sum_confirmed(
        self,
        donor_id: int | None = None,
        receiver_id: int | None = None,
    ) -> Decimal:
        """
        Sum confirmed amounts sent by a donor or received by a receiver.

        Args:
            donor_id: Filter by donor
            receiver_id: Filter by receiver

        Returns:
            Total confirmed amount
        """
        stmt = select(func.coalesce(func.sum(Donation.amount), 0)).where(
            Donation.status == DonationStatus.CONFIRMED.value
        )
        if donor_id is not None:
            stmt = stmt.where(Donation.donor_id == donor_id)
        if receiver_id is not None:
            stmt = stmt.where(Donation.receiver_id == receiver_id)

        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar() or 0))

    async def count_pending(
        self,
        donor_id: int | None = None,
        receiver_id: int | None = None,
        statuses: Iterable[DonationStatus] = PENDING_STATUSES,
    ) -> int:
        """
        Count open donations of a donor or a receiver.

        Args:
            donor_id: Filter by donor
            receiver_id: Filter by receiver
            statuses: Statuses counted as open

        Returns:
            Count of donations
        """
        stmt = (
            select(func.count())
            .select_from(Donation)
            .where(Donation.status.in_([s.value for s in statuses]))
        )
        if donor_id is not None:
            stmt = stmt.where(Donation.donor_id == donor_id)
        if receiver_id is not None:
            stmt = stmt.where(Donation.receiver_id == receiver_id)

        result = await self.session.execute(stmt)
        return result.scalar() or 0
