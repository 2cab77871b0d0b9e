"""
Donation service.

Donation lifecycle driven by the two parties: the donor submits payment
proof, the receiver confirms (which hands the donation to the matrix
engine) or reports it as not received.
"""

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from donation_matrix.models.donation import Donation
from donation_matrix.models.enums import DonationStatus, DonationType
from donation_matrix.repositories.donation_repository import DonationRepository
from donation_matrix.repositories.participant_repository import (
    ParticipantRepository,
)
from donation_matrix.services.base_service import (
    BaseService,
    log_operation,
    transaction,
)
from donation_matrix.services.matrix.engine import (
    ConfirmationOutcome,
    MatrixEngine,
)
from donation_matrix.utils.datetime_utils import deadline_after, utc_now
from donation_matrix.utils.exceptions import (
    ErrorCode,
    MatrixNotFoundError,
    MatrixValidationError,
)


@dataclass
class DonationStats:
    """Ledger totals for one participant."""

    total_donated: Decimal
    total_received: Decimal
    pending_to_send: int
    pending_to_receive: int


class DonationService(BaseService):
    """Donation lifecycle service."""

    def __init__(
        self, session: AsyncSession, engine: MatrixEngine | None = None
    ) -> None:
        """
        Initialize donation service.

        Args:
            session: Async database session
            engine: Matrix engine sharing the session
        """
        super().__init__(session)
        self.donation_repo = DonationRepository(session)
        self.participant_repo = ParticipantRepository(session)
        self.engine = engine or MatrixEngine(session)

    @transaction
    async def create_donation(
        self,
        donor_id: int,
        receiver_id: int,
        amount: Decimal,
        type: DonationType = DonationType.PULL,
        deadline_days: int | None = None,
        notes: str | None = None,
    ) -> Donation:
        """
        Create a pending donation between two participants.

        Raises:
            MatrixNotFoundError: Unknown donor or receiver
            MatrixValidationError: Self-donation or non-positive amount
        """
        await self.participant_repo.get_or_raise(donor_id)
        await self.participant_repo.get_or_raise(receiver_id)

        if donor_id == receiver_id:
            raise MatrixValidationError(
                "A participant cannot donate to themselves",
                code=ErrorCode.INVALID_PARAMETER,
            )

        donation = await self.donation_repo.create_donation(
            donor_id=donor_id,
            receiver_id=receiver_id,
            amount=Decimal(amount),
            type=type,
            deadline=deadline_after(deadline_days),
            notes=notes,
        )
        self.logger.info(
            "Donation created",
            extra={
                "donation_id": donation.id,
                "donor_id": donor_id,
                "receiver_id": receiver_id,
                "amount": str(donation.amount),
                "type": donation.type,
            },
        )
        return donation

    @transaction
    async def submit_payment_proof(
        self, donation_id: int, donor_id: int, proof_url: str
    ) -> Donation:
        """
        Attach payment proof and wait for the receiver's confirmation.

        Args:
            donation_id: Donation ID
            donor_id: Acting participant, must be the donor
            proof_url: Location of the stored proof

        Returns:
            Donation in PENDING_CONFIRMATION
        """
        donation = await self._get_locked(donation_id)

        if donation.donor_id != donor_id:
            raise MatrixValidationError(
                "Only the donor can submit payment proof",
                code=ErrorCode.NOT_DONATION_PARTY,
            )
        if donation.status != DonationStatus.PENDING_PAYMENT.value:
            raise MatrixValidationError(
                f"Donation {donation_id} is not awaiting payment",
                code=ErrorCode.DONATION_NOT_PENDING,
            )

        donation.proof_url = proof_url
        await self.donation_repo.transition(
            donation, DonationStatus.PENDING_CONFIRMATION
        )

        self.logger.info(
            "Payment proof submitted",
            extra={"donation_id": donation_id, "donor_id": donor_id},
        )
        return donation

    @transaction
    @log_operation
    async def confirm_donation(
        self, donation_id: int, receiver_id: int
    ) -> ConfirmationOutcome:
        """
        Confirm receipt and run the matrix engine in the same transaction.

        The donation row is locked first, so of two concurrent confirmations
        the second finds it already CONFIRMED and fails.

        Args:
            donation_id: Donation ID
            receiver_id: Acting participant, must be the receiver

        Returns:
            Engine outcome for the confirmation

        Raises:
            MatrixValidationError: Wrong party or donation not awaiting
                confirmation
        """
        donation = await self._get_locked(donation_id)

        if donation.receiver_id != receiver_id:
            raise MatrixValidationError(
                "Only the receiver can confirm a donation",
                code=ErrorCode.NOT_DONATION_PARTY,
            )
        if donation.status != DonationStatus.PENDING_CONFIRMATION.value:
            raise MatrixValidationError(
                f"Donation {donation_id} is not awaiting confirmation",
                code=ErrorCode.DONATION_NOT_PENDING,
            )

        await self.donation_repo.transition(donation, DonationStatus.CONFIRMED)
        outcome = await self.engine.on_donation_confirmed(donation)

        self.logger.info(
            "Donation confirmed",
            extra={
                "donation_id": donation_id,
                "receiver_id": receiver_id,
                "level": outcome.level,
                "level_completed": outcome.newly_completed,
                "donor_new_level": outcome.donor_new_level,
            },
        )
        return outcome

    @transaction
    async def cancel_donation(self, donation_id: int) -> Donation:
        """
        Cancel a pending donation.

        Raises:
            MatrixValidationError: Donation already settled
        """
        donation = await self._get_locked(donation_id)
        if not donation.is_pending:
            raise MatrixValidationError(
                f"Donation {donation_id} is {donation.status} and cannot be cancelled",
                code=ErrorCode.DONATION_NOT_PENDING,
            )

        await self.donation_repo.transition(donation, DonationStatus.CANCELLED)
        self.logger.info("Donation cancelled", extra={"donation_id": donation_id})
        return donation

    @transaction
    async def report_not_received(
        self, donation_id: int, receiver_id: int, reason: str
    ) -> Donation:
        """
        Flag a donation whose payment proof the receiver disputes.

        Args:
            donation_id: Donation ID
            receiver_id: Acting participant, must be the receiver
            reason: Free-text reason

        Returns:
            Reported donation
        """
        donation = await self._get_locked(donation_id)

        if donation.receiver_id != receiver_id:
            raise MatrixValidationError(
                "Only the receiver can report a donation as not received",
                code=ErrorCode.NOT_DONATION_PARTY,
            )
        if donation.is_reported:
            raise MatrixValidationError(
                f"Donation {donation_id} has already been reported",
                code=ErrorCode.INVALID_STATUS_TRANSITION,
            )
        if donation.status != DonationStatus.PENDING_CONFIRMATION.value:
            raise MatrixValidationError(
                f"Donation {donation_id} is not awaiting confirmation",
                code=ErrorCode.DONATION_NOT_PENDING,
            )

        donation.is_reported = True
        donation.report_reason = reason
        donation.reported_at = utc_now()
        await self.session.flush()

        self.logger.warning(
            "Donation reported as not received",
            extra={"donation_id": donation_id, "receiver_id": receiver_id},
        )
        return donation

    async def get_stats(self, participant_id: int) -> DonationStats:
        """Get ledger totals for a participant."""
        await self.participant_repo.get_or_raise(participant_id)

        return DonationStats(
            total_donated=await self.donation_repo.sum_confirmed(
                donor_id=participant_id
            ),
            total_received=await self.donation_repo.sum_confirmed(
                receiver_id=participant_id
            ),
            pending_to_send=await self.donation_repo.count_pending(
                donor_id=participant_id,
                statuses=(DonationStatus.PENDING_PAYMENT,),
            ),
            pending_to_receive=await self.donation_repo.count_pending(
                receiver_id=participant_id
            ),
        )

    async def _get_locked(self, donation_id: int) -> Donation:
        donation = await self.donation_repo.get_by_id(donation_id, for_update=True)
        if donation is None:
            raise MatrixNotFoundError(
                f"Donation {donation_id} not found",
                code=ErrorCode.DONATION_NOT_FOUND,
            )
        return donation
