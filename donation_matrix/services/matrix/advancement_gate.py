"""
Sequential advancement gate.

Decides when a participant's recorded level moves up:

- Donor-side: once every upgrade obligation the donor owes is confirmed.
- Opt-in: ``accept_upgrade`` for a completed level, only after every
  earlier-positioned participant who also completed that level advanced.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from donation_matrix.config.level_rules import (
    MAX_LEVEL,
    UPGRADE_OBLIGATION_TYPES,
)
from donation_matrix.models.donation import Donation
from donation_matrix.models.enums import DonationStatus
from donation_matrix.models.participant import Participant
from donation_matrix.repositories.donation_repository import DonationRepository
from donation_matrix.repositories.participant_repository import (
    ParticipantRepository,
)
from donation_matrix.repositories.queue_repository import QueueRepository
from donation_matrix.services.matrix.placement import SlotPlacer
from donation_matrix.utils.exceptions import (
    ErrorCode,
    MatrixNotFoundError,
    MatrixValidationError,
)


class AdvancementGate:
    """Controls level advancement of participants."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize advancement gate."""
        self.session = session
        self.queue_repo = QueueRepository(session)
        self.donation_repo = DonationRepository(session)
        self.participant_repo = ParticipantRepository(session)
        self.placer = SlotPlacer(session)

    async def advance_donor_if_settled(self, donation: Donation) -> int | None:
        """
        Advance the donor one level once all upgrade obligations are paid.

        Args:
            donation: Donation that has just been confirmed

        Returns:
            New level, or None when the donor did not advance
        """
        if donation.status != DonationStatus.CONFIRMED.value:
            return None

        if donation.donation_type not in UPGRADE_OBLIGATION_TYPES:
            return None

        outstanding = await self.donation_repo.find_pending(
            donation.donor_id, UPGRADE_OBLIGATION_TYPES
        )
        if outstanding:
            logger.debug(
                "Donor still owes upgrade obligations",
                extra={
                    "donor_id": donation.donor_id,
                    "outstanding": len(outstanding),
                },
            )
            return None

        participant = await self.participant_repo.get_or_raise(
            donation.donor_id, for_update=True
        )
        from_level = participant.current_level
        if from_level >= MAX_LEVEL:
            return None

        new_level = from_level + 1
        await self.participant_repo.set_current_level(participant.id, new_level)

        logger.info(
            "Donor advanced after settling obligations",
            extra={
                "donor_id": participant.id,
                "from_level": from_level,
                "to_level": new_level,
                "donation_id": donation.id,
            },
        )
        return new_level

    async def accept_upgrade(
        self, participant_id: int, from_level: int, to_level: int
    ) -> Participant:
        """
        Advance a participant who completed ``from_level``, in position order.

        All conditions are checked before anything is written.

        Args:
            participant_id: Participant ID
            from_level: Completed level
            to_level: Requested level, must be ``from_level + 1``

        Returns:
            Updated participant

        Raises:
            MatrixNotFoundError: Participant or slot missing
            MatrixValidationError: A condition is not met
        """
        participant = await self.participant_repo.get_or_raise(participant_id)

        if to_level != from_level + 1 or from_level < 1 or to_level > MAX_LEVEL:
            raise MatrixValidationError(
                f"Cannot upgrade from level {from_level} to level {to_level}; "
                f"levels advance one at a time up to {MAX_LEVEL}",
                code=ErrorCode.INVALID_UPGRADE_SEQUENCE,
            )

        if participant.current_level >= to_level:
            raise MatrixValidationError(
                f"Participant {participant_id} is already at level "
                f"{participant.current_level}",
                code=ErrorCode.ALREADY_ADVANCED,
            )

        await self.queue_repo.lock_level(from_level)
        slot = await self.queue_repo.get_slot(participant_id, from_level)
        if slot is None:
            raise MatrixNotFoundError(
                f"Participant {participant_id} has no slot at level {from_level}",
                code=ErrorCode.SLOT_NOT_FOUND,
            )

        if not slot.level_completed:
            raise MatrixValidationError(
                f"Participant {participant_id} has not completed level {from_level}",
                code=ErrorCode.LEVEL_NOT_COMPLETED,
            )

        earlier = await self.queue_repo.get_completed_before(
            from_level, slot.position
        )
        levels = await self.participant_repo.get_levels(
            [s.participant_id for s in earlier]
        )
        waiting = [
            s for s in earlier if levels.get(s.participant_id, 0) <= from_level
        ]
        if waiting:
            positions = ", ".join(str(s.position) for s in waiting)
            raise MatrixValidationError(
                f"Participants at earlier positions ({positions}) completed "
                f"level {from_level} and must advance first",
                code=ErrorCode.EARLIER_PARTICIPANT_PENDING,
            )

        participant = await self.participant_repo.set_current_level(
            participant_id, to_level
        )
        await self.placer.ensure_slot(participant_id, to_level, slot.position)

        logger.info(
            "Upgrade accepted",
            extra={
                "participant_id": participant_id,
                "from_level": from_level,
                "to_level": to_level,
                "position": slot.position,
            },
        )
        return participant
