"""
Receiver selection.

Chooses who receives donations generated by the engine: the "next receiver"
(lowest-position open slot) or, for the N1 cascade, the slot computed from
the donor's position.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from donation_matrix.config.level_rules import cascade_receiver_position
from donation_matrix.models.queue_slot import QueueSlot
from donation_matrix.repositories.queue_repository import QueueRepository
from donation_matrix.utils.exceptions import NoEligibleReceiverError


class ReceiverSelector:
    """Picks receiver slots for generated donations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize receiver selector."""
        self.session = session
        self.queue_repo = QueueRepository(session)

    async def next_receiver(
        self, level: int, exclude: set[int] | None = None
    ) -> QueueSlot:
        """
        Get the lowest-position occupied slot that has not completed.

        Args:
            level: Level (1-3)
            exclude: Participant IDs that may not receive (the donor)

        Returns:
            Receiver slot

        Raises:
            NoEligibleReceiverError: No open slot at the level
        """
        slots = await self.queue_repo.find_next_receivers(
            level, limit=1, exclude=exclude or ()
        )
        if not slots:
            raise NoEligibleReceiverError(
                f"No eligible receiver at level {level}"
            )
        return slots[0]

    async def next_receivers(
        self, level: int, count: int, exclude: set[int] | None = None
    ) -> list[QueueSlot]:
        """
        Get receivers for ``count`` donation units.

        Units go to successive open slots in position order; when there are
        fewer slots than units the assignment wraps round to the first one.

        Args:
            level: Level (1-3)
            count: Number of units to place
            exclude: Participant IDs that may not receive

        Returns:
            One slot per unit

        Raises:
            NoEligibleReceiverError: No open slot at the level
        """
        slots = await self.queue_repo.find_next_receivers(
            level, limit=count, exclude=exclude or ()
        )
        if not slots:
            raise NoEligibleReceiverError(
                f"No eligible receiver at level {level}"
            )
        if len(slots) < count:
            logger.info(
                "Fewer open slots than units, wrapping round",
                extra={"level": level, "units": count, "slots": len(slots)},
            )
        return [slots[i % len(slots)] for i in range(count)]

    async def cascade_receiver(
        self, donor_position: int, donor_id: int, level: int = 1
    ) -> QueueSlot:
        """
        Get the N1 cascade receiver computed from the donor's position.

        Args:
            donor_position: Donor's N1 position
            donor_id: Donor participant ID
            level: Level holding the receiver slot

        Returns:
            Receiver slot

        Raises:
            NoEligibleReceiverError: Slot missing, vacant or the donor's own
        """
        position = cascade_receiver_position(donor_position)
        slot = await self.queue_repo.get_slot_at(level, position)

        if slot is None or slot.participant_id is None:
            raise NoEligibleReceiverError(
                f"No occupied slot at cascade position {position} "
                f"(donor position {donor_position})"
            )
        if slot.participant_id == donor_id:
            raise NoEligibleReceiverError(
                f"Cascade position {position} belongs to the donor"
            )
        return slot
