"""
Progress tracker.

Counts the confirmed donations a queue slot receives and detects when the
level's quota is met.
"""

from dataclasses import dataclass
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from donation_matrix.models.queue_slot import QueueSlot
from donation_matrix.repositories.queue_repository import QueueRepository


@dataclass
class CompletionState:
    """Completion of one (participant, level) slot."""

    completed: bool
    just_completed: bool = False
    slot: QueueSlot | None = None


class ProgressTracker:
    """Updates slot counters and flags level completion."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize progress tracker."""
        self.session = session
        self.queue_repo = QueueRepository(session)

    async def record_receipt(
        self, participant_id: int, level: int, amount: Decimal
    ) -> QueueSlot | None:
        """
        Credit one confirmed donation to the participant's slot.

        Must run exactly once per confirmed donation; the ledger's status
        transition guarantees that.

        Args:
            participant_id: Receiving participant
            level: Level whose slot is credited
            amount: Donation amount

        Returns:
            Updated slot, or None when the participant is not in that queue
        """
        slot = await self.queue_repo.get_slot(
            participant_id, level, for_update=True
        )
        if slot is None:
            logger.info(
                "Receipt not tracked: participant has no slot at level",
                extra={"participant_id": participant_id, "level": level},
            )
            return None

        slot = await self.queue_repo.update_slot_counters(
            slot.id,
            donations_received=slot.donations_received + 1,
            total_received=slot.total_received + Decimal(amount),
        )

        logger.debug(
            "Receipt recorded",
            extra={
                "participant_id": participant_id,
                "level": level,
                "position": slot.position,
                "received": slot.donations_received,
                "required": slot.donations_required,
            },
        )
        return slot

    async def evaluate_completion(
        self, participant_id: int, level: int
    ) -> CompletionState:
        """
        Check completion and flag it the first time the quota is met.

        Args:
            participant_id: Participant ID
            level: Level (1-3)

        Returns:
            Completion state; ``just_completed`` is True only for the call
            that performed the transition
        """
        slot = await self.queue_repo.get_slot(
            participant_id, level, for_update=True
        )
        if slot is None:
            return CompletionState(completed=False)

        if slot.level_completed:
            return CompletionState(completed=True, slot=slot)

        if slot.donations_received < slot.donations_required:
            return CompletionState(completed=False, slot=slot)

        just_completed = await self.queue_repo.mark_level_completed(slot.id)
        if just_completed:
            logger.info(
                "Level completed",
                extra={
                    "participant_id": participant_id,
                    "level": level,
                    "position": slot.position,
                    "received": slot.donations_received,
                },
            )
        return CompletionState(
            completed=True, just_completed=just_completed, slot=slot
        )

    async def check_completion(self, participant_id: int, level: int) -> bool:
        """
        Check whether the participant has completed a level.

        Idempotent: after the first transition every call returns True and
        the completion timestamp is left untouched.
        """
        state = await self.evaluate_completion(participant_id, level)
        return state.completed
