"""
Slot placement.

Puts a participant into a level queue, keeping their position identical
across levels whenever the position is free.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from donation_matrix.config.level_rules import get_level_rule
from donation_matrix.models.queue_slot import QueueSlot
from donation_matrix.repositories.queue_repository import QueueRepository
from donation_matrix.utils.exceptions import ErrorCode, MatrixValidationError


class SlotPlacer:
    """Ensures a participant holds a slot at a level."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize slot placer."""
        self.session = session
        self.queue_repo = QueueRepository(session)

    async def ensure_slot(
        self, participant_id: int, level: int, position: int
    ) -> QueueSlot:
        """
        Place a participant at ``position`` in ``level``.

        Idempotent: an existing slot at the level is returned unchanged. When
        another participant holds the position, the next free position above
        it is used.

        Args:
            participant_id: Participant ID
            level: Target level
            position: Preferred position (same as in the previous level)

        Returns:
            Participant's slot at the level
        """
        rule = get_level_rule(level)
        if rule is None:
            raise MatrixValidationError(
                f"Level {level} does not exist", code=ErrorCode.INVALID_LEVEL
            )

        existing = await self.queue_repo.get_slot(participant_id, level)
        if existing is not None:
            return existing

        await self.queue_repo.lock_level(level)
        target = await self.queue_repo.find_free_position(level, position)
        if target != position:
            logger.warning(
                "Position taken, participant placed at next free position",
                extra={
                    "participant_id": participant_id,
                    "level": level,
                    "requested_position": position,
                    "assigned_position": target,
                },
            )

        slot = await self.queue_repo.insert_slot(
            participant_id=participant_id,
            level=level,
            position=target,
            donations_required=rule.required_donation_count,
        )
        logger.info(
            "Participant placed in level queue",
            extra={
                "participant_id": participant_id,
                "level": level,
                "position": slot.position,
            },
        )
        return slot
