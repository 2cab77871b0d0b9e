"""
Queue repository.

Data access layer for QueueSlot model: the positional queue of every level.
"""

from collections.abc import Iterable
from decimal import Decimal

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from donation_matrix.models.queue_slot import QueueSlot
from donation_matrix.repositories.base import BaseRepository
from donation_matrix.utils.datetime_utils import utc_now
from donation_matrix.utils.exceptions import ErrorCode, MatrixValidationError


class QueueRepository(BaseRepository[QueueSlot]):
    """Queue repository with positional queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize queue repository."""
        super().__init__(QueueSlot, session)

    async def lock_level(self, level: int) -> None:
        """
        Serialize read-modify-write of one level's queue.

        Locks every slot row of the level until the transaction ends.
        Concurrent next-receiver scans and inserts at the same level wait.

        Args:
            level: Level to lock
        """
        stmt = (
            select(QueueSlot.id)
            .where(QueueSlot.level == level)
            .order_by(QueueSlot.position.asc())
            .with_for_update()
        )
        await self.session.execute(stmt)

    async def get_slots_by_level(self, level: int) -> list[QueueSlot]:
        """
        Get all slots of a level ordered by position.

        Args:
            level: Level (1-3)

        Returns:
            Slots ordered by position ascending
        """
        stmt = (
            select(QueueSlot)
            .where(QueueSlot.level == level)
            .order_by(QueueSlot.position.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_slots_by_participant(
        self, participant_id: int
    ) -> list[QueueSlot]:
        """
        Get all slots held by a participant, lowest level first.

        Args:
            participant_id: Participant ID

        Returns:
            List of slots
        """
        stmt = (
            select(QueueSlot)
            .where(QueueSlot.participant_id == participant_id)
            .order_by(QueueSlot.level.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_slot(
        self, participant_id: int, level: int, for_update: bool = False
    ) -> QueueSlot | None:
        """
        Get the slot a participant holds at a level.

        Args:
            participant_id: Participant ID
            level: Level (1-3)
            for_update: Lock the row and reload it

        Returns:
            Slot or None
        """
        stmt = select(QueueSlot).where(
            QueueSlot.participant_id == participant_id,
            QueueSlot.level == level,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(
                populate_existing=True
            )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_slot_at(self, level: int, position: int) -> QueueSlot | None:
        """
        Get the slot at an exact position.

        Args:
            level: Level (1-3)
            position: Queue position

        Returns:
            Slot or None
        """
        return await self.get_by(level=level, position=position)

    async def get_max_position(self, level: int) -> int | None:
        """Get the highest position defined at a level."""
        stmt = select(func.max(QueueSlot.position)).where(
            QueueSlot.level == level
        )
        result = await self.session.execute(stmt)
        return result.scalar()

    async def insert_slot(
        self,
        participant_id: int,
        level: int,
        position: int,
        donations_required: int,
    ) -> QueueSlot:
        """
        Place a participant at an exact position.

        A vacant row at the position is re-occupied, keeping its audit trail.

        Args:
            participant_id: Participant ID
            level: Level (1-3)
            position: Target position
            donations_required: Completion quota for the level

        Returns:
            The occupied slot

        Raises:
            MatrixValidationError: Position held by another participant
        """
        existing = await self.get_slot_at(level, position)

        if existing is None:
            return await self.create(
                participant_id=participant_id,
                level=level,
                position=position,
                donations_required=donations_required,
                donations_received=0,
                total_received=Decimal("0"),
                passed_participant_ids=[],
            )

        if existing.participant_id is not None:
            raise MatrixValidationError(
                f"Position {position} at level {level} is already taken",
                code=ErrorCode.DUPLICATE_POSITION,
            )

        # Vacant row: new occupant starts from zero
        existing.participant_id = participant_id
        existing.donations_required = donations_required
        existing.donations_received = 0
        existing.total_received = Decimal("0")
        existing.level_completed = False
        existing.level_completed_at = None
        await self.session.flush()
        return existing

    async def find_free_position(self, level: int, start: int) -> int:
        """
        Find the first position at or above ``start`` with no occupant.

        Args:
            level: Level (1-3)
            start: Lowest acceptable position

        Returns:
            Free position (may be a vacant row or an undefined position)
        """
        stmt = (
            select(QueueSlot.position)
            .where(
                QueueSlot.level == level,
                QueueSlot.position >= start,
                QueueSlot.participant_id.is_not(None),
            )
            .order_by(QueueSlot.position.asc())
        )
        result = await self.session.execute(stmt)
        taken = set(result.scalars().all())

        position = start
        while position in taken:
            position += 1
        return position

    async def update_slot_counters(
        self, slot_id: int, donations_received: int, total_received: Decimal
    ) -> QueueSlot | None:
        """
        Set a slot's received count and total.

        Args:
            slot_id: Slot ID
            donations_received: New donation count
            total_received: New received total

        Returns:
            Updated slot or None
        """
        return await self.update(
            slot_id,
            donations_received=donations_received,
            total_received=total_received,
        )

    async def mark_level_completed(self, slot_id: int) -> bool:
        """
        Flag a slot's level as completed, once.

        Args:
            slot_id: Slot ID

        Returns:
            True if this call performed the transition
        """
        slot = await self.get_by_id(slot_id, for_update=True)
        if slot is None or slot.level_completed:
            return False

        slot.level_completed = True
        slot.level_completed_at = utc_now()
        await self.session.flush()
        return True

    async def clear_participant(self, slot_id: int) -> QueueSlot | None:
        """
        Vacate a slot, keeping the row and recording who left.

        Args:
            slot_id: Slot ID

        Returns:
            Updated slot, or None when the slot does not exist
        """
        slot = await self.get_by_id(slot_id, for_update=True)
        if slot is None:
            return None

        if slot.participant_id is not None:
            # New list so the JSON column is flagged dirty
            slot.passed_participant_ids = [
                *(slot.passed_participant_ids or []),
                slot.participant_id,
            ]
            slot.participant_id = None
            slot.is_receiver = False
            await self.session.flush()

        return slot

    async def find_next_receivers(
        self,
        level: int,
        limit: int = 1,
        exclude: Iterable[int] = (),
    ) -> list[QueueSlot]:
        """
        Get the lowest-position occupied slots that have not completed.

        Backed by the (level, level_completed, position) index.

        Args:
            level: Level (1-3)
            limit: Max number of slots
            exclude: Participant IDs to skip

        Returns:
            Slots ordered by position ascending
        """
        stmt = (
            select(QueueSlot)
            .where(
                QueueSlot.level == level,
                QueueSlot.level_completed.is_(False),
                QueueSlot.participant_id.is_not(None),
            )
            .order_by(QueueSlot.position.asc())
            .limit(limit)
        )
        excluded = list(exclude)
        if excluded:
            stmt = stmt.where(QueueSlot.participant_id.not_in(excluded))

        result = await self.session.execute(stmt)
        slots = list(result.scalars().all())

        logger.debug(
            "Next receivers scanned",
            extra={
                "level": level,
                "limit": limit,
                "found": [s.position for s in slots],
            },
        )
        return slots

    async def get_completed_before(
        self, level: int, position: int
    ) -> list[QueueSlot]:
        """
        Get occupied, completed slots positioned before ``position``.

        Args:
            level: Level (1-3)
            position: Exclusive upper bound

        Returns:
            Slots ordered by position ascending
        """
        stmt = (
            select(QueueSlot)
            .where(
                QueueSlot.level == level,
                QueueSlot.position < position,
                QueueSlot.level_completed.is_(True),
                QueueSlot.participant_id.is_not(None),
            )
            .order_by(QueueSlot.position.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_current_receiver(self, level: int) -> QueueSlot | None:
        """Get the slot carrying the legacy receiver marker."""
        stmt = select(QueueSlot).where(
            QueueSlot.level == level,
            QueueSlot.is_receiver.is_(True),
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()
