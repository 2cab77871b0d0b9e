"""
Queue service.

Administrative queue management: joining and leaving level queues, manual
reordering and queue statistics. Rows are never deleted; a participant who
leaves is recorded in the slot's passed list.
"""

from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from donation_matrix.config.level_rules import get_level_rule, is_valid_level
from donation_matrix.models.queue_slot import QueueSlot
from donation_matrix.repositories.participant_repository import (
    ParticipantRepository,
)
from donation_matrix.repositories.queue_repository import QueueRepository
from donation_matrix.services.base_service import BaseService, transaction
from donation_matrix.utils.exceptions import (
    ErrorCode,
    MatrixNotFoundError,
    MatrixValidationError,
)


@dataclass
class QueueStats:
    """Snapshot of one level queue."""

    level: int
    total_slots: int
    occupied_slots: int
    current_receiver: QueueSlot | None
    next_in_line: QueueSlot | None
    next_receiver: QueueSlot | None


class QueueService(BaseService):
    """Queue management service."""

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize queue service.

        Args:
            session: Async database session
        """
        super().__init__(session)
        self.queue_repo = QueueRepository(session)
        self.participant_repo = ParticipantRepository(session)

    @transaction
    async def join_queue(
        self, participant_id: int, level: int, position: int | None = None
    ) -> QueueSlot:
        """
        Add a participant to a level queue.

        Args:
            participant_id: Participant ID
            level: Level (1-3)
            position: Target position, appended after the last one if omitted

        Returns:
            Occupied slot

        Raises:
            MatrixValidationError: Already queued, bad position or taken
            MatrixNotFoundError: Unknown participant
        """
        self._check_level(level)
        await self.participant_repo.get_or_raise(participant_id)
        await self.queue_repo.lock_level(level)

        if await self.queue_repo.get_slot(participant_id, level) is not None:
            raise MatrixValidationError(
                f"Participant {participant_id} is already in the level {level} queue",
                code=ErrorCode.PARTICIPANT_ALREADY_QUEUED,
            )

        if position is None:
            position = (await self.queue_repo.get_max_position(level) or 0) + 1
        elif position < 1:
            raise MatrixValidationError(
                f"Position must be at least 1, got {position}",
                code=ErrorCode.INVALID_POSITION,
            )

        slot = await self.queue_repo.insert_slot(
            participant_id=participant_id,
            level=level,
            position=position,
            donations_required=get_level_rule(level).required_donation_count,
        )

        self.logger.info(
            "Participant joined queue",
            extra={
                "participant_id": participant_id,
                "level": level,
                "position": position,
            },
        )
        return slot

    @transaction
    async def leave_queue(self, participant_id: int, level: int) -> QueueSlot:
        """
        Remove a participant from a level queue, keeping the row.

        Args:
            participant_id: Participant ID
            level: Level (1-3)

        Returns:
            Vacated slot
        """
        self._check_level(level)
        await self.queue_repo.lock_level(level)

        slot = await self.queue_repo.get_slot(participant_id, level)
        if slot is None:
            raise MatrixNotFoundError(
                f"Participant {participant_id} is not in the level {level} queue",
                code=ErrorCode.SLOT_NOT_FOUND,
            )

        slot = await self.queue_repo.clear_participant(slot.id)
        self.logger.info(
            "Participant left queue",
            extra={
                "participant_id": participant_id,
                "level": level,
                "position": slot.position,
            },
        )
        return slot

    @transaction
    async def remove_from_slot(self, level: int, position: int) -> QueueSlot:
        """
        Admin removal of whoever holds a position.

        Args:
            level: Level (1-3)
            position: Queue position

        Returns:
            Vacated slot

        Raises:
            MatrixNotFoundError: No slot, or the slot is already vacant
        """
        self._check_level(level)
        await self.queue_repo.lock_level(level)

        slot = await self.queue_repo.get_slot_at(level, position)
        if slot is None or slot.participant_id is None:
            raise MatrixNotFoundError(
                f"No participant at position {position} of level {level}",
                code=ErrorCode.SLOT_NOT_FOUND,
            )

        removed = slot.participant_id
        slot = await self.queue_repo.clear_participant(slot.id)
        self.logger.info(
            "Participant removed from slot",
            extra={
                "participant_id": removed,
                "level": level,
                "position": position,
            },
        )
        return slot

    @transaction
    async def reorder_queue(
        self, level: int, new_order: dict[int, int]
    ) -> list[QueueSlot]:
        """
        Assign new positions to slots of a level.

        Args:
            level: Level (1-3)
            new_order: Slot ID to new position; positions must be 1..n

        Returns:
            All slots of the level, ordered by position

        Raises:
            MatrixValidationError: Positions not 1..n, or colliding with a
                slot left out of ``new_order``
            MatrixNotFoundError: A slot ID does not belong to the level
        """
        self._check_level(level)

        positions = sorted(new_order.values())
        if positions != list(range(1, len(positions) + 1)):
            raise MatrixValidationError(
                "Positions must be sequential starting from 1",
                code=ErrorCode.NON_SEQUENTIAL_ORDER,
            )

        await self.queue_repo.lock_level(level)
        slots = {s.id: s for s in await self.queue_repo.get_slots_by_level(level)}

        unknown = [slot_id for slot_id in new_order if slot_id not in slots]
        if unknown:
            raise MatrixNotFoundError(
                f"Slots {unknown} are not in the level {level} queue",
                code=ErrorCode.SLOT_NOT_FOUND,
            )

        kept = {
            s.position for slot_id, s in slots.items() if slot_id not in new_order
        }
        clash = sorted(kept.intersection(positions))
        if clash:
            raise MatrixValidationError(
                f"Positions {clash} are held by slots outside the new order",
                code=ErrorCode.DUPLICATE_POSITION,
            )

        # Park on negative positions first so the unique index never sees
        # two rows on one position mid-update
        for slot_id in new_order:
            slots[slot_id].position = -slot_id
        await self.session.flush()

        for slot_id, position in new_order.items():
            slots[slot_id].position = position
        await self.session.flush()

        self.logger.info(
            "Queue reordered",
            extra={"level": level, "slots": len(new_order)},
        )
        return await self.queue_repo.get_slots_by_level(level)

    @transaction
    async def swap_positions(
        self, first_participant_id: int, second_participant_id: int
    ) -> list[QueueSlot]:
        """
        Swap two participants in every level queue they share.

        Returns:
            Updated slots, two per shared level

        Raises:
            MatrixNotFoundError: A participant holds no slot
            MatrixValidationError: No shared level
        """
        first = {
            s.level: s
            for s in await self.queue_repo.get_slots_by_participant(
                first_participant_id
            )
        }
        second = {
            s.level: s
            for s in await self.queue_repo.get_slots_by_participant(
                second_participant_id
            )
        }

        for participant_id, held in (
            (first_participant_id, first),
            (second_participant_id, second),
        ):
            if not held:
                raise MatrixNotFoundError(
                    f"Participant {participant_id} is not in any queue",
                    code=ErrorCode.SLOT_NOT_FOUND,
                )

        common = sorted(set(first) & set(second))
        if not common:
            raise MatrixValidationError(
                "Participants are not in the same level queue",
                code=ErrorCode.NOT_IN_SAME_QUEUE,
            )

        updated: list[QueueSlot] = []
        for level in common:
            await self.queue_repo.lock_level(level)
            await self._swap_slots(first[level], second[level])
            updated.extend([first[level], second[level]])

        self.logger.info(
            "Positions swapped",
            extra={
                "first_participant_id": first_participant_id,
                "second_participant_id": second_participant_id,
                "levels": common,
            },
        )
        return updated

    @transaction
    async def move_up(self, participant_id: int, level: int) -> QueueSlot:
        """Move a participant one position towards the front."""
        slot = await self._get_locked_slot(participant_id, level)
        if slot.position <= 1:
            raise MatrixValidationError(
                f"Participant {participant_id} is already first in level {level}",
                code=ErrorCode.INVALID_POSITION,
            )
        return await self._move_to(slot, slot.position - 1)

    @transaction
    async def move_down(self, participant_id: int, level: int) -> QueueSlot:
        """Move a participant one position towards the back."""
        slot = await self._get_locked_slot(participant_id, level)
        max_position = await self.queue_repo.get_max_position(level)
        if slot.position >= max_position:
            raise MatrixValidationError(
                f"Participant {participant_id} is already last in level {level}",
                code=ErrorCode.INVALID_POSITION,
            )
        return await self._move_to(slot, slot.position + 1)

    @transaction
    async def move_to_end(self, participant_id: int, level: int) -> QueueSlot:
        """Move a participant behind the last position of the level."""
        slot = await self._get_locked_slot(participant_id, level)
        max_position = await self.queue_repo.get_max_position(level)
        if slot.position == max_position:
            return slot
        return await self._move_to(slot, max_position + 1)

    async def get_position(self, participant_id: int, level: int) -> int | None:
        """
        Get a participant's position in a level queue.

        Returns:
            Position, or None when the participant is not queued
        """
        slot = await self.queue_repo.get_slot(participant_id, level)
        return slot.position if slot else None

    async def get_queue_stats(self, level: int) -> QueueStats:
        """
        Get statistics for a level queue.

        ``next_in_line`` follows the legacy receiver marker (the slot right
        after it, or the first slot without a marker); ``next_receiver`` is
        the slot the engine pays next.

        Args:
            level: Level (1-3)

        Returns:
            Queue statistics
        """
        self._check_level(level)
        slots = await self.queue_repo.get_slots_by_level(level)
        current = await self.queue_repo.get_current_receiver(level)

        if current is not None:
            next_in_line = next(
                (s for s in slots if s.position == current.position + 1), None
            )
        else:
            next_in_line = slots[0] if slots else None

        next_receivers = await self.queue_repo.find_next_receivers(level)

        return QueueStats(
            level=level,
            total_slots=len(slots),
            occupied_slots=sum(1 for s in slots if s.is_occupied),
            current_receiver=current,
            next_in_line=next_in_line,
            next_receiver=next_receivers[0] if next_receivers else None,
        )

    async def _get_locked_slot(self, participant_id: int, level: int) -> QueueSlot:
        self._check_level(level)
        await self.queue_repo.lock_level(level)
        slot = await self.queue_repo.get_slot(participant_id, level)
        if slot is None:
            raise MatrixNotFoundError(
                f"Participant {participant_id} is not in the level {level} queue",
                code=ErrorCode.SLOT_NOT_FOUND,
            )
        return slot

    async def _move_to(self, slot: QueueSlot, position: int) -> QueueSlot:
        """Move a slot, swapping with whatever row holds the target."""
        other = await self.queue_repo.get_slot_at(slot.level, position)
        if other is None:
            slot.position = position
            await self.session.flush()
        else:
            await self._swap_slots(slot, other)

        self.logger.info(
            "Participant moved",
            extra={
                "participant_id": slot.participant_id,
                "level": slot.level,
                "position": slot.position,
            },
        )
        return slot

    async def _swap_slots(self, first: QueueSlot, second: QueueSlot) -> None:
        first_position, second_position = first.position, second.position

        first.position = -first.id
        await self.session.flush()
        second.position = first_position
        await self.session.flush()
        first.position = second_position
        await self.session.flush()

    @staticmethod
    def _check_level(level: int) -> None:
        if not is_valid_level(level):
            raise MatrixValidationError(
                f"Level {level} does not exist", code=ErrorCode.INVALID_LEVEL
            )
