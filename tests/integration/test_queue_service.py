"""
Integration tests for QueueService.

Tests cover:
- Joining and leaving level queues
- Manual reordering, swaps and moves
- Queue statistics
"""

import pytest

from donation_matrix.services.queue_service import QueueService
from donation_matrix.utils.exceptions import (
    ErrorCode,
    MatrixNotFoundError,
    MatrixValidationError,
)


class TestJoinAndLeave:
    """Test queue membership."""

    @pytest.mark.asyncio
    async def test_join_appends_after_last(self, session, make_participants):
        first, second = await make_participants(2)
        service = QueueService(session)

        slot_a = await service.join_queue(first.id, 1)
        slot_b = await service.join_queue(second.id, 1)

        assert slot_a.position == 1
        assert slot_b.position == 2
        assert slot_b.donations_required == 3

    @pytest.mark.asyncio
    async def test_join_at_position(self, session, make_participants):
        [participant] = await make_participants(1)

        slot = await QueueService(session).join_queue(participant.id, 2, position=40)

        assert slot.position == 40
        assert slot.donations_required == 18

    @pytest.mark.asyncio
    async def test_join_twice_rejected(self, session, make_participants):
        [participant] = await make_participants(1)
        service = QueueService(session)
        await service.join_queue(participant.id, 1)

        with pytest.raises(MatrixValidationError) as exc_info:
            await service.join_queue(participant.id, 1)
        assert exc_info.value.code == ErrorCode.PARTICIPANT_ALREADY_QUEUED

    @pytest.mark.asyncio
    async def test_position_taken_rejected(self, session, make_participants):
        first, second = await make_participants(2)
        service = QueueService(session)
        await service.join_queue(first.id, 1, position=3)

        with pytest.raises(MatrixValidationError) as exc_info:
            await service.join_queue(second.id, 1, position=3)
        assert exc_info.value.code == ErrorCode.DUPLICATE_POSITION

    @pytest.mark.asyncio
    async def test_invalid_position_and_level(self, session, make_participants):
        [participant] = await make_participants(1)
        participant_id = participant.id
        service = QueueService(session)

        with pytest.raises(MatrixValidationError) as exc_info:
            await service.join_queue(participant_id, 1, position=0)
        assert exc_info.value.code == ErrorCode.INVALID_POSITION

        with pytest.raises(MatrixValidationError) as exc_info:
            await service.join_queue(participant_id, 5)
        assert exc_info.value.code == ErrorCode.INVALID_LEVEL

    @pytest.mark.asyncio
    async def test_unknown_participant(self, session):
        with pytest.raises(MatrixNotFoundError):
            await QueueService(session).join_queue(999, 1)

    @pytest.mark.asyncio
    async def test_leave_keeps_row_and_history(self, session, make_participants):
        [participant] = await make_participants(1)
        service = QueueService(session)
        await service.join_queue(participant.id, 1)

        slot = await service.leave_queue(participant.id, 1)

        assert slot.participant_id is None
        assert slot.passed_participant_ids == [participant.id]
        assert await service.get_position(participant.id, 1) is None

    @pytest.mark.asyncio
    async def test_vacant_row_reoccupied(self, session, make_participants):
        """Joining a vacated position reuses the row with fresh counters."""
        first, second = await make_participants(2)
        service = QueueService(session)
        original = await service.join_queue(first.id, 1, position=4)
        original.donations_received = 2
        await service.leave_queue(first.id, 1)

        slot = await service.join_queue(second.id, 1, position=4)

        assert slot.id == original.id
        assert slot.participant_id == second.id
        assert slot.donations_received == 0
        assert slot.passed_participant_ids == [first.id]

    @pytest.mark.asyncio
    async def test_leave_when_not_queued(self, session, make_participants):
        [participant] = await make_participants(1)

        with pytest.raises(MatrixNotFoundError) as exc_info:
            await QueueService(session).leave_queue(participant.id, 1)
        assert exc_info.value.code == ErrorCode.SLOT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_admin_removal(self, session, make_participants, fill_level):
        participants = await make_participants(3)
        await fill_level(1, participants)
        service = QueueService(session)

        slot = await service.remove_from_slot(1, 2)

        assert slot.participant_id is None
        assert slot.passed_participant_ids == [participants[1].id]
        with pytest.raises(MatrixNotFoundError):
            await service.remove_from_slot(1, 2)


class TestReordering:
    """Test manual position changes."""

    @pytest.mark.asyncio
    async def test_reorder(self, session, make_participants, fill_level):
        participants = await make_participants(3)
        slots = await fill_level(1, participants)

        result = await QueueService(session).reorder_queue(
            1, {slots[0].id: 3, slots[1].id: 1, slots[2].id: 2}
        )

        assert [s.participant_id for s in result] == [
            participants[1].id,
            participants[2].id,
            participants[0].id,
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("positions", [(1, 3), (2, 3), (1, 1), (0, 1)])
    async def test_reorder_requires_sequential_positions(
        self, session, make_participants, fill_level, positions
    ):
        participants = await make_participants(2)
        slots = await fill_level(1, participants)

        with pytest.raises(MatrixValidationError) as exc_info:
            await QueueService(session).reorder_queue(
                1, {slots[0].id: positions[0], slots[1].id: positions[1]}
            )
        assert exc_info.value.code == ErrorCode.NON_SEQUENTIAL_ORDER

    @pytest.mark.asyncio
    async def test_reorder_collision_with_untouched_slot(
        self, session, make_participants, fill_level
    ):
        participants = await make_participants(3)
        slots = await fill_level(1, participants)

        with pytest.raises(MatrixValidationError) as exc_info:
            await QueueService(session).reorder_queue(
                1, {slots[1].id: 1, slots[2].id: 2}
            )
        assert exc_info.value.code == ErrorCode.DUPLICATE_POSITION

    @pytest.mark.asyncio
    async def test_swap_across_shared_levels(
        self, session, make_participants, fill_level
    ):
        participants = await make_participants(4)
        await fill_level(1, participants)
        await fill_level(2, [participants[0], participants[3]])
        service = QueueService(session)
        a, d = participants[0], participants[3]

        updated = await service.swap_positions(a.id, d.id)

        assert len(updated) == 4
        assert await service.get_position(a.id, 1) == 4
        assert await service.get_position(d.id, 1) == 1
        assert await service.get_position(a.id, 2) == 2
        assert await service.get_position(d.id, 2) == 1

    @pytest.mark.asyncio
    async def test_swap_without_shared_level(
        self, session, make_participants, fill_level
    ):
        first, second = await make_participants(2)
        await fill_level(1, [first])
        await fill_level(2, [second])

        with pytest.raises(MatrixValidationError) as exc_info:
            await QueueService(session).swap_positions(first.id, second.id)
        assert exc_info.value.code == ErrorCode.NOT_IN_SAME_QUEUE

    @pytest.mark.asyncio
    async def test_swap_with_unqueued_participant(
        self, session, make_participants, fill_level
    ):
        first, second = await make_participants(2)
        await fill_level(1, [first])

        with pytest.raises(MatrixNotFoundError):
            await QueueService(session).swap_positions(first.id, second.id)

    @pytest.mark.asyncio
    async def test_move_up_down_and_to_end(
        self, session, make_participants, fill_level
    ):
        participants = await make_participants(4)
        await fill_level(1, participants)
        service = QueueService(session)
        target = participants[2]

        await service.move_up(target.id, 1)
        assert await service.get_position(target.id, 1) == 2
        assert await service.get_position(participants[1].id, 1) == 3

        await service.move_down(target.id, 1)
        assert await service.get_position(target.id, 1) == 3

        await service.move_to_end(participants[0].id, 1)
        assert await service.get_position(participants[0].id, 1) == 5

    @pytest.mark.asyncio
    async def test_move_past_edges_rejected(
        self, session, make_participants, fill_level
    ):
        participants = await make_participants(2)
        await fill_level(1, participants)
        first_id, last_id = participants[0].id, participants[1].id
        service = QueueService(session)

        with pytest.raises(MatrixValidationError):
            await service.move_up(first_id, 1)
        with pytest.raises(MatrixValidationError):
            await service.move_down(last_id, 1)


class TestQueueStats:
    """Test queue statistics."""

    @pytest.mark.asyncio
    async def test_stats(self, session, make_participants, fill_level):
        participants = await make_participants(4)
        slots = await fill_level(1, participants)
        slots[0].level_completed = True
        slots[1].is_receiver = True
        await session.flush()
        service = QueueService(session)
        await service.leave_queue(participants[3].id, 1)

        stats = await service.get_queue_stats(1)

        assert stats.total_slots == 4
        assert stats.occupied_slots == 3
        assert stats.current_receiver.position == 2
        assert stats.next_in_line.position == 3
        assert stats.next_receiver.position == 2

    @pytest.mark.asyncio
    async def test_stats_of_empty_queue(self, session):
        stats = await QueueService(session).get_queue_stats(3)

        assert stats.total_slots == 0
        assert stats.current_receiver is None
        assert stats.next_in_line is None
        assert stats.next_receiver is None
