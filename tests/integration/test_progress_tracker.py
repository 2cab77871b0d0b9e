"""Integration tests for slot progress tracking."""

from decimal import Decimal

import pytest

from donation_matrix.services.matrix.progress_tracker import ProgressTracker


class TestProgressTracker:
    """Test receipt counting and completion detection."""

    @pytest.mark.asyncio
    async def test_completion_flagged_once(
        self, session, make_participants, fill_level
    ):
        """The quota flips completion exactly once; later calls are stable."""
        [participant] = await make_participants(1)
        await fill_level(1, [participant])
        tracker = ProgressTracker(session)

        for _ in range(2):
            await tracker.record_receipt(participant.id, 1, Decimal("100"))
        state = await tracker.evaluate_completion(participant.id, 1)
        assert state.completed is False

        await tracker.record_receipt(participant.id, 1, Decimal("100"))
        state = await tracker.evaluate_completion(participant.id, 1)
        assert state.completed is True
        assert state.just_completed is True
        assert state.slot.donations_received == 3
        assert state.slot.total_received == Decimal("300")

        second = await tracker.evaluate_completion(participant.id, 1)
        first_completed_at = second.slot.level_completed_at
        third = await tracker.evaluate_completion(participant.id, 1)

        assert second.completed is True
        assert second.just_completed is False
        assert third.just_completed is False
        assert first_completed_at is not None
        assert third.slot.level_completed_at == first_completed_at
        assert await tracker.check_completion(participant.id, 1) is True

    @pytest.mark.asyncio
    async def test_receipts_past_quota_keep_counting(
        self, session, make_participants, fill_level
    ):
        [participant] = await make_participants(1)
        await fill_level(1, [participant])
        tracker = ProgressTracker(session)

        for _ in range(4):
            await tracker.record_receipt(participant.id, 1, Decimal("100"))
        state = await tracker.evaluate_completion(participant.id, 1)

        assert state.just_completed is True
        assert state.slot.donations_received == 4

    @pytest.mark.asyncio
    async def test_receipt_without_slot_not_tracked(
        self, session, make_participants
    ):
        """A receiver who is not in the level queue is ignored."""
        [participant] = await make_participants(1)
        tracker = ProgressTracker(session)

        slot = await tracker.record_receipt(participant.id, 2, Decimal("200"))
        state = await tracker.evaluate_completion(participant.id, 2)

        assert slot is None
        assert state.completed is False
        assert state.slot is None
