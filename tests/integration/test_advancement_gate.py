"""
Integration tests for level advancement.

Tests cover:
- Donor-side advancement once all upgrade obligations are confirmed
- Opt-in upgrade acceptance in position order
"""

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import update

from donation_matrix.models import QueueSlot
from donation_matrix.models.enums import DonationType
from donation_matrix.services.donation_service import DonationService
from donation_matrix.services.matrix.engine import MatrixEngine
from donation_matrix.utils.exceptions import (
    ErrorCode,
    MatrixNotFoundError,
    MatrixValidationError,
)


@pytest_asyncio.fixture
async def matrix(make_participants, fill_level):
    participants = await make_participants(100)
    await fill_level(1, participants)
    await fill_level(2, participants[:5])
    return participants


async def _mark_completed(session, level: int, positions: list[int]) -> None:
    await session.execute(
        update(QueueSlot)
        .where(QueueSlot.level == level, QueueSlot.position.in_(positions))
        .values(level_completed=True)
        .execution_options(synchronize_session="fetch")
    )
    await session.flush()


class TestDonorSideAdvancement:
    """Test advancement after paying upgrade obligations."""

    @pytest.mark.asyncio
    async def test_advances_after_last_obligation(
        self, session, matrix, add_donation
    ):
        """Position 7 owes an upgrade and a cascade; level moves after both."""
        service = DonationService(session)
        participant = matrix[6]
        for donor in matrix[19:22]:
            donation = await add_donation(donor, participant, "100")
            outcome = await service.confirm_donation(donation.id, participant.id)
        upgrade, cascade = outcome.generation.created

        await service.submit_payment_proof(upgrade.id, participant.id, "proof/1")
        first = await service.confirm_donation(upgrade.id, upgrade.receiver_id)

        assert first.donor_new_level is None
        assert participant.current_level == 1

        await service.submit_payment_proof(cascade.id, participant.id, "proof/2")
        second = await service.confirm_donation(cascade.id, cascade.receiver_id)

        assert second.donor_new_level == 2
        assert participant.current_level == 2

    @pytest.mark.asyncio
    async def test_non_obligation_does_not_advance(
        self, session, matrix, add_donation
    ):
        donation = await add_donation(matrix[10], matrix[11], "100")

        outcome = await DonationService(session).confirm_donation(
            donation.id, matrix[11].id
        )

        assert outcome.donor_new_level is None
        assert matrix[10].current_level == 1

    @pytest.mark.asyncio
    async def test_settling_n3_upgrade_advances_level_one_donor(
        self, session, matrix, add_donation
    ):
        """A donor still recorded at N1 moves to N2 once its N3 upgrade is paid."""
        donor = matrix[10]
        donation = await add_donation(
            donor, matrix[40], "1600", type=DonationType.UPGRADE_N3
        )

        outcome = await DonationService(session).confirm_donation(
            donation.id, matrix[40].id
        )

        assert outcome.donor_new_level == 2
        assert donor.current_level == 2

    @pytest.mark.asyncio
    async def test_advances_one_level_at_a_time(
        self, session, matrix, add_donation
    ):
        """An N2 donor settling an N1 cascade moves to N3, not further."""
        donor = matrix[10]
        donor.current_level = 2
        await session.commit()
        donation = await add_donation(
            donor, matrix[40], "100", type=DonationType.CASCADE_N1
        )

        outcome = await DonationService(session).confirm_donation(
            donation.id, matrix[40].id
        )

        assert outcome.donor_new_level == 3
        assert donor.current_level == 3

    @pytest.mark.asyncio
    async def test_level_capped_at_three(self, session, matrix, add_donation):
        donor = matrix[10]
        donor.current_level = 3
        await session.commit()
        donation = await add_donation(
            donor, matrix[40], "100", type=DonationType.CASCADE_N1
        )

        outcome = await DonationService(session).confirm_donation(
            donation.id, matrix[40].id
        )

        assert outcome.donor_new_level is None
        assert donor.current_level == 3


class TestAcceptUpgrade:
    """Test opt-in advancement in position order."""

    @pytest.mark.asyncio
    async def test_earlier_participant_must_advance_first(self, session, matrix):
        """B at position 10 waits for A at position 5."""
        engine = MatrixEngine(session)
        a, b = matrix[4], matrix[9]
        await _mark_completed(session, 1, [5, 10])

        with pytest.raises(MatrixValidationError) as exc_info:
            await engine.accept_upgrade(b.id, 1, 2)
        assert exc_info.value.code == ErrorCode.EARLIER_PARTICIPANT_PENDING
        assert "5" in exc_info.value.message
        assert b.current_level == 1

        await engine.accept_upgrade(a.id, 1, 2)
        await engine.accept_upgrade(b.id, 1, 2)

        progress_a = await engine.get_participant_progress(a.id)
        progress_b = await engine.get_participant_progress(b.id)
        assert a.current_level == 2
        assert b.current_level == 2
        assert progress_a[2].position == 5
        assert progress_b[2].position == 10

    @pytest.mark.asyncio
    async def test_later_completers_do_not_block(self, session, matrix):
        engine = MatrixEngine(session)
        await _mark_completed(session, 1, [5, 10])

        participant = await engine.accept_upgrade(matrix[4].id, 1, 2)

        assert participant.current_level == 2

    @pytest.mark.asyncio
    async def test_level_not_completed(self, session, matrix):
        with pytest.raises(MatrixValidationError) as exc_info:
            await MatrixEngine(session).accept_upgrade(matrix[4].id, 1, 2)
        assert exc_info.value.code == ErrorCode.LEVEL_NOT_COMPLETED

    @pytest.mark.asyncio
    async def test_already_advanced(self, session, matrix):
        participant = matrix[4]
        participant.current_level = 2
        await session.flush()

        with pytest.raises(MatrixValidationError) as exc_info:
            await MatrixEngine(session).accept_upgrade(participant.id, 1, 2)
        assert exc_info.value.code == ErrorCode.ALREADY_ADVANCED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("from_level,to_level", [(1, 3), (2, 1), (3, 4), (0, 1)])
    async def test_invalid_sequence(self, session, matrix, from_level, to_level):
        with pytest.raises(MatrixValidationError) as exc_info:
            await MatrixEngine(session).accept_upgrade(
                matrix[4].id, from_level, to_level
            )
        assert exc_info.value.code == ErrorCode.INVALID_UPGRADE_SEQUENCE

    @pytest.mark.asyncio
    async def test_missing_slot(self, session, make_participants):
        [outsider] = await make_participants(1)

        with pytest.raises(MatrixNotFoundError) as exc_info:
            await MatrixEngine(session).accept_upgrade(outsider.id, 1, 2)
        assert exc_info.value.code == ErrorCode.SLOT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_unknown_participant(self, session):
        with pytest.raises(MatrixNotFoundError) as exc_info:
            await MatrixEngine(session).accept_upgrade(999, 1, 2)
        assert exc_info.value.code == ErrorCode.PARTICIPANT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_progress_of_unknown_participant(self, session):
        with pytest.raises(MatrixNotFoundError):
            await MatrixEngine(session).get_participant_progress(999)

    @pytest.mark.asyncio
    async def test_progress_totals(self, session, matrix, add_donation):
        donation = await add_donation(matrix[20], matrix[2], "100")
        service = DonationService(session)

        await service.confirm_donation(donation.id, matrix[2].id)
        progress = await service.engine.get_participant_progress(matrix[2].id)

        assert set(progress) == {1, 2}
        assert progress[1].received == 1
        assert progress[1].total_amount == Decimal("100")
        assert progress[1].completed is False
        assert progress[2].received == 0
