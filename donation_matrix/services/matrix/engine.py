"""
Matrix engine.

Entry points used by the outer system:

- ``on_donation_confirmed``: progress, completion, generated donations and
  donor-side advancement for one confirmed donation
- ``accept_upgrade``: opt-in ordered advancement
- ``bootstrap_cycle``: first wave of donations for a full queue
- ``get_participant_progress``: read-only per-level projection

The engine never commits; the caller owns the transaction. Generated
donations are written inside a SAVEPOINT so a failure there rolls back only
its own writes and never fails the confirmation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from donation_matrix.config.level_rules import get_level_by_amount
from donation_matrix.models.donation import Donation
from donation_matrix.models.enums import DonationStatus, DonationType
from donation_matrix.models.participant import Participant
from donation_matrix.repositories.participant_repository import (
    ParticipantRepository,
)
from donation_matrix.repositories.queue_repository import QueueRepository
from donation_matrix.services.base_service import BaseService, log_operation
from donation_matrix.services.matrix.advancement_gate import AdvancementGate
from donation_matrix.services.matrix.cascade_generator import (
    CascadeGenerator,
    GenerationResult,
)
from donation_matrix.services.matrix.cycle_bootstrap import (
    CycleBootstrap,
    CycleResult,
)
from donation_matrix.services.matrix.progress_tracker import ProgressTracker
from donation_matrix.utils.exceptions import ErrorCode, MatrixValidationError


@dataclass
class LevelProgress:
    """Progress of a participant at one level."""

    level: int
    position: int
    received: int
    required: int
    total_amount: Decimal
    completed: bool
    completed_at: datetime | None = None


@dataclass
class ConfirmationOutcome:
    """What the engine did for one confirmed donation."""

    donation_id: int
    level: int
    tracked: bool = False
    level_completed: bool = False
    newly_completed: bool = False
    generation: GenerationResult | None = None
    donor_new_level: int | None = None
    errors: list[str] = field(default_factory=list)


class MatrixEngine(BaseService):
    """Level progression and queue allocation engine."""

    def __init__(
        self, session: AsyncSession, queue_size: int | None = None
    ) -> None:
        """
        Initialize matrix engine.

        Args:
            session: Async database session
            queue_size: Slot count required by cycle bootstrap
        """
        super().__init__(session)
        self.queue_repo = QueueRepository(session)
        self.participant_repo = ParticipantRepository(session)
        self.tracker = ProgressTracker(session)
        self.generator = CascadeGenerator(session)
        self.gate = AdvancementGate(session)
        self.bootstrap = CycleBootstrap(session, queue_size=queue_size)

    @log_operation
    async def on_donation_confirmed(
        self, donation: Donation
    ) -> ConfirmationOutcome:
        """
        Apply the consequences of a confirmed donation.

        Must be called once, in the transaction that moved the donation to
        CONFIRMED.

        Args:
            donation: Confirmed donation

        Returns:
            Confirmation outcome
        """
        if donation.status != DonationStatus.CONFIRMED.value:
            raise MatrixValidationError(
                f"Donation {donation.id} is {donation.status}, not CONFIRMED",
                code=ErrorCode.INVALID_STATUS_TRANSITION,
            )

        level = get_level_by_amount(donation.amount)
        outcome = ConfirmationOutcome(donation_id=donation.id, level=level)

        slot = await self.tracker.record_receipt(
            donation.receiver_id, level, donation.amount
        )
        outcome.tracked = slot is not None

        if slot is not None:
            state = await self.tracker.evaluate_completion(
                donation.receiver_id, level
            )
            outcome.level_completed = state.completed
            outcome.newly_completed = state.just_completed

            if state.just_completed:
                outcome.generation = await self._guarded(
                    outcome,
                    "level_completion",
                    self.generator.on_level_completed,
                    donation.receiver_id,
                    level,
                )

        outcome.donor_new_level = await self.gate.advance_donor_if_settled(
            donation
        )
        return outcome

    async def accept_upgrade(
        self, participant_id: int, from_level: int, to_level: int
    ) -> Participant:
        """Advance a participant in position order (see AdvancementGate)."""
        return await self.gate.accept_upgrade(participant_id, from_level, to_level)

    async def bootstrap_cycle(
        self,
        level: int,
        donors_per_receiver: int = 3,
        amount: Decimal | None = None,
        type: DonationType = DonationType.PULL,
        deadline_days: int | None = None,
    ) -> CycleResult:
        """Seed the first wave of a full queue (see CycleBootstrap)."""
        return await self.bootstrap.generate_cycle_donations(
            level=level,
            donors_per_receiver=donors_per_receiver,
            amount=amount,
            type=type,
            deadline_days=deadline_days,
        )

    async def get_participant_progress(
        self, participant_id: int
    ) -> dict[int, LevelProgress]:
        """
        Get a participant's progress in every level queue they hold.

        Args:
            participant_id: Participant ID

        Returns:
            Dict mapping level to its progress
        """
        await self.participant_repo.get_or_raise(participant_id)
        slots = await self.queue_repo.get_slots_by_participant(participant_id)

        return {
            slot.level: LevelProgress(
                level=slot.level,
                position=slot.position,
                received=slot.donations_received,
                required=slot.donations_required,
                total_amount=slot.total_received,
                completed=slot.level_completed,
                completed_at=slot.level_completed_at,
            )
            for slot in slots
        }

    async def _guarded(self, outcome: ConfirmationOutcome, step: str, func, *args):
        """Run a side-effect step in a SAVEPOINT, logging instead of raising."""
        try:
            async with self.session.begin_nested():
                return await func(*args)
        except Exception as e:
            outcome.errors.append(f"{step}: {e}")
            self.logger.exception(
                f"Side effects of {step} failed, confirmation kept",
                extra={
                    "donation_id": outcome.donation_id,
                    "level": outcome.level,
                    "step": step,
                    "manual_reconciliation": True,
                },
            )
            return None
