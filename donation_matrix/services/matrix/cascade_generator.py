"""
Cascade and upgrade generator.

Creates the donations a participant owes after completing a level:

- N1: upgrade into N2 (next receiver), relocation into N2 at the same
  position, cascade to the N1 slot computed from the donor's position.
- N2: upgrade into N3 (next receiver), relocation into N3, reinjection of
  2000 in 200 units to successive N2 next receivers, then the package of
  8000 on every Nth confirmed N3 upgrade in the trailing window.
- N3: re-entry flag and a final payment of 8000 to the N3 next receiver.

A step that finds no receiver is skipped and logged for manual
reconciliation; skipped steps are not retried.

The caller invokes the generator once per (participant, level), on the
call that flips ``level_completed``.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from donation_matrix.config.level_rules import (
    MAX_LEVEL,
    PACKAGE_AMOUNT,
    PACKAGE_LEVEL,
    PACKAGE_TYPE,
    PACKAGE_UNIT_AMOUNT,
    LevelRule,
    get_level_rule,
    split_into_units,
)
from donation_matrix.config.settings import settings
from donation_matrix.models.donation import Donation
from donation_matrix.models.enums import DonationType
from donation_matrix.models.queue_slot import QueueSlot
from donation_matrix.repositories.donation_repository import DonationRepository
from donation_matrix.repositories.participant_repository import (
    ParticipantRepository,
)
from donation_matrix.repositories.queue_repository import QueueRepository
from donation_matrix.services.matrix.placement import SlotPlacer
from donation_matrix.services.matrix.receiver_selector import ReceiverSelector
from donation_matrix.utils.datetime_utils import window_start
from donation_matrix.utils.exceptions import (
    MatrixConsistencyError,
    NoEligibleReceiverError,
)


@dataclass
class GenerationResult:
    """Outcome of processing one level completion."""

    participant_id: int
    level: int
    created: list[Donation] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    next_level_position: int | None = None
    package_triggered: bool = False

    @property
    def created_types(self) -> list[str]:
        """Types of the created donations, in creation order."""
        return [d.type for d in self.created]


class CascadeGenerator:
    """Generates upgrade, cascade, reinjection and final donations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize cascade generator."""
        self.session = session
        self.queue_repo = QueueRepository(session)
        self.donation_repo = DonationRepository(session)
        self.participant_repo = ParticipantRepository(session)
        self.selector = ReceiverSelector(session)
        self.placer = SlotPlacer(session)

    async def on_level_completed(
        self, participant_id: int, level: int
    ) -> GenerationResult:
        """
        Create every donation owed for completing a level.

        Args:
            participant_id: Participant who completed the level
            level: Completed level (1-3)

        Returns:
            Generation result

        Raises:
            MatrixConsistencyError: Participant missing from the level queue
        """
        rule = get_level_rule(level)
        slot = await self.queue_repo.get_slot(participant_id, level)
        if rule is None or slot is None:
            raise MatrixConsistencyError(
                f"Participant {participant_id} has no slot at level {level} "
                f"while processing its completion"
            )

        result = GenerationResult(participant_id=participant_id, level=level)

        if level < MAX_LEVEL:
            await self._create_upgrade(slot, rule, result)
            await self._relocate(slot, result)

        if level == 1:
            await self._create_cascade(slot, rule, result)
        elif level == 2:
            await self._create_batch(
                donor_id=participant_id,
                level=level,
                total=rule.payout_amount,
                unit=rule.payout_unit_amount,
                type=rule.payout_type,
                result=result,
                label="reinjection",
            )
            await self._check_package_trigger(result)
        else:
            await self.participant_repo.mark_reentry_eligible(participant_id)
            await self._create_to_next_receiver(
                donor_id=participant_id,
                level=level,
                amount=rule.payout_amount,
                type=rule.payout_type,
                result=result,
                label="final_payment",
            )

        logger.info(
            "Level completion processed",
            extra={
                "participant_id": participant_id,
                "level": level,
                "created": result.created_types,
                "skipped": result.skipped,
            },
        )
        return result

    async def _check_package_trigger(self, result: GenerationResult) -> None:
        """
        Add a package of 8000 into N2 on every Nth confirmed N3 upgrade.

        The count is recomputed from the ledger over the trailing window and
        the participant completing N2 pays the package.
        """
        since = window_start(settings.package_window_hours)
        confirmed = await self.donation_repo.count_confirmed(
            DonationType.UPGRADE_N3, since
        )
        if confirmed == 0 or confirmed % settings.package_upgrade_batch != 0:
            return

        logger.info(
            "Package trigger reached",
            extra={
                "participant_id": result.participant_id,
                "confirmed_upgrades": confirmed,
                "window_hours": settings.package_window_hours,
            },
        )
        result.package_triggered = True
        await self._create_batch(
            donor_id=result.participant_id,
            level=PACKAGE_LEVEL,
            total=PACKAGE_AMOUNT,
            unit=PACKAGE_UNIT_AMOUNT,
            type=PACKAGE_TYPE,
            result=result,
            label="package",
        )

    async def _create_upgrade(
        self, slot: QueueSlot, rule: LevelRule, result: GenerationResult
    ) -> None:
        """Upgrade donation to the next level's next receiver."""
        await self._create_to_next_receiver(
            donor_id=slot.participant_id,
            level=rule.level + 1,
            amount=rule.upgrade_amount,
            type=rule.upgrade_type,
            result=result,
            label="upgrade",
        )

    async def _relocate(self, slot: QueueSlot, result: GenerationResult) -> None:
        """Place the participant in the next level at the same position."""
        next_slot = await self.placer.ensure_slot(
            slot.participant_id, slot.level + 1, slot.position
        )
        result.next_level_position = next_slot.position

    async def _create_cascade(
        self, slot: QueueSlot, rule: LevelRule, result: GenerationResult
    ) -> None:
        """N1 cascade to the slot computed from the donor's position."""
        try:
            receiver = await self.selector.cascade_receiver(
                slot.position, slot.participant_id, level=rule.level
            )
        except NoEligibleReceiverError as e:
            self._log_skip(result, "cascade", str(e))
            return

        donation = await self.donation_repo.create_donation(
            donor_id=slot.participant_id,
            receiver_id=receiver.participant_id,
            amount=rule.payout_amount,
            type=rule.payout_type,
        )
        result.created.append(donation)

    async def _create_to_next_receiver(
        self,
        donor_id: int,
        level: int,
        amount: Decimal,
        type: DonationType,
        result: GenerationResult,
        label: str,
    ) -> None:
        """Single donation to the next receiver at ``level``."""
        await self.queue_repo.lock_level(level)
        try:
            receiver = await self.selector.next_receiver(
                level, exclude={donor_id}
            )
        except NoEligibleReceiverError as e:
            self._log_skip(result, label, str(e))
            return

        donation = await self.donation_repo.create_donation(
            donor_id=donor_id,
            receiver_id=receiver.participant_id,
            amount=amount,
            type=type,
        )
        result.created.append(donation)

    async def _create_batch(
        self,
        donor_id: int,
        level: int,
        total: Decimal,
        unit: Decimal,
        type: DonationType,
        result: GenerationResult,
        label: str,
    ) -> None:
        """Split ``total`` into units paid to successive next receivers."""
        units = split_into_units(total, unit)

        await self.queue_repo.lock_level(level)
        try:
            receivers = await self.selector.next_receivers(
                level, count=len(units), exclude={donor_id}
            )
        except NoEligibleReceiverError as e:
            self._log_skip(result, label, str(e))
            return

        for amount, receiver in zip(units, receivers):
            donation = await self.donation_repo.create_donation(
                donor_id=donor_id,
                receiver_id=receiver.participant_id,
                amount=amount,
                type=type,
            )
            result.created.append(donation)

    @staticmethod
    def _log_skip(result: GenerationResult, step: str, reason: str) -> None:
        """Record a skipped step for manual reconciliation."""
        result.skipped.append(step)
        logger.warning(
            f"Skipped {step} donation: {reason}",
            extra={
                "participant_id": result.participant_id,
                "level": result.level,
                "step": step,
                "manual_reconciliation": True,
            },
        )
