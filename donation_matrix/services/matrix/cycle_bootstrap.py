"""
Cycle bootstrap.

Seeds the first wave of pending donations for a full level queue: each
receiver at the top of the queue is paid by a fixed block of donors below
it (3 per receiver by default).
"""

from dataclasses import dataclass
from decimal import Decimal

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from donation_matrix.config.level_rules import get_level_rule
from donation_matrix.config.settings import settings
from donation_matrix.models.enums import DonationType
from donation_matrix.repositories.donation_repository import DonationRepository
from donation_matrix.repositories.queue_repository import QueueRepository
from donation_matrix.utils.datetime_utils import deadline_after
from donation_matrix.utils.exceptions import ErrorCode, MatrixValidationError


@dataclass
class CycleResult:
    """Counts returned by a bootstrap run."""

    created: int = 0
    skipped_existing: int = 0
    receivers_processed: int = 0


def map_cycle_pairs(
    positions: list[int], donors_per_receiver: int = 3
) -> list[tuple[int, list[int]]]:
    """
    Map receiver positions to their donor positions.

    Numbering is 0-based when the lowest position is 0, else 1-based.
    1-based receiver ``r`` is paid by ``k*(r-1)+2 .. k*(r-1)+k+1``
    (``3r-1, 3r, 3r+1`` for k=3); 0-based receiver ``r`` by
    ``k*r+1 .. k*r+k`` (``3r+1, 3r+2, 3r+3``). Donor positions beyond the
    highest position are dropped and mapping stops once a receiver would
    have no donors left.

    Args:
        positions: Positions present in the queue
        donors_per_receiver: Donors per receiver

    Returns:
        List of (receiver_position, donor_positions)
    """
    if not positions or donors_per_receiver < 1:
        return []

    lowest = min(positions)
    highest = max(positions)
    k = donors_per_receiver
    zero_based = lowest == 0

    pairs: list[tuple[int, list[int]]] = []
    receiver = lowest
    while True:
        first_donor = k * receiver + 1 if zero_based else k * (receiver - 1) + 2
        if first_donor > highest:
            break
        donors = [
            p for p in range(first_donor, first_donor + k) if p <= highest
        ]
        pairs.append((receiver, donors))
        receiver += 1
    return pairs


class CycleBootstrap:
    """Generates the initial wave of donations for a full queue."""

    def __init__(
        self, session: AsyncSession, queue_size: int | None = None
    ) -> None:
        """
        Initialize cycle bootstrap.

        Args:
            session: Async database session
            queue_size: Required slot count, defaults to settings
        """
        self.session = session
        self.queue_size = queue_size or settings.cycle_queue_size
        self.queue_repo = QueueRepository(session)
        self.donation_repo = DonationRepository(session)

    async def generate_cycle_donations(
        self,
        level: int,
        donors_per_receiver: int = 3,
        amount: Decimal | None = None,
        type: DonationType = DonationType.PULL,
        deadline_days: int | None = None,
    ) -> CycleResult:
        """
        Create the pending donations of a new cycle.

        Re-running is safe: pairs already linked by a pending donation are
        counted as skipped.

        Args:
            level: Level whose queue is seeded
            donors_per_receiver: Donors paying each receiver
            amount: Amount per donation, defaults to the level's unit amount
            type: Donation type
            deadline_days: Payment deadline offset in days, 0 for none

        Returns:
            Created / skipped / receivers-processed counts

        Raises:
            MatrixValidationError: Invalid level, parameters or queue size
        """
        rule = get_level_rule(level)
        if rule is None:
            raise MatrixValidationError(
                f"Level {level} does not exist", code=ErrorCode.INVALID_LEVEL
            )
        if donors_per_receiver < 1:
            raise MatrixValidationError(
                "donors_per_receiver must be at least 1",
                code=ErrorCode.INVALID_PARAMETER,
            )

        amount = Decimal(amount) if amount is not None else rule.unit_amount
        if amount <= 0:
            raise MatrixValidationError(
                f"Cycle amount must be positive, got {amount}",
                code=ErrorCode.INVALID_AMOUNT,
            )

        await self.queue_repo.lock_level(level)
        slots = await self.queue_repo.get_slots_by_level(level)
        if len(slots) != self.queue_size:
            raise MatrixValidationError(
                f"Level {level} queue has {len(slots)} slots, "
                f"exactly {self.queue_size} are required to start a cycle",
                code=ErrorCode.QUEUE_SIZE_MISMATCH,
            )

        # 0 means no deadline, only None falls back to the default
        if deadline_days is None:
            deadline_days = settings.default_deadline_days
        deadline = deadline_after(deadline_days)

        by_position = {s.position: s for s in slots}
        pairs = map_cycle_pairs(list(by_position), donors_per_receiver)
        result = CycleResult()

        for receiver_position, donor_positions in pairs:
            receiver = by_position.get(receiver_position)
            if receiver is None or receiver.participant_id is None:
                logger.debug(
                    "Receiver slot empty, skipping",
                    extra={"level": level, "position": receiver_position},
                )
                continue

            result.receivers_processed += 1

            for donor_position in donor_positions:
                donor = by_position.get(donor_position)
                if donor is None or donor.participant_id is None:
                    continue
                if donor.participant_id == receiver.participant_id:
                    continue

                if await self.donation_repo.has_open_between(
                    donor.participant_id, receiver.participant_id
                ):
                    result.skipped_existing += 1
                    continue

                await self.donation_repo.create_donation(
                    donor_id=donor.participant_id,
                    receiver_id=receiver.participant_id,
                    amount=amount,
                    type=type,
                    deadline=deadline,
                )
                result.created += 1

        logger.info(
            "Cycle donations generated",
            extra={
                "level": level,
                "created": result.created,
                "skipped_existing": result.skipped_existing,
                "receivers_processed": result.receivers_processed,
            },
        )
        return result
