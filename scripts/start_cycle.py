#!/usr/bin/env python3
"""
Start a donation cycle for a full level queue.

Creates the first wave of pending donations: each receiver at the top of
the queue is paid by a block of donors below it.

Usage:
    python scripts/start_cycle.py --level 1
    python scripts/start_cycle.py --level 1 --donors-per-receiver 3 --amount 100
    python scripts/start_cycle.py --level 2 --deadline-days 2 --queue-size 100
"""

import argparse
import asyncio
import sys
from decimal import Decimal
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from loguru import logger

from donation_matrix.config.database import async_session_maker, engine
from donation_matrix.config.logging_config import setup_logging
from donation_matrix.models.enums import DonationType
from donation_matrix.services.matrix import MatrixEngine
from donation_matrix.utils.exceptions import MatrixError


async def start_cycle(
    level: int,
    donors_per_receiver: int,
    amount: Decimal | None,
    donation_type: DonationType,
    deadline_days: int | None,
    queue_size: int | None,
) -> int:
    """Run the bootstrap in one transaction and report the counts."""
    async with async_session_maker() as session:
        matrix = MatrixEngine(session, queue_size=queue_size)
        try:
            result = await matrix.bootstrap_cycle(
                level=level,
                donors_per_receiver=donors_per_receiver,
                amount=amount,
                type=donation_type,
                deadline_days=deadline_days,
            )
            await session.commit()
        except MatrixError as e:
            await session.rollback()
            logger.error(f"Cycle not started: [{e.code.value}] {e.message}")
            return 1

    logger.success(
        f"Cycle started for level {level}: "
        f"{result.created} donations created, "
        f"{result.skipped_existing} already open, "
        f"{result.receivers_processed} receivers"
    )
    return 0


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Start a donation cycle")
    parser.add_argument("--level", type=int, required=True, help="Level 1-3")
    parser.add_argument(
        "--donors-per-receiver",
        type=int,
        default=3,
        help="Donors paying each receiver (default: 3)",
    )
    parser.add_argument(
        "--amount",
        type=Decimal,
        default=None,
        help="Amount per donation (default: the level's unit amount)",
    )
    parser.add_argument(
        "--type",
        choices=[t.value for t in DonationType],
        default=DonationType.PULL.value,
        help="Donation type (default: PULL)",
    )
    parser.add_argument(
        "--deadline-days", type=int, default=None, help="Payment deadline"
    )
    parser.add_argument(
        "--queue-size",
        type=int,
        default=None,
        help="Required slot count (default: CYCLE_QUEUE_SIZE)",
    )
    return parser.parse_args()


async def main() -> int:
    args = parse_args()
    try:
        return await start_cycle(
            level=args.level,
            donors_per_receiver=args.donors_per_receiver,
            amount=args.amount,
            donation_type=DonationType(args.type),
            deadline_days=args.deadline_days,
            queue_size=args.queue_size,
        )
    finally:
        await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    sys.exit(asyncio.run(main()))
