"""
Shared fixtures for integration tests.

Every test gets a fresh in-memory SQLite database through aiosqlite. Factory
fixtures commit so a service rollback keeps them. SQLite
ignores FOR UPDATE; SAVEPOINT support needs the driver's own transaction
handling switched off, see ``_enable_savepoints``.
"""

from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from donation_matrix.config.level_rules import get_level_rule
from donation_matrix.models import Base, Donation, Participant, QueueSlot
from donation_matrix.models.enums import DonationStatus, DonationType


def _enable_savepoints(engine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest_asyncio.fixture
async def db_engine():
    """In-memory database with all tables created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _enable_savepoints(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session(db_engine):
    """Async session; objects stay usable after commit."""
    maker = async_sessionmaker(
        bind=db_engine, class_=AsyncSession, expire_on_commit=False
    )
    async with maker() as session:
        yield session


@pytest.fixture
def make_participants(session):
    """Factory creating ``count`` participants, returned in id order."""

    async def _make(count: int, current_level: int = 1) -> list[Participant]:
        participants = [
            Participant(name=f"participant-{i}", current_level=current_level)
            for i in range(count)
        ]
        session.add_all(participants)
        await session.commit()
        return participants

    return _make


@pytest.fixture
def fill_level(session):
    """Factory placing participants at positions 1..n of a level."""

    async def _fill(
        level: int, participants: list[Participant], start: int = 1
    ) -> list[QueueSlot]:
        required = get_level_rule(level).required_donation_count
        slots = [
            QueueSlot(
                level=level,
                position=start + i,
                participant_id=p.id,
                donations_required=required,
                donations_received=0,
                total_received=Decimal("0"),
                passed_participant_ids=[],
            )
            for i, p in enumerate(participants)
        ]
        session.add_all(slots)
        await session.commit()
        return slots

    return _fill


@pytest.fixture
def add_donation(session):
    """Factory inserting a donation directly in a given status."""

    async def _add(
        donor: Participant,
        receiver: Participant,
        amount: str | Decimal,
        type: DonationType = DonationType.PULL,
        status: DonationStatus = DonationStatus.PENDING_CONFIRMATION,
        completed_at=None,
    ) -> Donation:
        donation = Donation(
            donor_id=donor.id,
            receiver_id=receiver.id,
            amount=Decimal(amount),
            type=type.value,
            status=status.value,
            completed_at=completed_at,
        )
        session.add(donation)
        await session.commit()
        return donation

    return _add


@pytest.fixture
def donations_of(session):
    """Query helper: donations filtered by type, oldest first."""

    async def _query(type: DonationType | None = None) -> list[Donation]:
        stmt = select(Donation).order_by(Donation.id.asc())
        if type is not None:
            stmt = stmt.where(Donation.type == type.value)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    return _query
