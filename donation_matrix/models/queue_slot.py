"""
Queue slot model.

One position in one level's matrix queue. The row outlives its occupant:
vacating a slot clears ``participant_id`` and keeps the position and audit
trail.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from donation_matrix.models.base import Base
from donation_matrix.models.types import JSONList, MoneyType


class QueueSlot(Base):
    """Queue slot model - positional seat in a level queue."""

    __tablename__ = "queue_slots"
    __table_args__ = (
        UniqueConstraint("level", "position", name="uq_queue_slot_level_position"),
        UniqueConstraint(
            "level", "participant_id", name="uq_queue_slot_level_participant"
        ),
        CheckConstraint(
            "level >= 1 AND level <= 3", name="check_queue_slot_level_range"
        ),
        CheckConstraint(
            "donations_received >= 0",
            name="check_queue_slot_received_non_negative",
        ),
        CheckConstraint(
            "total_received >= 0",
            name="check_queue_slot_total_non_negative",
        ),
        # Next receiver lookup: first open slot by position
        Index(
            "idx_queue_slot_open_receivers",
            "level",
            "level_completed",
            "position",
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Placement
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    participant_id: Mapped[int | None] = mapped_column(
        ForeignKey("participants.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    is_receiver: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )  # legacy single-receiver marker

    # Progress
    donations_received: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    total_received: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    donations_required: Mapped[int] = mapped_column(
        Integer, nullable=False
    )
    level_completed: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    level_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Participants who vacated this slot, oldest first
    passed_participant_ids: Mapped[list[int]] = mapped_column(
        JSONList, default=list, nullable=False
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<QueueSlot(id={self.id}, level={self.level}, "
            f"position={self.position}, participant_id={self.participant_id}, "
            f"received={self.donations_received}/{self.donations_required})>"
        )

    @property
    def is_occupied(self) -> bool:
        """Check if a participant currently holds the slot."""
        return self.participant_id is not None
