"""
Participant model.

Represents a matrix participant and the level they have advanced to.
"""

from datetime import UTC, datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from donation_matrix.models.base import Base


class Participant(Base):
    """Participant model - matrix members."""

    __tablename__ = "participants"
    __table_args__ = (
        CheckConstraint(
            "current_level >= 1 AND current_level <= 3",
            name="check_participant_level_range",
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Identity
    email: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True, index=True
    )
    name: Mapped[str | None] = mapped_column(
        String(255), nullable=True
    )

    # Progression
    current_level: Mapped[int] = mapped_column(
        Integer, default=1, nullable=False, index=True
    )
    can_reenter: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    n3_completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
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
            f"<Participant(id={self.id}, current_level={self.current_level}, "
            f"can_reenter={self.can_reenter})>"
        )
