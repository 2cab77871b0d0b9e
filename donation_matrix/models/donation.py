"""
Donation model.

One obligation between a donor and a receiver, with a one-directional
status lifecycle.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from donation_matrix.models.base import Base
from donation_matrix.models.enums import (
    PENDING_STATUSES,
    DonationStatus,
    DonationType,
)
from donation_matrix.models.types import MoneyType


class Donation(Base):
    """Donation model - ledger record."""

    __tablename__ = "donations"
    __table_args__ = (
        CheckConstraint("amount > 0", name="check_donation_amount_positive"),
        Index("idx_donation_donor_status", "donor_id", "status"),
        Index("idx_donation_receiver_status", "receiver_id", "status"),
        Index("idx_donation_status_created", "status", "created_at"),
        Index("idx_donation_type_status_completed", "type", "status", "completed_at"),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # Parties
    donor_id: Mapped[int] = mapped_column(
        ForeignKey("participants.id", ondelete="CASCADE"), nullable=False
    )
    receiver_id: Mapped[int] = mapped_column(
        ForeignKey("participants.id", ondelete="CASCADE"), nullable=False
    )

    # Obligation
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default=DonationStatus.PENDING_PAYMENT.value,
    )
    deadline: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Payment proof (storage lives outside the engine)
    proof_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Manual "not received" report
    is_reported: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    report_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    reported_at: Mapped[datetime | None] = mapped_column(
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
            f"<Donation(id={self.id}, donor_id={self.donor_id}, "
            f"receiver_id={self.receiver_id}, amount={self.amount}, "
            f"type={self.type}, status={self.status})>"
        )

    @property
    def donation_type(self) -> DonationType:
        """Type as enum."""
        return DonationType(self.type)

    @property
    def donation_status(self) -> DonationStatus:
        """Status as enum."""
        return DonationStatus(self.status)

    @property
    def is_pending(self) -> bool:
        """Check if the donation still awaits payment or confirmation."""
        return self.donation_status in PENDING_STATUSES
