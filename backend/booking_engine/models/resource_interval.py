"""Resource occupancy rows: intervals and the slot claims that back them."""

from __future__ import annotations

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
import ulid

from ..database import Base


class ResourceIntervalModel(Base):
    """A span during which one driver or vehicle is committed to a booking or blocked."""

    __tablename__ = "resource_intervals"
    __table_args__ = (
        CheckConstraint(
            "resource_type IN ('driver', 'vehicle')",
            name="ck_resource_intervals_resource_type",
        ),
        CheckConstraint("start_at < service_end_at", name="ck_resource_intervals_window"),
        Index("ix_resource_intervals_resource_start", "resource_type", "resource_id", "start_at"),
    )

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    resource_type = Column(String(20), nullable=False)
    resource_id = Column(String(64), nullable=False)
    start_at = Column(DateTime(timezone=True), nullable=False)
    service_end_at = Column(DateTime(timezone=True), nullable=False)
    # service_end_at plus the turnaround buffer in force when written
    end_at = Column(DateTime(timezone=True), nullable=False)
    # Set on maintenance blocks, which have no booking
    reason = Column(String(500), nullable=True)

    booking = relationship("Booking", back_populates="intervals")

    def __repr__(self) -> str:
        return (
            f"<ResourceInterval {self.resource_type}:{self.resource_id} "
            f"{self.start_at}-{self.end_at} booking={self.booking_id}>"
        )


class ResourceSlotClaim(Base):
    """
    One granularity-sized slot of a resource owned by a booking or a block.

    The unique constraint is the store-level guarantee against double
    booking: two overlapping reservations always claim at least one common
    slot, so the second insert fails no matter how the writers interleave.
    """

    __tablename__ = "resource_slot_claims"
    __table_args__ = (
        UniqueConstraint(
            "resource_type",
            "resource_id",
            "slot_start_minute",
            name="uq_resource_slot_claims_slot",
        ),
        CheckConstraint(
            "booking_id IS NOT NULL OR interval_id IS NOT NULL",
            name="ck_resource_slot_claims_owner",
        ),
    )

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    # Owning maintenance block when the claim has no booking
    interval_id = Column(
        String(26),
        ForeignKey("resource_intervals.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    resource_type = Column(String(20), nullable=False)
    resource_id = Column(String(64), nullable=False)
    # Minutes since the Unix epoch (UTC) at which the slot starts
    slot_start_minute = Column(Integer, nullable=False)

    booking = relationship("Booking", back_populates="slot_claims")
