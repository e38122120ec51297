# backend/booking_engine/models/booking.py
"""
Booking model.

The full BookingRequest is kept as a JSON payload so a booking can be
re-priced later from exactly what the caller submitted. Status and the
service window are broken out into columns for querying.
"""

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, Index, Integer, String
from sqlalchemy.orm import relationship
import ulid

from ..database import Base


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled')",
            name="ck_bookings_status",
        ),
        Index("ix_bookings_status_created_at", "status", "created_at"),
    )

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    status = Column(String(20), nullable=False)
    service_type = Column(String(20), nullable=False)
    request_payload = Column(JSON, nullable=False)
    current_quote_version = Column(Integer, nullable=False, default=1)

    # UTC service window (without buffer)
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)

    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    intervals = relationship(
        "ResourceIntervalModel",
        back_populates="booking",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    slot_claims = relationship(
        "ResourceSlotClaim",
        back_populates="booking",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    quote_versions = relationship(
        "QuoteVersionModel",
        back_populates="booking",
        order_by="QuoteVersionModel.version_number",
    )

    def __repr__(self) -> str:
        return f"<Booking {self.id} status={self.status} start={self.start_at}>"
