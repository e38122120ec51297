"""Append-only quote ledger rows."""

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship
import ulid

from ..database import Base


class QuoteVersionModel(Base):
    __tablename__ = "quote_versions"
    __table_args__ = (
        UniqueConstraint("booking_id", "version_number", name="uq_quote_versions_booking_version"),
    )

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_id = Column(
        String(26),
        ForeignKey("bookings.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    version_number = Column(Integer, nullable=False)
    quote_payload = Column(JSON, nullable=False)
    reason = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)

    booking = relationship("Booking", back_populates="quote_versions")

    def __repr__(self) -> str:
        return f"<QuoteVersion booking={self.booking_id} v{self.version_number}>"
