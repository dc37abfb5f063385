import enum
import uuid
from sqlalchemy import Column, String, Integer, DECIMAL, ForeignKey, DateTime, Uuid, func
from sqlalchemy.orm import relationship
from boxoffice.db.session import Base


class ReservationStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    cancelled = "cancelled"


class PaymentStatus(str, enum.Enum):
    pending = "pending"
    paid = "paid"
    refunded = "refunded"


class Reservation(Base):
    __tablename__ = "reservations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    reference = Column(String(20), unique=True, nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    showing_id = Column(Uuid, ForeignKey("showings.id"), nullable=False, index=True)
    seat_count = Column(Integer, nullable=False)
    total_price = Column(DECIMAL(10, 2), nullable=False)
    status = Column(String(20), nullable=False, default=ReservationStatus.pending.value, index=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.pending.value)
    # At most one reservation per external payment
    payment_reference = Column(String(255), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    showing = relationship("Showing", back_populates="reservations")
    seats = relationship(
        "ReservationSeat",
        back_populates="reservation",
        order_by="ReservationSeat.id",
        cascade="all, delete-orphan",
    )


class ReservationSeat(Base):
    """What a reservation bought. Survives cancellation as history."""

    __tablename__ = "reservation_seats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    reservation_id = Column(Uuid, ForeignKey("reservations.id"), nullable=False, index=True)
    seat_id = Column(String(40), nullable=False)
    label = Column(String(40), nullable=False)
    row = Column(String(40), nullable=False)
    number = Column(Integer, nullable=False)
    seat_type = Column(String(20), nullable=False, default="standard")
    price = Column(DECIMAL(10, 2), nullable=False)

    reservation = relationship("Reservation", back_populates="seats")
