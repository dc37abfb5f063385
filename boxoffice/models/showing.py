import uuid
from sqlalchemy import (
    Column, String, Boolean, Integer, DECIMAL, ForeignKey, DateTime, Uuid,
    UniqueConstraint, func,
)
from sqlalchemy.orm import relationship
from boxoffice.db.session import Base


class Showing(Base):
    __tablename__ = "showings"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    room_id = Column(Uuid, ForeignKey("rooms.id"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    starts_at = Column(DateTime(timezone=True), nullable=True, index=True)
    base_price = Column(DECIMAL(10, 2), nullable=False)
    has_seat_map = Column(Boolean, nullable=False, default=True)
    total_seats = Column(Integer, nullable=False)
    # Display cache; committed_seats is the source of truth
    available_seats = Column(Integer, nullable=False)
    blocked = Column(Boolean, nullable=False, default=False)
    block_reason = Column(String(255), nullable=False, default="")
    is_active = Column(Boolean, nullable=False, default=True)
    # Bumped on every inventory write; writers update conditionally on it
    version = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    room = relationship("Room", back_populates="showings")
    seats = relationship(
        "ShowingSeat",
        back_populates="showing",
        order_by="ShowingSeat.position",
        cascade="all, delete-orphan",
    )
    committed_seats = relationship(
        "CommittedSeat", back_populates="showing", cascade="all, delete-orphan"
    )
    reservations = relationship("Reservation", back_populates="showing")


class ShowingSeat(Base):
    """One seat of a showing's seat map, snapshotted at creation and never edited."""

    __tablename__ = "showing_seats"
    __table_args__ = (UniqueConstraint("showing_id", "seat_id", name="uq_showing_seat"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    showing_id = Column(Uuid, ForeignKey("showings.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    seat_id = Column(String(20), nullable=False)
    label = Column(String(20), nullable=False)
    row = Column(String(10), nullable=False)
    number = Column(Integer, nullable=False)
    seat_type = Column(String(20), nullable=False, default="standard")
    accessible = Column(Boolean, nullable=False, default=False)
    price_modifier = Column(DECIMAL(10, 2), nullable=False, default=0)

    showing = relationship("Showing", back_populates="seats")


class CommittedSeat(Base):
    """A seat currently sold to a reservation.

    The unique (showing_id, seat_id) constraint is the last line of defence
    against selling a seat twice.
    """

    __tablename__ = "committed_seats"
    __table_args__ = (UniqueConstraint("showing_id", "seat_id", name="uq_committed_seat"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    showing_id = Column(Uuid, ForeignKey("showings.id"), nullable=False, index=True)
    reservation_id = Column(Uuid, ForeignKey("reservations.id"), nullable=False, index=True)
    seat_id = Column(String(20), nullable=False)
    label = Column(String(20), nullable=False)
    row = Column(String(10), nullable=False)
    number = Column(Integer, nullable=False)
    seat_type = Column(String(20), nullable=False, default="standard")

    showing = relationship("Showing", back_populates="committed_seats")
    reservation = relationship("Reservation")
