import enum
import uuid
from sqlalchemy import Column, String, Boolean, Integer, DateTime, JSON, Uuid, func
from sqlalchemy.orm import relationship
from boxoffice.db.session import Base


class RoomType(str, enum.Enum):
    classic = "classic"
    vip = "vip"
    premium = "premium"
    imax = "imax"
    fourdx = "4dx"


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), unique=True, nullable=False)
    room_type = Column(String(20), nullable=False, default=RoomType.classic.value)
    capacity = Column(Integer, nullable=False)
    # Optional explicit seat template: {"rows": [{"name": "A", "seats": [...]}]}
    plan = Column(JSON, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    showings = relationship("Showing", back_populates="room")
