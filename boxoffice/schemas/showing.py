from typing import Annotated, Literal, Optional, List
from pydantic import BaseModel, Field, UUID4, field_validator
from decimal import Decimal
from datetime import datetime


# --- Room templates (admin) ---

class PlanSeat(BaseModel):
    seat_id: str = Field(min_length=1, max_length=20)
    label: Optional[str] = Field(None, max_length=20)
    row: Optional[str] = Field(None, max_length=10)
    number: int = Field(ge=1)
    seat_type: Literal["standard", "vip", "premium", "accessible"] = "standard"
    accessible: bool = False
    price_modifier: Decimal = Decimal("0")


class PlanRow(BaseModel):
    name: str = Field(min_length=1, max_length=10)
    seats: List[PlanSeat] = []


class SeatPlan(BaseModel):
    rows: List[PlanRow] = []


class RoomCreate(BaseModel):
    name: str
    room_type: Literal["classic", "vip", "premium", "imax", "4dx"] = "classic"
    capacity: int = Field(ge=1)
    plan: Optional[SeatPlan] = None


class Room(BaseModel):
    id: UUID4
    name: str
    room_type: str
    capacity: int
    is_active: bool

    class Config:
        from_attributes = True


# --- Showings ---

class ShowingCreate(BaseModel):
    room_id: UUID4
    title: str
    starts_at: Optional[datetime] = None
    base_price: Annotated[Decimal, Field(ge=0, max_digits=10, decimal_places=2)]
    # False creates a legacy bare-count showing without a seat map
    seated: bool = True
    total_seats: Optional[int] = Field(None, ge=1)


class Showing(BaseModel):
    id: UUID4
    room_id: Optional[UUID4] = None
    title: str
    starts_at: Optional[datetime] = None
    base_price: Decimal
    has_seat_map: bool
    total_seats: int
    available_seats: int
    blocked: bool
    block_reason: str
    is_active: bool

    class Config:
        from_attributes = True


class ShowingBlockUpdate(BaseModel):
    blocked: bool
    reason: Optional[str] = None

    @field_validator("reason", mode="before")
    @classmethod
    def strip_reason(cls, v):
        return v.strip() if isinstance(v, str) else v


# --- Seat map (public) ---

class SeatMapSeat(BaseModel):
    seat_id: str
    label: str
    number: int
    seat_type: str
    accessible: bool
    price: Decimal
    status: str  # available, reserved


class SeatMapRow(BaseModel):
    name: str
    seats: List[SeatMapSeat]


class SeatMapResponse(BaseModel):
    showing_id: UUID4
    base_price: Decimal
    total_seats: int
    available_seats: int
    rows: List[SeatMapRow]


# --- Inventory audit (admin) ---

class InventoryAudit(BaseModel):
    showing_id: UUID4
    total_seats: int
    cached_available: int
    derived_available: int
    consistent: bool
    repaired: bool
