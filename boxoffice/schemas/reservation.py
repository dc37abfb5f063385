from typing import Annotated, Literal, Optional, List
from pydantic import BaseModel, Field, UUID4, field_validator, model_validator
from decimal import Decimal
from datetime import datetime

from boxoffice.services.selection import BareCount, SeatList, Selection


class SelectionRequest(BaseModel):
    """Either `seats` (seat ids or labels) or `count` for showings without a seat map."""

    showing_id: UUID4
    seats: List[str] = Field(default_factory=list)
    count: Optional[int] = None
    # Optional display labels for a bare count
    labels: List[Annotated[str, Field(max_length=40)]] = Field(default_factory=list)

    @field_validator("seats", "labels", mode="before")
    @classmethod
    def strip_entries(cls, v):
        if isinstance(v, list):
            return [s.strip() if isinstance(s, str) else s for s in v]
        return v

    @model_validator(mode="after")
    def seats_or_count(self):
        if self.seats and self.count is not None:
            raise ValueError("Provide either seats or count, not both")
        return self

    def to_selection(self) -> Selection:
        if self.count is not None:
            return BareCount(count=self.count, labels=self.labels)
        return SeatList(seat_ids=self.seats)


# Quote: POST /payments/quote
class QuoteRequest(SelectionRequest):
    pass


class QuoteResponse(BaseModel):
    payment_intent_id: str
    client_secret: str
    amount: int  # minor units
    currency: str
    total_price: Decimal
    seat_count: int
    seat_ids: List[str] = []


# Commit: POST /reservations
class ReservationCreate(SelectionRequest):
    payment_reference: str = Field(min_length=1)


class ReservationSeat(BaseModel):
    seat_id: str
    label: str
    row: str
    number: int
    seat_type: str
    price: Decimal

    class Config:
        from_attributes = True


class Reservation(BaseModel):
    id: UUID4
    reference: str
    user_id: str
    showing_id: UUID4
    seat_count: int
    total_price: Decimal
    status: str
    payment_status: str
    payment_reference: Optional[str] = None
    created_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    seats: List[ReservationSeat] = []

    class Config:
        from_attributes = True


# Admin override: PUT /admin/reservations/{id}/status
class ReservationStatusUpdate(BaseModel):
    status: Optional[Literal["pending", "confirmed", "cancelled"]] = None
    payment_status: Optional[Literal["pending", "paid", "refunded"]] = None

    @model_validator(mode="after")
    def at_least_one(self):
        if self.status is None and self.payment_status is None:
            raise ValueError("Provide status and/or payment_status")
        return self
