from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from boxoffice.db.session import get_db
from boxoffice.schemas.showing import (
    Showing as ShowingSchema,
    SeatMapResponse,
    SeatMapRow,
    SeatMapSeat,
)
from boxoffice.core.errors import PlanNotAvailableError
from boxoffice.services.booking import load_showing, seat_map_of
from boxoffice.services.inventory import committed_seat_ids

router = APIRouter(prefix="/showings", tags=["Showings"])


@router.get("/{showing_id}", response_model=ShowingSchema)
def get_showing(showing_id: UUID, db: Session = Depends(get_db)):
    """Return a showing with its (display-only) seat counters."""
    return load_showing(db, showing_id, for_booking=False)


# ---------------------------------------------------------------------------
# Public: Seat map (seat selection screen)
# ---------------------------------------------------------------------------


@router.get("/{showing_id}/seat-map", response_model=SeatMapResponse)
def get_seat_map(showing_id: UUID, db: Session = Depends(get_db)):
    """
    Returns the seat map for a showing, grouped by row in template order.
    A seat's status is derived from the committed seats, not the cached counter.
    Does not require authentication; anyone can view availability.
    """
    showing = load_showing(db, showing_id, for_booking=False)
    seat_map = seat_map_of(showing)
    if not seat_map:
        raise PlanNotAvailableError()

    taken = committed_seat_ids(db, showing.id)
    rows = [
        SeatMapRow(
            name=row.name,
            seats=[
                SeatMapSeat(
                    seat_id=seat.seat_id,
                    label=seat.label,
                    number=seat.number,
                    seat_type=seat.seat_type,
                    accessible=seat.accessible,
                    price=showing.base_price + seat.price_modifier,
                    status="reserved" if seat.seat_id in taken else "available",
                )
                for seat in row.seats
            ],
        )
        for row in seat_map.rows
    ]

    return SeatMapResponse(
        showing_id=showing.id,
        base_price=showing.base_price,
        total_seats=showing.total_seats,
        available_seats=showing.available_seats,
        rows=rows,
    )
