from uuid import UUID
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session, selectinload

from boxoffice.db.session import get_db
from boxoffice.api.deps import get_booking_engine, get_current_user
from boxoffice.core.errors import ForbiddenError, ReservationNotFoundError
from boxoffice.core.security import Requester
from boxoffice.models.reservation import Reservation
from boxoffice.schemas.reservation import (
    ReservationCreate,
    Reservation as ReservationSchema,
)
from boxoffice.schemas.common import PaginatedResponse
from boxoffice.services.booking import BookingEngine

router = APIRouter(prefix="/reservations", tags=["Reservations"])


# ---------------------------------------------------------------------------
# POST /reservations: commit a paid selection
# ---------------------------------------------------------------------------


@router.post("/", response_model=ReservationSchema, status_code=status.HTTP_201_CREATED)
def create_reservation(
    data: ReservationCreate,
    engine: BookingEngine = Depends(get_booking_engine),
    current_user: Requester = Depends(get_current_user),
):
    """
    Confirm a reservation for a selection the caller has already paid for.

    - The selection is re-validated against current inventory.
    - The payment is read back from the provider and must have succeeded
      for exactly this user, showing, seat set and amount.
    - A payment can fund at most one reservation, so retrying the same
      request after a gateway error is safe.
    """
    return engine.commit(
        data.showing_id, data.to_selection(), data.payment_reference, current_user
    )


# ---------------------------------------------------------------------------
# GET /reservations: list current user's reservations
# ---------------------------------------------------------------------------


@router.get("/", response_model=PaginatedResponse[ReservationSchema])
def list_my_reservations(
    status_filter: Optional[str] = Query(
        None, alias="status", description="Filter by status: pending, confirmed, cancelled"
    ),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: Requester = Depends(get_current_user),
):
    """Return the authenticated user's reservations, newest first."""
    query = db.query(Reservation).filter(Reservation.user_id == current_user.user_id)
    if status_filter:
        query = query.filter(Reservation.status == status_filter)

    total = query.count()
    reservations = (
        query.options(selectinload(Reservation.seats))
        .order_by(Reservation.created_at.desc(), Reservation.reference)
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return PaginatedResponse(
        data=[ReservationSchema.model_validate(r) for r in reservations],
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


# ---------------------------------------------------------------------------
# GET /reservations/{id}: single reservation detail
# ---------------------------------------------------------------------------


@router.get("/{reservation_id}", response_model=ReservationSchema)
def get_reservation(
    reservation_id: UUID,
    db: Session = Depends(get_db),
    current_user: Requester = Depends(get_current_user),
):
    """Return a single reservation. Only the owner or an admin can access it."""
    reservation = db.get(Reservation, reservation_id)
    if reservation is None:
        raise ReservationNotFoundError()
    if not current_user.is_admin and reservation.user_id != current_user.user_id:
        raise ForbiddenError()
    return reservation


# ---------------------------------------------------------------------------
# PATCH /reservations/{id}/cancel
# ---------------------------------------------------------------------------


@router.patch("/{reservation_id}/cancel", response_model=ReservationSchema)
def cancel_reservation(
    reservation_id: UUID,
    engine: BookingEngine = Depends(get_booking_engine),
    current_user: Requester = Depends(get_current_user),
):
    """
    Cancel a reservation (owner or admin).
    - Refunds the payment first; if the refund fails nothing is cancelled.
    - Releases exactly this reservation's seats back to the showing.
    - Cancelling twice is an error, not a no-op.
    """
    return engine.cancel(reservation_id, current_user)
