from uuid import UUID
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session, selectinload

from boxoffice.db.session import get_db
from boxoffice.api.deps import get_booking_engine, get_current_admin_user
from boxoffice.core.security import Requester
from boxoffice.models.reservation import Reservation
from boxoffice.schemas.reservation import (
    Reservation as ReservationSchema,
    ReservationStatusUpdate,
)
from boxoffice.schemas.common import PaginatedResponse
from boxoffice.services.booking import BookingEngine

router = APIRouter(prefix="/admin/reservations", tags=["Admin - Reservations"])


@router.get("/", response_model=PaginatedResponse[ReservationSchema])
def list_reservations(
    showing_id: Optional[UUID] = Query(None),
    status_filter: Optional[str] = Query(None, alias="status"),
    user_id: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: Requester = Depends(get_current_admin_user),
):
    """List reservations across all users with optional filters."""
    query = db.query(Reservation)
    if showing_id:
        query = query.filter(Reservation.showing_id == showing_id)
    if status_filter:
        query = query.filter(Reservation.status == status_filter)
    if user_id:
        query = query.filter(Reservation.user_id == user_id)

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


@router.put("/{reservation_id}/status", response_model=ReservationSchema)
def update_reservation_status(
    reservation_id: UUID,
    data: ReservationStatusUpdate,
    engine: BookingEngine = Depends(get_booking_engine),
    current_user: Requester = Depends(get_current_admin_user),
):
    """
    Override status and/or payment_status. Seats and price are never touched;
    cancellation must go through `PATCH /reservations/{id}/cancel`.
    """
    return engine.override_status(
        reservation_id, status=data.status, payment_status=data.payment_status
    )
