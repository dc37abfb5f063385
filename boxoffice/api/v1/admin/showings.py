from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from boxoffice.db.session import get_db
from boxoffice.api.deps import get_booking_engine, get_current_admin_user
from boxoffice.core.errors import RoomNotFoundError
from boxoffice.core.security import Requester
from boxoffice.models.room import Room
from boxoffice.schemas.showing import (
    InventoryAudit,
    ShowingBlockUpdate,
    ShowingCreate,
    Showing as ShowingSchema,
)
from boxoffice.services.booking import BookingEngine, schedule_showing

router = APIRouter(prefix="/admin/showings", tags=["Admin - Showings"])


# ---------------------------------------------------------------------------
# Scheduling
# ---------------------------------------------------------------------------


@router.post("/", response_model=ShowingSchema, status_code=status.HTTP_201_CREATED)
def create_showing(
    data: ShowingCreate,
    db: Session = Depends(get_db),
    current_user: Requester = Depends(get_current_admin_user),
):
    """
    Schedule a showing in a room.

    - `seated=true` (default): the room's seat template, or a grid
      synthesized from its capacity, is copied onto the showing. Later
      template edits never reach existing showings.
    - `seated=false`: a bare-count showing without a seat map, sized by
      `total_seats` or the room capacity.
    """
    room = db.get(Room, data.room_id)
    if room is None:
        raise RoomNotFoundError()

    showing = schedule_showing(
        db,
        room,
        title=data.title,
        base_price=data.base_price,
        starts_at=data.starts_at,
        seated=data.seated,
        total_seats=data.total_seats,
    )
    db.commit()
    db.refresh(showing)
    return showing


# ---------------------------------------------------------------------------
# Block / unblock
# ---------------------------------------------------------------------------


@router.put("/{showing_id}/block", response_model=ShowingSchema)
def update_block(
    showing_id: UUID,
    data: ShowingBlockUpdate,
    engine: BookingEngine = Depends(get_booking_engine),
    current_user: Requester = Depends(get_current_admin_user),
):
    """Stop (or resume) new commits. Existing reservations and cancellations are unaffected."""
    return engine.set_blocked(showing_id, data.blocked, data.reason)


# ---------------------------------------------------------------------------
# Inventory audit
# ---------------------------------------------------------------------------


@router.get("/{showing_id}/inventory", response_model=InventoryAudit)
def audit_inventory(
    showing_id: UUID,
    repair: bool = Query(True, description="Rewrite available_seats when it has drifted"),
    engine: BookingEngine = Depends(get_booking_engine),
    current_user: Requester = Depends(get_current_admin_user),
):
    return engine.audit_inventory(showing_id, repair=repair)
