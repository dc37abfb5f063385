from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from boxoffice.db.session import get_db
from boxoffice.api.deps import get_current_admin_user
from boxoffice.core.errors import RoomNotFoundError
from boxoffice.core.security import Requester
from boxoffice.models.room import Room
from boxoffice.schemas.showing import RoomCreate, Room as RoomSchema
from boxoffice.schemas.common import PaginatedResponse
from boxoffice.services.seat_map import SeatMap

router = APIRouter(prefix="/admin/rooms", tags=["Admin - Rooms"])


@router.post("/", response_model=RoomSchema, status_code=status.HTTP_201_CREATED)
def create_room(
    data: RoomCreate,
    db: Session = Depends(get_db),
    current_user: Requester = Depends(get_current_admin_user),
):
    """
    Register a room. `plan` is an optional explicit seat template; rooms
    without one get a synthesized grid sized to `capacity` when a showing
    is scheduled.
    """
    if db.query(Room).filter(Room.name == data.name).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Room '{data.name}' already exists",
        )

    plan = data.plan.model_dump(mode="json") if data.plan else None
    if plan:
        try:
            SeatMap.from_plan(plan)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))

    room = Room(
        name=data.name,
        room_type=data.room_type,
        capacity=data.capacity,
        plan=plan,
    )
    db.add(room)
    db.commit()
    db.refresh(room)
    return room


@router.get("/", response_model=PaginatedResponse[RoomSchema])
def list_rooms(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: Requester = Depends(get_current_admin_user),
):
    query = db.query(Room).filter(Room.is_active == True)
    total = query.count()
    rooms = query.order_by(Room.name).offset((page - 1) * limit).limit(limit).all()

    return PaginatedResponse(
        data=[RoomSchema.model_validate(r) for r in rooms],
        total=total,
        page=page,
        limit=limit,
        total_pages=-(-total // limit) if total else 0,
    )


@router.get("/{room_id}", response_model=RoomSchema)
def get_room(
    room_id: UUID,
    db: Session = Depends(get_db),
    current_user: Requester = Depends(get_current_admin_user),
):
    room = db.get(Room, room_id)
    if room is None:
        raise RoomNotFoundError()
    return room
