from boxoffice.schemas.common import PaginatedResponse, ErrorResponse
from boxoffice.schemas.showing import (
    PlanSeat, PlanRow, SeatPlan, RoomCreate, Room,
    ShowingCreate, Showing, ShowingBlockUpdate,
    SeatMapSeat, SeatMapRow, SeatMapResponse, InventoryAudit,
)
from boxoffice.schemas.reservation import (
    SelectionRequest, QuoteRequest, QuoteResponse,
    ReservationCreate, ReservationSeat, Reservation, ReservationStatusUpdate,
)
