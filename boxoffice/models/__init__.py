from boxoffice.models.room import Room, RoomType
from boxoffice.models.showing import Showing, ShowingSeat, CommittedSeat
from boxoffice.models.reservation import (
    Reservation, ReservationSeat, ReservationStatus, PaymentStatus,
)
