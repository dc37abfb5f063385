"""Domain error codes for seat inventory and booking."""

from enum import Enum
from typing import Any, Optional


class ErrorCode(Enum):
    """Domain error codes."""

    BOOKING_REJECTED = "BOOKING_REJECTED"

    # Selection
    PLAN_NOT_AVAILABLE = "PLAN_NOT_AVAILABLE"
    NO_SEATS_SELECTED = "NO_SEATS_SELECTED"
    SEAT_NOT_FOUND = "SEAT_NOT_FOUND"
    DUPLICATE_SEAT = "DUPLICATE_SEAT"
    SEAT_ALREADY_RESERVED = "SEAT_ALREADY_RESERVED"
    INVALID_SEAT_COUNT = "INVALID_SEAT_COUNT"

    # Lookup / permission
    SHOWING_NOT_FOUND = "SHOWING_NOT_FOUND"
    SHOWING_INACTIVE = "SHOWING_INACTIVE"
    SHOWING_BLOCKED = "SHOWING_BLOCKED"
    ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
    RESERVATION_NOT_FOUND = "RESERVATION_NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    ALREADY_CANCELLED = "ALREADY_CANCELLED"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"

    # Commit-time consistency
    INSUFFICIENT_INVENTORY = "INSUFFICIENT_INVENTORY"
    PAYMENT_NOT_CONFIRMED = "PAYMENT_NOT_CONFIRMED"
    AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
    PAYMENT_OWNER_MISMATCH = "PAYMENT_OWNER_MISMATCH"
    PAYMENT_SHOWING_MISMATCH = "PAYMENT_SHOWING_MISMATCH"
    PAYMENT_SEAT_MISMATCH = "PAYMENT_SEAT_MISMATCH"
    PAYMENT_ALREADY_USED = "PAYMENT_ALREADY_USED"

    # Infrastructure
    PAYMENT_GATEWAY_ERROR = "PAYMENT_GATEWAY_ERROR"
    REFUND_FAILED = "REFUND_FAILED"
    INVENTORY_BUSY = "INVENTORY_BUSY"
    INVENTORY_INCONSISTENT = "INVENTORY_INCONSISTENT"


class BookingError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode = ErrorCode.BOOKING_REJECTED
    status_code: int = 400
    default_message: str = "Booking request rejected"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code.value, "message": self.message}


# ---------------------------------------------------------------------------
# Selection errors: stale or invalid client view, never retried
# ---------------------------------------------------------------------------


class SelectionError(BookingError):
    pass


class PlanNotAvailableError(SelectionError):
    code = ErrorCode.PLAN_NOT_AVAILABLE
    default_message = "This showing has no seat map"


class NoSeatsSelectedError(SelectionError):
    code = ErrorCode.NO_SEATS_SELECTED
    default_message = "Select at least one seat"


class SeatNotFoundError(SelectionError):
    code = ErrorCode.SEAT_NOT_FOUND

    def __init__(self, seat_id: str) -> None:
        super().__init__(f"Seat not found ({seat_id})")
        self.seat_id = seat_id

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "seat_id": self.seat_id}


class DuplicateSeatError(SelectionError):
    code = ErrorCode.DUPLICATE_SEAT

    def __init__(self, seat_id: str) -> None:
        super().__init__(f"Seat {seat_id} was selected more than once")
        self.seat_id = seat_id

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "seat_id": self.seat_id}


class SeatAlreadyReservedError(SelectionError):
    code = ErrorCode.SEAT_ALREADY_RESERVED
    status_code = 409

    def __init__(self, seat_id: str, label: Optional[str] = None) -> None:
        super().__init__(f"Seat {label or seat_id} is no longer available")
        self.seat_id = seat_id
        self.label = label or seat_id

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "seat_id": self.seat_id}


class InvalidSeatCountError(SelectionError):
    code = ErrorCode.INVALID_SEAT_COUNT
    default_message = "Seat count must be a positive integer"


# ---------------------------------------------------------------------------
# Lookup and permission errors
# ---------------------------------------------------------------------------


class ShowingNotFoundError(BookingError):
    code = ErrorCode.SHOWING_NOT_FOUND
    status_code = 404
    default_message = "Showing not found"


class ShowingInactiveError(BookingError):
    code = ErrorCode.SHOWING_INACTIVE
    default_message = "This showing is no longer available"


class ShowingBlockedError(BookingError):
    code = ErrorCode.SHOWING_BLOCKED
    default_message = "This showing is blocked and cannot be booked"


class RoomNotFoundError(BookingError):
    code = ErrorCode.ROOM_NOT_FOUND
    status_code = 404
    default_message = "Room not found"


class ReservationNotFoundError(BookingError):
    code = ErrorCode.RESERVATION_NOT_FOUND
    status_code = 404
    default_message = "Reservation not found"


class ForbiddenError(BookingError):
    code = ErrorCode.FORBIDDEN
    status_code = 403
    default_message = "Access denied"


class AlreadyCancelledError(BookingError):
    code = ErrorCode.ALREADY_CANCELLED
    status_code = 409
    default_message = "This reservation is already cancelled"


class InvalidStatusTransitionError(BookingError):
    code = ErrorCode.INVALID_STATUS_TRANSITION
    status_code = 409

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(f"Cannot move reservation from '{current}' to '{requested}'")
        self.current = current
        self.requested = requested


# ---------------------------------------------------------------------------
# Commit-time consistency errors: re-quote and re-pay, never retry as is
# ---------------------------------------------------------------------------


class InsufficientInventoryError(BookingError):
    code = ErrorCode.INSUFFICIENT_INVENTORY
    status_code = 409

    def __init__(self, requested: int, available: int) -> None:
        super().__init__(
            f"Not enough seats available (requested {requested}, available {available})"
        )
        self.requested = requested
        self.available = available


class PaymentNotConfirmedError(BookingError):
    code = ErrorCode.PAYMENT_NOT_CONFIRMED
    status_code = 402
    default_message = "Payment has not been confirmed"


class AmountMismatchError(BookingError):
    code = ErrorCode.AMOUNT_MISMATCH

    def __init__(self, expected: int, captured: int) -> None:
        super().__init__("Payment amount does not match the selection price")
        self.expected = expected
        self.captured = captured


class PaymentOwnerMismatchError(BookingError):
    code = ErrorCode.PAYMENT_OWNER_MISMATCH
    default_message = "Payment is not associated with this user"


class PaymentShowingMismatchError(BookingError):
    code = ErrorCode.PAYMENT_SHOWING_MISMATCH
    default_message = "Payment is not associated with this showing"


class PaymentSeatMismatchError(BookingError):
    code = ErrorCode.PAYMENT_SEAT_MISMATCH
    default_message = "Payment does not match the seat selection"


class PaymentAlreadyUsedError(BookingError):
    code = ErrorCode.PAYMENT_ALREADY_USED
    status_code = 409
    default_message = "This payment has already been used"


# ---------------------------------------------------------------------------
# Infrastructure errors: the caller may retry the same request
# ---------------------------------------------------------------------------


class PaymentGatewayError(BookingError):
    code = ErrorCode.PAYMENT_GATEWAY_ERROR
    status_code = 502
    default_message = "Payment provider is unavailable"


class RefundFailedError(PaymentGatewayError):
    code = ErrorCode.REFUND_FAILED
    default_message = "Refund failed; the reservation was not cancelled"


class InventoryBusyError(BookingError):
    code = ErrorCode.INVENTORY_BUSY
    status_code = 503
    default_message = "Seat inventory is busy, please retry"


class InventoryInconsistentError(BookingError):
    code = ErrorCode.INVENTORY_INCONSISTENT
    status_code = 500

    def __init__(self, showing_id: Any, cached: int, derived: int) -> None:
        super().__init__("Seat inventory counters are inconsistent")
        self.showing_id = showing_id
        self.cached = cached
        self.derived = derived
