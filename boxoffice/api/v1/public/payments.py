from fastapi import APIRouter, Depends

from boxoffice.api.deps import get_booking_engine, get_current_user
from boxoffice.core.security import Requester
from boxoffice.schemas.reservation import QuoteRequest, QuoteResponse
from boxoffice.services.booking import BookingEngine

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/quote", response_model=QuoteResponse)
def create_quote(
    data: QuoteRequest,
    engine: BookingEngine = Depends(get_booking_engine),
    current_user: Requester = Depends(get_current_user),
):
    """
    Price a seat selection and open a payment intent for it.

    **Seat-mapped showings**: provide `seats` (seat ids or labels).
    **Showings without a seat map**: provide `count`.

    The quote reserves nothing. Seats are only held once the payment has
    succeeded and `POST /reservations` commits it.
    """
    return engine.quote(data.showing_id, data.to_selection(), current_user)
