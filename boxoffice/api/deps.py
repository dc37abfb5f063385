from functools import lru_cache

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from boxoffice.core.config import settings
from boxoffice.core.security import Requester, decode_token
from boxoffice.db.session import SessionLocal
from boxoffice.services.booking import BookingEngine
from boxoffice.services.inventory import ShowingLocks
from boxoffice.services.payments import StripePaymentGateway

bearer_scheme = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Requester:
    """Resolve the caller from the identity service's bearer token."""
    requester = decode_token(credentials.credentials) if credentials else None
    if requester is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return requester


def get_current_admin_user(current_user: Requester = Depends(get_current_user)) -> Requester:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


@lru_cache
def get_booking_engine() -> BookingEngine:
    """Process-wide engine; the lock registry must be shared by every request."""
    return BookingEngine(
        session_factory=SessionLocal,
        gateway=StripePaymentGateway(settings.STRIPE_SECRET_KEY),
        locks=ShowingLocks(timeout=settings.INVENTORY_LOCK_TIMEOUT_SECONDS),
        currency=settings.PAYMENT_CURRENCY,
        max_attempts=settings.COMMIT_MAX_ATTEMPTS,
    )
