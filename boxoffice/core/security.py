from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError
from boxoffice.core.config import settings

ALGORITHM = "HS256"

ROLE_USER = "user"
ROLE_ADMIN = "admin"


@dataclass(frozen=True)
class Requester:
    """Authenticated caller as vouched for by the identity service."""

    user_id: str
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def create_access_token(
    subject: str, role: str = ROLE_USER, expires_delta: Optional[timedelta] = None
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {"exp": expire, "sub": str(subject), "role": role}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[Requester]:
    """Returns the requester encoded in the token, or None if invalid/expired."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return None
    subject = payload.get("sub")
    if not subject:
        return None
    return Requester(user_id=subject, role=payload.get("role") or ROLE_USER)
