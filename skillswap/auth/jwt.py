"""Issue and resolve bearer tokens. The swap core only ever sees the resolved user id."""
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from skillswap.config import settings


def create_access_token(user_id: int, expires_delta: timedelta | None = None) -> str:
    """Encode ``{"sub": "<user id>", "exp": ...}``."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload = {"sub": str(user_id), "exp": expire}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def resolve_user_id(token: str) -> int | None:
    """Return the user id in a valid, unexpired token, else None."""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        return None
