# auth.py

"""Restaurant staff authentication.

Restaurants sign in with email and password (argon2 hashes) and receive a
signed JWT whose ``sub`` is the restaurant id. Guest endpoints need no token;
knowing an order id is enough to act on that order.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from fastapi import Depends, HTTPException, Query, Request, status
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel

from config import get_settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

ph = PasswordHasher()

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)


class Token(BaseModel):
    """JWT access token returned after authentication."""

    access_token: str
    token_type: str = "bearer"
    restaurant_id: str


class CurrentRestaurant(BaseModel):
    """Claims of an authenticated restaurant."""

    id: str
    email: Optional[str] = None
    name: Optional[str] = None


def hash_password(password: str) -> str:
    return ph.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a plaintext password against a stored hash."""

    try:
        return ph.verify(hashed_password, plain_password)
    except (VerifyMismatchError, InvalidHashError):
        return False
    except VerificationError as exc:  # pragma: no cover - unexpected
        logger.error("argon2 verification error: %s", exc)
        raise


def create_access_token(
    restaurant_id: str,
    claims: dict | None = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed JWT for ``restaurant_id``."""

    settings = get_settings()
    to_encode = dict(claims or {})
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode.update({"sub": restaurant_id, "exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    return jwt.decode(token, get_settings().secret_key, algorithms=[ALGORITHM])


def get_current_restaurant(
    request: Request, token: Optional[str] = Depends(oauth2_scheme)
) -> CurrentRestaurant:
    """Resolve the restaurant from a bearer token or raise ``HTTPException``."""

    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if not token:
        raise credentials_exception
    try:
        payload = decode_token(token)
    except jwt.PyJWTError:
        raise credentials_exception
    restaurant_id = payload.get("sub")
    if not restaurant_id:
        raise credentials_exception
    request.state.restaurant_id = restaurant_id
    return CurrentRestaurant(
        id=restaurant_id, email=payload.get("email"), name=payload.get("name")
    )


def get_stream_restaurant(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    access_token: Optional[str] = Query(default=None),
) -> str:
    """Resolve the restaurant id for an event stream.

    Browsers cannot attach headers to ``EventSource`` requests, so the token
    may also arrive as the ``access_token`` query parameter.
    """

    return get_current_restaurant(request, token or access_token).id


__all__ = [
    "Token",
    "CurrentRestaurant",
    "hash_password",
    "verify_password",
    "create_access_token",
    "decode_token",
    "get_current_restaurant",
    "get_stream_restaurant",
]
