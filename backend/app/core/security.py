from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import jwt
from passlib.context import CryptContext

from backend.app.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ALGORITHM = "HS256"
OUTLET_CLAIM = "outlet"

# In-memory token deny-list for logout.
# In production with multiple replicas, use Redis instead
_revoked_tokens: set[str] = set()


def create_access_token(
    subject: str,
    expires_delta: timedelta | None = None,
    outlet_id: str | None = None,
) -> str:
    """Issue a signed token for *subject*.

    The selected outlet travels as a claim so every request carries its own
    session context instead of relying on client-side storage.
    """
    expire = datetime.now(timezone.utc) + (
        expires_delta
        if expires_delta
        else timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    # jti keeps reissued tokens distinct so revoking the old one is safe
    to_encode: dict[str, Any] = {"sub": subject, "exp": expire, "jti": uuid.uuid4().hex}
    if outlet_id:
        to_encode[OUTLET_CLAIM] = outlet_id
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and verify a token. Raises ``jose.JWTError`` when invalid."""
    return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def validate_password_strength(password: str) -> str | None:
    """Return an error message if *password* is too weak, None if valid."""
    if len(password) < 6:
        return "Password must be at least 6 characters"
    return None


def revoke_token(token: str) -> None:
    """Add a token to the deny-list (logout)."""
    _revoked_tokens.add(token)


def is_token_revoked(token: str) -> bool:
    """Check if a token has been revoked."""
    return token in _revoked_tokens


def cleanup_expired_tokens() -> int:
    """Remove expired tokens from the in-memory deny-list.

    Returns the number of tokens removed.
    """
    expired: list[str] = []
    for token in _revoked_tokens:
        try:
            decode_access_token(token)
        except jwt.ExpiredSignatureError:
            expired.append(token)
        except jwt.JWTError:
            # Malformed tokens can also be cleaned up
            expired.append(token)
    for token in expired:
        _revoked_tokens.discard(token)
    return len(expired)
