from __future__ import annotations

from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy.orm import Session, selectinload

from backend.app.core.database import get_db
from backend.app.core.security import OUTLET_CLAIM, decode_access_token, is_token_revoked
from backend.app.models.user import User, UserStatus
from backend.app.services.access import SessionContext

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login/access-token")


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def _decode(token: str) -> dict:
    # Check if token was revoked (logout)
    if is_token_revoked(token):
        raise _credentials_exception()
    try:
        payload = decode_access_token(token)
    except JWTError:
        raise _credentials_exception()
    if payload.get("sub") is None:
        raise _credentials_exception()
    return payload


def _load_active_user(db: Session, user_id: str) -> User:
    try:
        uid = UUID(user_id)
    except ValueError:
        raise _credentials_exception()
    user = (
        db.query(User)
        .options(selectinload(User.outlets))
        .filter(User.id == uid)
        .first()
    )
    if user is None:
        raise _credentials_exception()
    if user.status != UserStatus.ACTIVE:
        detail = (
            "Account is pending approval"
            if user.status == UserStatus.PENDING_APPROVAL
            else "Inactive user"
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
    return user


def get_current_user(
    db: Session = Depends(get_db),
    token: str = Depends(oauth2_scheme),
) -> User:
    payload = _decode(token)
    return _load_active_user(db, payload["sub"])


def get_session_context(
    request: Request,
    db: Session = Depends(get_db),
    token: str = Depends(oauth2_scheme),
) -> SessionContext:
    """Build the explicit session (user + selected outlet) for this request."""
    payload = _decode(token)
    user = _load_active_user(db, payload["sub"])

    outlet_id: UUID | None = None
    raw_outlet = payload.get(OUTLET_CLAIM)
    if raw_outlet:
        try:
            outlet_id = UUID(raw_outlet)
        except ValueError:
            raise _credentials_exception()

    session = SessionContext.from_user(user, outlet_id)
    request.state.session = session
    return session


def get_token(token: str = Depends(oauth2_scheme)) -> str:
    return token
