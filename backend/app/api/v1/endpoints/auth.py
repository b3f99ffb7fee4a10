from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from backend.app.api.deps import get_session_context, get_token
from backend.app.core.config import settings
from backend.app.core.database import commit_or_raise, get_db
from backend.app.core.security import create_access_token, revoke_token
from backend.app.middleware.rate_limit import InMemoryRateLimiter
from backend.app.models.outlet import Outlet
from backend.app.models.user import RoleEnum, User, UserStatus
from backend.app.schemas.user import CurrentUserOut, RegisterRequest, SelectOutletIn, Token
from backend.app.services.access import SessionContext
from backend.app.services.audit import log_action
from backend.app.services.cart import cart_store
from backend.app.services.user_management import authenticate, register_merchant

logger = logging.getLogger(__name__)

router = APIRouter()

# In-memory per-IP rate limiter. For multi-replica, use Redis.
login_limiter = InMemoryRateLimiter(
    window_seconds=settings.LOGIN_RATE_WINDOW_SECONDS,
    max_attempts=settings.LOGIN_RATE_MAX_ATTEMPTS,
)


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


@router.post("/login/access-token", response_model=Token)
def login_access_token(
    request: Request,
    db: Session = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends(),
) -> Token:
    ip = _client_ip(request)
    login_limiter.check(ip)

    user = authenticate(db, form_data.username, form_data.password)
    if user is None:
        log_action(
            db,
            user_id=None,
            action="LOGIN_FAILED",
            resource_type="auth",
            resource_id=form_data.username,
            ip_address=ip,
            changes={"reason": "invalid_credentials"},
        )
        commit_or_raise(db, "the login attempt")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user.status != UserStatus.ACTIVE:
        log_action(
            db,
            user_id=user.id,
            action="LOGIN_FAILED",
            resource_type="auth",
            resource_id=form_data.username,
            ip_address=ip,
            changes={"reason": user.status.value.lower()},
            merchant_id=user.merchant_id,
        )
        commit_or_raise(db, "the login attempt")
        detail = (
            "Account is pending approval"
            if user.status == UserStatus.PENDING_APPROVAL
            else "Inactive user"
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)

    # A kasir working at a single outlet does not need to pick one
    outlet_id = None
    if user.role == RoleEnum.KASIR and len(user.outlet_ids) == 1:
        outlet_id = user.outlet_ids[0]

    log_action(
        db,
        user_id=user.id,
        action="LOGIN_SUCCESS",
        resource_type="auth",
        resource_id=str(user.id),
        ip_address=ip,
        changes={"email": user.email, "role": user.role.value},
        merchant_id=user.merchant_id,
    )
    commit_or_raise(db, "the login")

    return Token(
        access_token=create_access_token(
            subject=str(user.id),
            outlet_id=str(outlet_id) if outlet_id else None,
        ),
        token_type="bearer",
        outlet_id=outlet_id,
    )


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> dict[str, str]:
    """Merchant self sign-up; the admin account waits for superadmin approval."""
    ip = _client_ip(request)
    login_limiter.check(f"register:{ip}")

    admin = register_merchant(
        db,
        merchant_name=payload.merchant_name,
        admin_name=payload.name,
        email=payload.email,
        password=payload.password,
        ip_address=ip,
    )
    commit_or_raise(db, "the registration")
    logger.info("Merchant registered, admin %s pending approval", admin.id)
    return {"detail": "Registration received, awaiting approval", "user_id": str(admin.id)}


@router.get("/me", response_model=CurrentUserOut)
def read_me(
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
) -> CurrentUserOut:
    user = db.get(User, session.user_id)
    return CurrentUserOut(
        id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        status=user.status,
        merchant_id=user.merchant_id,
        outlet_ids=sorted(session.assigned_outlet_ids, key=str),
        selected_outlet_id=session.outlet_id,
    )


@router.post("/select-outlet", response_model=Token)
def select_outlet(
    payload: SelectOutletIn,
    request: Request,
    db: Session = Depends(get_db),
    session: SessionContext = Depends(get_session_context),
    token: str = Depends(get_token),
) -> Token:
    """Reissue the access token bound to *outlet_id*."""
    outlet = (
        db.query(Outlet)
        .filter(Outlet.id == payload.outlet_id, Outlet.merchant_id == session.merchant_id)
        .first()
    )
    if outlet is None or not session.policy.can_select_outlet(session, outlet.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Outlet is not available for this account",
        )

    log_action(
        db,
        user_id=session.user_id,
        action="OUTLET_SELECTED",
        resource_type="outlets",
        resource_id=str(outlet.id),
        ip_address=_client_ip(request),
        merchant_id=session.merchant_id,
    )
    commit_or_raise(db, "the outlet selection")

    # The cart belongs to the till; switching outlet starts a fresh one
    checkout = cart_store.get(session.user_id)
    with checkout.lock:
        if checkout.outlet_id != outlet.id:
            checkout.reset()
            checkout.outlet_id = outlet.id

    revoke_token(token)
    return Token(
        access_token=create_access_token(subject=str(session.user_id), outlet_id=str(outlet.id)),
        token_type="bearer",
        outlet_id=outlet.id,
    )


@router.post("/logout")
def logout(
    token: str = Depends(get_token),
    session: SessionContext = Depends(get_session_context),
) -> dict[str, str]:
    """Invalidate the current access token and drop the open cart."""
    revoke_token(token)
    cart_store.discard(session.user_id)
    return {"detail": "Logged out successfully"}
