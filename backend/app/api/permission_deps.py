"""Role dependencies.

Usage in endpoints::

    @router.post("")
    def create_outlet(
        body: OutletCreate,
        db: Session = Depends(get_db),
        session: SessionContext = Depends(require_role(RoleEnum.ADMIN)),
    ):
        ...
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, status

from backend.app.api.deps import get_session_context
from backend.app.models.user import RoleEnum
from backend.app.services.access import SessionContext


def require_role(*roles: RoleEnum):
    """FastAPI dependency factory: the session's role must be one of *roles*.

    Returns the ``SessionContext`` so the endpoint can pass it on::

        session = Depends(require_role(RoleEnum.ADMIN, RoleEnum.KASIR))
    """

    allowed = set(roles)

    def _checker(session: SessionContext = Depends(get_session_context)) -> SessionContext:
        if session.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(sorted(r.value for r in allowed))}",
            )
        return session

    return _checker


def require_merchant_role(*roles: RoleEnum):
    """Like :func:`require_role` but also demands a merchant-bound session."""

    role_checker = require_role(*roles)

    def _checker(session: SessionContext = Depends(role_checker)) -> SessionContext:
        if session.merchant_id is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="A merchant account is required",
            )
        return session

    return _checker
