from fastapi import APIRouter

from backend.app.api.v1.endpoints import (
    audit,
    auth,
    inventory,
    kasir,
    outlets,
    pos,
    reports,
    settings,
    suppliers,
    users,
)

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
api_router.include_router(outlets.router, prefix="/outlets", tags=["outlets"])
api_router.include_router(kasir.router, prefix="/kasir", tags=["kasir"])
api_router.include_router(suppliers.router, prefix="/suppliers", tags=["suppliers"])
api_router.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
api_router.include_router(settings.router, prefix="/settings", tags=["settings"])
api_router.include_router(pos.router, prefix="/pos", tags=["pos"])
api_router.include_router(reports.router, prefix="/reports", tags=["reports"])
api_router.include_router(audit.router, prefix="/audit-logs", tags=["audit"])
