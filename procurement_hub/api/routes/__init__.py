"""
API router aggregating all route modules.
"""

from fastapi import APIRouter

from procurement_hub.api.routes import (
    auth,
    colleagues,
    health,
    library,
    memos,
    settings,
    users,
)

router = APIRouter()

# Include all route modules
router.include_router(health.router, prefix="/health", tags=["Health"])
router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(colleagues.router, prefix="/colleagues", tags=["Colleagues"])
router.include_router(library.router, prefix="/library", tags=["Library"])
router.include_router(memos.router, prefix="/memos", tags=["Memos"])
router.include_router(settings.router, prefix="/settings", tags=["Settings"])
