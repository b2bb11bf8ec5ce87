from fastapi import APIRouter

from preview_reconciler.api.routes import health, previews

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(previews.router, prefix="/previews", tags=["previews"])
