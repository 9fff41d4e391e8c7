from fastapi import APIRouter

from bitacora.api.routes import health, initiatives, log_entries, members, profile

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(profile.router, tags=["profile"])
api_router.include_router(initiatives.router, prefix="/initiatives", tags=["initiatives"])
api_router.include_router(log_entries.router, prefix="/initiatives", tags=["log-entries"])
api_router.include_router(members.router, prefix="/initiatives", tags=["members"])
