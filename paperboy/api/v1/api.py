from fastapi import APIRouter
from paperboy.api.v1 import auth, billing, profile, stats

api_router = APIRouter()

# Include all v1 routers
api_router.include_router(auth.router)
api_router.include_router(profile.router)
api_router.include_router(billing.router)
api_router.include_router(stats.router)
