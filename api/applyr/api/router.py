from fastapi import APIRouter

from applyr.api.routes import applications, health, jobs, profile
from applyr.core.config import get_settings

settings = get_settings()

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(profile.router, prefix=f"{settings.api_prefix}/profile", tags=["profile"])
api_router.include_router(jobs.router, prefix=f"{settings.api_prefix}/jobs", tags=["jobs"])
api_router.include_router(applications.router, prefix=f"{settings.api_prefix}/applications", tags=["applications"])
