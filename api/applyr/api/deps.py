from fastapi import Depends, Query

from applyr.db.pagination import DEFAULT_LIMIT, DEFAULT_PAGE, PaginationOptions
from applyr.db.runtime import get_backend, get_coordinator
from applyr.db.storage import StorageBackend
from applyr.schemas.common import SortOrder
from applyr.services.applications import ApplicationService, JobService
from applyr.services.profiles import ProfileService


def get_profile_service(backend: StorageBackend = Depends(get_backend)) -> ProfileService:
    return ProfileService(backend)


def get_job_service(backend: StorageBackend = Depends(get_backend)) -> JobService:
    return JobService(backend)


def get_application_service(backend: StorageBackend = Depends(get_backend)) -> ApplicationService:
    return ApplicationService(backend, get_coordinator(backend))


def page_params(
    page: int = Query(default=DEFAULT_PAGE),
    limit: int = Query(default=DEFAULT_LIMIT),
    order: SortOrder = Query(default="desc"),
) -> PaginationOptions:
    # Out-of-range page/limit values are clamped by the pagination engine, not rejected here.
    return PaginationOptions(page=page, limit=limit, order=order)
