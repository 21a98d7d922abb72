from fastapi import APIRouter, Depends, Query, status

from applyr.api.deps import get_job_service, page_params
from applyr.core.security import CurrentUser, get_current_user
from applyr.db.pagination import PaginationOptions
from applyr.schemas.common import Envelope, PageOut
from applyr.schemas.jobs import JobCreateRequest, JobOut, JobPatchRequest, JobSortBy, JobStatus
from applyr.services.applications import JobService

router = APIRouter()


@router.get("", response_model=Envelope[PageOut[JobOut]])
async def list_jobs(
    job_status: JobStatus | None = Query(default=None, alias="status"),
    company: str | None = Query(default=None, min_length=1),
    sort: JobSortBy = Query(default="created_at"),
    include_deleted: bool = Query(default=False),
    options: PaginationOptions = Depends(page_params),
    user: CurrentUser = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
) -> Envelope[PageOut[JobOut]]:
    options.sort = sort
    result = await service.list_jobs(
        user.id,
        status=job_status,
        company=company,
        options=options,
        include_deleted=include_deleted,
    )
    return Envelope[PageOut[JobOut]](data=PageOut[JobOut](**result.to_dict()))


@router.post("", response_model=Envelope[JobOut], status_code=status.HTTP_201_CREATED)
async def create_job(
    payload: JobCreateRequest,
    user: CurrentUser = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
) -> Envelope[JobOut]:
    job = await service.create_job(user.id, payload.model_dump())
    return Envelope[JobOut](data=JobOut(**job))


@router.get("/{job_id}", response_model=Envelope[JobOut])
async def get_job(
    job_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
) -> Envelope[JobOut]:
    job = await service.get_job(job_id, user.id)
    return Envelope[JobOut](data=JobOut(**job))


@router.patch("/{job_id}", response_model=Envelope[JobOut])
async def patch_job(
    job_id: str,
    payload: JobPatchRequest,
    user: CurrentUser = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
) -> Envelope[JobOut]:
    job = await service.update_job(job_id, user.id, payload.model_dump(exclude_unset=True))
    return Envelope[JobOut](data=JobOut(**job))


@router.delete("/{job_id}", response_model=Envelope[JobOut])
async def delete_job(
    job_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
) -> Envelope[JobOut]:
    job = await service.delete_job(job_id, user.id)
    return Envelope[JobOut](data=JobOut(**job))


@router.post("/{job_id}/restore", response_model=Envelope[JobOut])
async def restore_job(
    job_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: JobService = Depends(get_job_service),
) -> Envelope[JobOut]:
    job = await service.restore_job(job_id, user.id)
    return Envelope[JobOut](data=JobOut(**job))
