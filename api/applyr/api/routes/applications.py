from fastapi import APIRouter, Depends, Query, status

from applyr.api.deps import get_application_service, page_params
from applyr.core.security import CurrentUser, get_current_user
from applyr.db.pagination import PaginationOptions
from applyr.schemas.applications import (
    ApplicationEventOut,
    ApplicationOut,
    ApplicationSortBy,
    ApplicationStatus,
    ApplicationStatusPatchRequest,
    ApplyRequest,
    ApplyResultOut,
    StatusChangeOut,
)
from applyr.schemas.common import Envelope, PageOut
from applyr.services.applications import ApplicationService

router = APIRouter()


@router.get("", response_model=Envelope[PageOut[ApplicationOut]])
async def list_applications(
    application_status: ApplicationStatus | None = Query(default=None, alias="status"),
    sort: ApplicationSortBy = Query(default="created_at"),
    include_deleted: bool = Query(default=False),
    options: PaginationOptions = Depends(page_params),
    user: CurrentUser = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
) -> Envelope[PageOut[ApplicationOut]]:
    options.sort = sort
    result = await service.list_applications(
        user.id,
        status=application_status,
        options=options,
        include_deleted=include_deleted,
    )
    return Envelope[PageOut[ApplicationOut]](data=PageOut[ApplicationOut](**result.to_dict()))


@router.post("", response_model=Envelope[ApplyResultOut], status_code=status.HTTP_201_CREATED)
async def apply_to_job(
    payload: ApplyRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
) -> Envelope[ApplyResultOut]:
    result = await service.apply_to_job(user.id, payload.job_id, notes=payload.notes)
    return Envelope[ApplyResultOut](data=ApplyResultOut(**result))


@router.get("/{application_id}", response_model=Envelope[ApplicationOut])
async def get_application(
    application_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
) -> Envelope[ApplicationOut]:
    application = await service.get_application(application_id, user.id)
    return Envelope[ApplicationOut](data=ApplicationOut(**application))


@router.patch("/{application_id}", response_model=Envelope[StatusChangeOut])
async def patch_application(
    application_id: str,
    payload: ApplicationStatusPatchRequest,
    user: CurrentUser = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
) -> Envelope[StatusChangeOut]:
    result = await service.update_status(application_id, user.id, payload.status, note=payload.note)
    return Envelope[StatusChangeOut](data=StatusChangeOut(**result))


@router.delete("/{application_id}", response_model=Envelope[ApplicationOut])
async def withdraw_application(
    application_id: str,
    user: CurrentUser = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
) -> Envelope[ApplicationOut]:
    application = await service.withdraw(application_id, user.id)
    return Envelope[ApplicationOut](data=ApplicationOut(**application))


@router.get("/{application_id}/events", response_model=Envelope[PageOut[ApplicationEventOut]])
async def list_application_events(
    application_id: str,
    page: int = Query(default=1),
    limit: int = Query(default=50),
    user: CurrentUser = Depends(get_current_user),
    service: ApplicationService = Depends(get_application_service),
) -> Envelope[PageOut[ApplicationEventOut]]:
    options = PaginationOptions(page=page, limit=limit, sort="occurred_at", order="asc")
    result = await service.list_events(application_id, user.id, options)
    return Envelope[PageOut[ApplicationEventOut]](data=PageOut[ApplicationEventOut](**result.to_dict()))
