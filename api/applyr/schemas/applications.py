from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from applyr.schemas.jobs import JobOut

ApplicationStatus = Literal["applied", "interviewing", "offer", "rejected", "withdrawn"]
ApplicationSortBy = Literal["created_at", "updated_at", "applied_at", "status"]


class ApplyRequest(BaseModel):
    job_id: str = Field(min_length=1)
    notes: str | None = Field(default=None, max_length=5000)


class ApplicationStatusPatchRequest(BaseModel):
    status: ApplicationStatus
    note: str | None = Field(default=None, max_length=2000)


class ApplicationOut(BaseModel):
    id: str
    owner_user_id: str
    job_id: str
    status: ApplicationStatus
    notes: str | None = None
    applied_at: datetime | None = None
    is_deleted: bool = False
    deleted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ApplicationEventOut(BaseModel):
    id: str
    application_id: str
    event_type: str
    payload: dict[str, Any] = Field(default_factory=dict)
    occurred_at: datetime


class ApplyResultOut(BaseModel):
    application: ApplicationOut
    job: JobOut
    event: ApplicationEventOut


class StatusChangeOut(BaseModel):
    application: ApplicationOut
    event: ApplicationEventOut
