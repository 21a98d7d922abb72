from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

JobStatus = Literal["saved", "applied", "interviewing", "offer", "rejected", "archived"]
JobSortBy = Literal["created_at", "updated_at", "title", "company", "status"]


class JobCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=300)
    company: str = Field(min_length=1, max_length=200)
    location: str | None = Field(default=None, max_length=200)
    url: str | None = Field(default=None, max_length=2000)
    source: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=20000)
    status: JobStatus = "saved"


class JobPatchRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=300)
    company: str | None = Field(default=None, min_length=1, max_length=200)
    location: str | None = Field(default=None, max_length=200)
    url: str | None = Field(default=None, max_length=2000)
    description: str | None = Field(default=None, max_length=20000)
    status: JobStatus | None = None

    @field_validator("title", "company", "status")
    @classmethod
    def reject_null(cls, v: str | None) -> str | None:
        # Omit a field to leave it unchanged; these columns cannot be cleared.
        if v is None:
            raise ValueError("field cannot be null")
        return v


class JobOut(BaseModel):
    id: str
    owner_user_id: str
    title: str
    company: str
    location: str | None = None
    url: str | None = None
    source: str | None = None
    description: str | None = None
    status: JobStatus = "saved"
    is_deleted: bool = False
    deleted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
