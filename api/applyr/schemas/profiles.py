from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

JobType = Literal["full-time", "part-time", "contract", "remote"]
CompanySize = Literal["startup", "mid", "enterprise"]


class NotificationPreferences(BaseModel):
    email: bool = True
    high_match_score: int = Field(default=70, ge=0, le=100)


class Preferences(BaseModel):
    job_types: list[JobType] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    salary_min: int | None = Field(default=None, ge=0)
    industries: list[str] = Field(default_factory=list)
    company_sizes: list[CompanySize] = Field(default_factory=list)
    notifications: NotificationPreferences = Field(default_factory=NotificationPreferences)


class ProfileOut(BaseModel):
    id: str
    owner_user_id: str
    headline: str | None = None
    summary: str | None = None
    location: str | None = None
    skills: list[str] = Field(default_factory=list)
    preferences: Preferences = Field(default_factory=Preferences)
    created_at: datetime
    updated_at: datetime


class ProfileUpdateRequest(BaseModel):
    headline: str | None = Field(default=None, max_length=200)
    summary: str | None = Field(default=None, max_length=2000)
    location: str | None = Field(default=None, max_length=100)


class SkillsUpdateRequest(BaseModel):
    skills: list[str] = Field(max_length=100)


class PreferencesUpdateRequest(BaseModel):
    job_types: list[JobType] | None = None
    locations: list[str] | None = None
    salary_min: int | None = Field(default=None, ge=0)
    industries: list[str] | None = None
    company_sizes: list[CompanySize] | None = None
    notifications: NotificationPreferences | None = None

    @field_validator("job_types", "locations", "industries", "company_sizes", "notifications")
    @classmethod
    def reject_null(cls, v: object) -> object:
        if v is None:
            raise ValueError("field cannot be null; send an empty value instead")
        return v
