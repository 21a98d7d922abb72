from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

SortOrder = Literal["asc", "desc"]


class Envelope(BaseModel, Generic[T]):
    success: Literal[True] = True
    data: T


class PaginationOut(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class PageOut(BaseModel, Generic[T]):
    items: list[T] = Field(default_factory=list)
    pagination: PaginationOut


class ErrorBody(BaseModel):
    code: str
    message: str
    details: dict[str, Any] | None = None


class ErrorEnvelope(BaseModel):
    success: Literal[False] = False
    error: ErrorBody
    request_id: str | None = None
