from __future__ import annotations

import asyncio
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from applyr.core import errors
from applyr.db.storage import Collection, SortOrder, StorageSession

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
MAX_LIMIT = 100
DEFAULT_SORT = "created_at"
DEFAULT_ORDER: SortOrder = "desc"


@dataclass(slots=True)
class PaginationOptions:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    sort: str = DEFAULT_SORT
    order: SortOrder = DEFAULT_ORDER


@dataclass(slots=True)
class Pagination:
    page: int
    limit: int
    total: int
    pages: int


@dataclass(slots=True)
class PaginatedResult:
    items: list[dict[str, Any]] = field(default_factory=list)
    pagination: Pagination = field(default_factory=lambda: Pagination(DEFAULT_PAGE, DEFAULT_LIMIT, 0, 0))

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": self.items,
            "pagination": {
                "page": self.pagination.page,
                "limit": self.pagination.limit,
                "total": self.pagination.total,
                "pages": self.pagination.pages,
            },
        }


@dataclass(frozen=True, slots=True)
class PageWindow:
    page: int
    limit: int
    skip: int
    sort: str
    order: SortOrder


def normalize_pagination(options: PaginationOptions | None = None) -> PageWindow:
    options = options or PaginationOptions()
    page = max(1, options.page if options.page is not None else DEFAULT_PAGE)
    limit = min(max(1, options.limit if options.limit is not None else DEFAULT_LIMIT), MAX_LIMIT)
    sort = options.sort or DEFAULT_SORT
    order: SortOrder = "asc" if options.order == "asc" else "desc"
    return PageWindow(page=page, limit=limit, skip=(page - 1) * limit, sort=sort, order=order)


def page_count(total: int, limit: int) -> int:
    return math.ceil(total / limit) if total > 0 else 0


async def paginate(
    collection: Collection,
    query: Mapping[str, Any],
    options: PaginationOptions | None = None,
    *,
    session: StorageSession | None = None,
) -> PaginatedResult:
    """Fetch one page of ``collection`` matching ``query``.

    ``query`` must already carry the soft-delete exclusion (see
    ``applyr.db.filters.build_filter``). Count and fetch see the same filter;
    outside a session they run concurrently, inside one they share its
    connection and run in order.
    """
    window = normalize_pagination(options)
    if not collection.spec.has_field(window.sort):
        raise errors.bad_request(
            f"cannot sort {collection.spec.name} by {window.sort!r}",
            details={"sort": window.sort},
        )

    def find() -> Any:
        return collection.find(
            query,
            sort=window.sort,
            order=window.order,
            skip=window.skip,
            limit=window.limit,
            session=session,
        )

    if session is None:
        try:
            async with asyncio.TaskGroup() as group:
                count_task = group.create_task(collection.count(query))
                find_task = group.create_task(find())
        except ExceptionGroup as failures:
            # The sibling query is already cancelled; re-raise the storage error itself.
            raise failures.exceptions[0]
        total, items = count_task.result(), find_task.result()
    else:
        total = await collection.count(query, session=session)
        items = await find()

    return PaginatedResult(
        items=items,
        pagination=Pagination(
            page=window.page,
            limit=window.limit,
            total=total,
            pages=page_count(total, window.limit),
        ),
    )
