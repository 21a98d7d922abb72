from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from applyr.core import errors
from applyr.core.errors import DataAccessError, ErrorKind
from applyr.db.filters import build_filter
from applyr.db.memory import InMemoryBackend
from applyr.db.pagination import (
    MAX_LIMIT,
    PaginationOptions,
    normalize_pagination,
    page_count,
    paginate,
)
from applyr.db.storage import CollectionSpec
from applyr.services.records import RecordRepository

NOTES = CollectionSpec(name="notes", fields=("title", "rank"), label="note")

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _seed(backend: InMemoryBackend, active: int, deleted: int = 0, owner: str = "user-a") -> None:
    collection = backend.collection(NOTES)

    async def _insert() -> None:
        for index in range(active + deleted):
            stamp = BASE_TIME + timedelta(minutes=index)
            is_deleted = index >= active
            await collection.insert_one(
                {
                    "id": f"note-{index:03d}",
                    "owner_user_id": owner,
                    "title": f"note {index}",
                    "rank": index,
                    "created_at": stamp,
                    "updated_at": stamp,
                    "is_deleted": is_deleted,
                    "deleted_at": stamp if is_deleted else None,
                }
            )

    asyncio.run(_insert())


def _page(backend: InMemoryBackend, **options: Any):
    return asyncio.run(
        paginate(backend.collection(NOTES), build_filter(), PaginationOptions(**options))
    )


def test_normalize_pagination_clamps_page_and_limit() -> None:
    window = normalize_pagination(PaginationOptions(page=0, limit=500))
    assert window.page == 1
    assert window.limit == MAX_LIMIT
    assert window.skip == 0

    window = normalize_pagination(PaginationOptions(page=-3, limit=0))
    assert (window.page, window.limit) == (1, 1)


def test_normalize_pagination_defaults() -> None:
    window = normalize_pagination()
    assert (window.page, window.limit, window.skip, window.sort, window.order) == (1, 20, 0, "created_at", "desc")


def test_page_count() -> None:
    assert page_count(0, 10) == 0
    assert page_count(1, 10) == 1
    assert page_count(10, 10) == 1
    assert page_count(25, 10) == 3


def test_second_page_skips_deleted_records() -> None:
    backend = InMemoryBackend()
    _seed(backend, active=25, deleted=3)

    result = _page(backend, page=2, limit=10)

    assert len(result.items) == 10
    assert result.pagination.total == 25
    assert result.pagination.pages == 3
    assert all(item["is_deleted"] is False for item in result.items)


def test_last_page_holds_the_remainder() -> None:
    backend = InMemoryBackend()
    _seed(backend, active=25)

    assert len(_page(backend, page=3, limit=10).items) == 5
    assert len(_page(backend, page=3, limit=5).items) == 5


def test_page_beyond_the_end_is_empty_but_keeps_totals() -> None:
    backend = InMemoryBackend()
    _seed(backend, active=7)

    result = _page(backend, page=4, limit=5)

    assert result.items == []
    assert result.pagination.total == 7
    assert result.pagination.pages == 2
    assert result.pagination.page == 4


def test_oversized_limit_is_clamped_in_the_result() -> None:
    backend = InMemoryBackend()
    _seed(backend, active=120)

    result = _page(backend, limit=1000)

    assert len(result.items) == MAX_LIMIT
    assert result.pagination.limit == MAX_LIMIT
    assert result.pagination.pages == 2


def test_empty_collection() -> None:
    result = _page(InMemoryBackend())
    assert result.items == []
    assert result.pagination.total == 0
    assert result.pagination.pages == 0


def test_sort_order_is_applied() -> None:
    backend = InMemoryBackend()
    _seed(backend, active=5)

    descending = _page(backend, sort="rank", order="desc")
    ascending = _page(backend, sort="rank", order="asc")

    assert [item["rank"] for item in descending.items] == [4, 3, 2, 1, 0]
    assert [item["rank"] for item in ascending.items] == [0, 1, 2, 3, 4]


def test_pages_do_not_overlap() -> None:
    backend = InMemoryBackend()
    _seed(backend, active=12)

    seen: list[str] = []
    for page in (1, 2, 3):
        seen.extend(item["id"] for item in _page(backend, page=page, limit=5).items)

    assert len(seen) == 12
    assert len(set(seen)) == 12


def test_unknown_sort_field_is_rejected() -> None:
    with pytest.raises(DataAccessError) as exc_info:
        _page(InMemoryBackend(), sort="password")

    assert exc_info.value.kind is ErrorKind.BAD_REQUEST


def test_repository_list_can_include_deleted_records() -> None:
    backend = InMemoryBackend()
    _seed(backend, active=4, deleted=2)
    repository = RecordRepository(backend, NOTES)

    active = asyncio.run(repository.list({"owner_user_id": "user-a"}))
    everything = asyncio.run(repository.list({"owner_user_id": "user-a"}, include_deleted=True))

    assert active.pagination.total == 4
    assert everything.pagination.total == 6


def test_paginated_result_serializes_to_envelope_shape() -> None:
    backend = InMemoryBackend()
    _seed(backend, active=3)

    payload = _page(backend, limit=2).to_dict()

    assert payload["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}
    assert len(payload["items"]) == 2


class FailingCountCollection:
    spec = NOTES

    def __init__(self) -> None:
        self.find_cancelled = False

    async def count(self, query: Any, *, session: Any = None) -> int:
        await asyncio.sleep(0)
        raise errors.persistence_failure()

    async def find(self, query: Any, **_: Any) -> list[dict[str, Any]]:
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            self.find_cancelled = True
            raise
        return []


def test_count_failure_cancels_find_and_returns_nothing() -> None:
    collection = FailingCountCollection()

    with pytest.raises(DataAccessError) as exc_info:
        asyncio.run(paginate(collection, build_filter(), PaginationOptions()))

    assert exc_info.value.kind is ErrorKind.PERSISTENCE_FAILURE
    assert collection.find_cancelled is True
