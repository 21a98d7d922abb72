"""Generic query and mutation functions for user-owned records.

Every feature repository builds on ``RecordRepository``: reads go through the
filter builder and the pagination engine, writes validate, check ownership,
persist and return plain dicts, or raise ``DataAccessError``.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import Any

from applyr.core import errors
from applyr.db import lifecycle
from applyr.db.filters import build_filter
from applyr.db.ownership import assert_ownership
from applyr.db.pagination import PaginatedResult, PaginationOptions, paginate
from applyr.db.storage import BASE_FIELDS, Collection, CollectionSpec, StorageBackend, StorageSession

PROTECTED_FIELDS = frozenset(BASE_FIELDS)


class RecordRepository:
    def __init__(self, backend: StorageBackend, spec: CollectionSpec) -> None:
        self.backend = backend
        self.spec = spec

    @property
    def collection(self) -> Collection:
        return self.backend.collection(self.spec)

    async def create(
        self,
        user_id: str,
        data: Mapping[str, Any],
        *,
        session: StorageSession | None = None,
    ) -> dict[str, Any]:
        now = lifecycle.utcnow()
        document = {
            **self._writable(data),
            "id": str(uuid.uuid4()),
            "owner_user_id": user_id,
            "created_at": now,
            "updated_at": now,
            "is_deleted": False,
            "deleted_at": None,
        }
        return await self.collection.insert_one(document, session=session)

    async def get(
        self,
        record_id: str,
        user_id: str | None = None,
        *,
        include_deleted: bool = False,
        session: StorageSession | None = None,
    ) -> dict[str, Any]:
        query: dict[str, Any] = {"id": record_id}
        if user_id is not None:
            query["owner_user_id"] = user_id
        record = await self.collection.find_one(
            query if include_deleted else build_filter(query),
            session=session,
        )
        if record is None:
            raise errors.not_found(self.spec.resource)
        return record

    async def find_one(
        self,
        user_filter: Mapping[str, Any],
        *,
        session: StorageSession | None = None,
    ) -> dict[str, Any] | None:
        return await self.collection.find_one(build_filter(user_filter), session=session)

    async def exists(self, user_filter: Mapping[str, Any], *, session: StorageSession | None = None) -> bool:
        return await self.collection.count(build_filter(user_filter), session=session) > 0

    async def list(
        self,
        user_filter: Mapping[str, Any] | None = None,
        options: PaginationOptions | None = None,
        *,
        include_deleted: bool = False,
        session: StorageSession | None = None,
    ) -> PaginatedResult:
        query = dict(user_filter or {}) if include_deleted else build_filter(user_filter)
        return await paginate(self.collection, query, options, session=session)

    async def update(
        self,
        record_id: str,
        user_id: str,
        patch: Mapping[str, Any],
        *,
        session: StorageSession | None = None,
    ) -> dict[str, Any]:
        active = build_filter({"id": record_id})
        record = await self.collection.find_one(active, session=session)
        if record is None:
            raise errors.not_found(self.spec.resource)
        assert_ownership(record, user_id)

        changes = {**self._writable(patch), **lifecycle.touch_changes()}
        updated = await self.collection.update_one(active, changes, session=session)
        if updated is None:
            raise errors.not_found(self.spec.resource)
        return updated

    async def soft_delete(
        self,
        record_id: str,
        user_id: str,
        *,
        session: StorageSession | None = None,
    ) -> dict[str, Any]:
        return await lifecycle.soft_delete(self.collection, record_id, user_id, session=session)

    async def restore(
        self,
        record_id: str,
        user_id: str,
        *,
        session: StorageSession | None = None,
    ) -> dict[str, Any]:
        return await lifecycle.restore(self.collection, record_id, user_id, session=session)

    async def hard_delete(
        self,
        record_id: str,
        user_id: str,
        *,
        confirm_erasure: bool = False,
        session: StorageSession | None = None,
    ) -> None:
        await lifecycle.hard_delete(
            self.collection,
            record_id,
            user_id,
            confirm_erasure=confirm_erasure,
            session=session,
        )

    def _writable(self, data: Mapping[str, Any]) -> dict[str, Any]:
        protected = sorted(PROTECTED_FIELDS.intersection(data))
        if protected:
            raise errors.bad_request(
                f"fields cannot be written directly: {', '.join(protected)}",
                details={"fields": protected},
            )
        return dict(data)
