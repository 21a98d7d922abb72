"""Process-local storage backend.

Used by the test-suite and by ``APPLYR_STORAGE_BACKEND=memory`` for local
development. Transactions are implemented with an undo journal, so an aborted
session restores every document it touched; there is no isolation between
concurrent sessions.
"""

from __future__ import annotations

import asyncio
import copy
from collections.abc import Callable, Mapping
from typing import Any

from applyr.core import errors
from applyr.db.filters import iter_conditions
from applyr.db.storage import CollectionSpec, SortOrder, StorageSession, project, unknown_fields


class InMemorySession:
    def __init__(self, backend: InMemoryBackend) -> None:
        self.backend = backend
        self.in_transaction = False
        self.ended = False
        self._journal: list[Callable[[], None]] = []

    async def start_transaction(self) -> None:
        if self.in_transaction:
            raise RuntimeError("transaction already in progress")
        self.in_transaction = True
        self._journal = []

    async def commit_transaction(self) -> None:
        self._require_transaction()
        self._journal = []
        self.in_transaction = False
        self.backend.commits += 1

    async def abort_transaction(self) -> None:
        self._require_transaction()
        for undo in reversed(self._journal):
            undo()
        self._journal = []
        self.in_transaction = False
        self.backend.aborts += 1

    async def end_session(self) -> None:
        if self.in_transaction:
            await self.abort_transaction()
        self.ended = True
        self.backend.sessions_ended += 1

    def record_undo(self, undo: Callable[[], None]) -> None:
        if self.in_transaction:
            self._journal.append(undo)

    def _require_transaction(self) -> None:
        if not self.in_transaction:
            raise RuntimeError("no transaction in progress")


class InMemoryCollection:
    def __init__(self, backend: InMemoryBackend, spec: CollectionSpec) -> None:
        self.backend = backend
        self.spec = spec
        self._rows: dict[str, dict[str, Any]] = {}

    async def insert_one(
        self,
        document: Mapping[str, Any],
        *,
        session: StorageSession | None = None,
    ) -> dict[str, Any]:
        await self._io()
        self._reject_unknown(document)
        row = copy.deepcopy(project(self.spec, document))
        record_id = row.get("id")
        if not record_id:
            raise errors.bad_request(f"{self.spec.name} document requires an id")
        if record_id in self._rows:
            raise errors.conflict(f"{self.spec.name} {record_id} already exists")
        self._check_unique(row, exclude_id=None)

        self._rows[record_id] = row
        self._journal(session, lambda: self._rows.pop(record_id, None))
        return copy.deepcopy(row)

    async def find_one(
        self,
        query: Mapping[str, Any],
        *,
        session: StorageSession | None = None,
    ) -> dict[str, Any] | None:
        await self._io()
        for row in self._rows.values():
            if matches(row, query):
                return copy.deepcopy(row)
        return None

    async def find(
        self,
        query: Mapping[str, Any],
        *,
        sort: str,
        order: SortOrder,
        skip: int,
        limit: int,
        session: StorageSession | None = None,
    ) -> list[dict[str, Any]]:
        await self._io()
        rows = [row for row in self._rows.values() if matches(row, query)]
        rows.sort(key=lambda row: _sort_key(row, sort), reverse=order == "desc")
        return [copy.deepcopy(row) for row in rows[skip : skip + limit]]

    async def count(self, query: Mapping[str, Any], *, session: StorageSession | None = None) -> int:
        await self._io()
        return sum(1 for row in self._rows.values() if matches(row, query))

    async def update_one(
        self,
        query: Mapping[str, Any],
        changes: Mapping[str, Any],
        *,
        session: StorageSession | None = None,
    ) -> dict[str, Any] | None:
        await self._io()
        self._reject_unknown(changes)
        row = next((row for row in self._rows.values() if matches(row, query)), None)
        if row is None:
            return None

        updated = {**row, **copy.deepcopy(dict(changes))}
        self._check_unique(updated, exclude_id=row["id"])
        previous = copy.deepcopy(row)
        row.update(copy.deepcopy(dict(changes)))
        self._journal(session, lambda: self._restore_row(previous))
        return copy.deepcopy(row)

    async def delete_one(self, query: Mapping[str, Any], *, session: StorageSession | None = None) -> bool:
        await self._io()
        row = next((row for row in self._rows.values() if matches(row, query)), None)
        if row is None:
            return False
        removed = self._rows.pop(row["id"])
        self._journal(session, lambda: self._restore_row(removed))
        return True

    def _restore_row(self, row: dict[str, Any]) -> None:
        self._rows[row["id"]] = row

    def _journal(self, session: StorageSession | None, undo: Callable[[], None]) -> None:
        if isinstance(session, InMemorySession):
            session.record_undo(undo)

    def _reject_unknown(self, document: Mapping[str, Any]) -> None:
        unknown = unknown_fields(self.spec, list(document))
        if unknown:
            raise errors.bad_request(
                f"unknown fields for {self.spec.name}: {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)},
            )

    def _check_unique(self, candidate: Mapping[str, Any], *, exclude_id: str | None) -> None:
        # Uniqueness only applies to live records, matching the partial indexes in sql/001_init.sql.
        if candidate.get("is_deleted"):
            return
        for fields in self.spec.unique_fields:
            key = tuple(candidate.get(name) for name in fields)
            for row in self._rows.values():
                if row["id"] == exclude_id or row.get("is_deleted"):
                    continue
                if tuple(row.get(name) for name in fields) == key:
                    raise errors.conflict(
                        f"{self.spec.name} with the same {', '.join(fields)} already exists",
                        details={"fields": list(fields)},
                    )

    @staticmethod
    async def _io() -> None:
        await asyncio.sleep(0)


class InMemoryBackend:
    def __init__(self) -> None:
        self._collections: dict[str, InMemoryCollection] = {}
        self.sessions_started = 0
        self.sessions_ended = 0
        self.commits = 0
        self.aborts = 0

    async def start_session(self) -> InMemorySession:
        self.sessions_started += 1
        return InMemorySession(self)

    def collection(self, spec: CollectionSpec) -> InMemoryCollection:
        existing = self._collections.get(spec.name)
        if existing is None:
            existing = InMemoryCollection(self, spec)
            self._collections[spec.name] = existing
        return existing


def matches(document: Mapping[str, Any], query: Mapping[str, Any]) -> bool:
    return all(
        _compare(document.get(field), operator, operand)
        for field, operator, operand in iter_conditions(query)
    )


def _compare(value: Any, operator: str, operand: Any) -> bool:
    if operator == "$eq":
        return value == operand
    if operator == "$ne":
        return value != operand
    if operator == "$in":
        return value in operand
    if operator == "$nin":
        return value not in operand
    if value is None or operand is None:
        return False
    if operator == "$gt":
        return value > operand
    if operator == "$gte":
        return value >= operand
    if operator == "$lt":
        return value < operand
    if operator == "$lte":
        return value <= operand
    raise errors.bad_request(f"unsupported filter operator {operator!r}")


def _sort_key(row: Mapping[str, Any], sort: str) -> tuple[Any, ...]:
    value = row.get(sort)
    if value is None:
        return (1, "", row["id"])
    return (0, value, row["id"])
