from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal, Protocol

SortOrder = Literal["asc", "desc"]

BASE_FIELDS: tuple[str, ...] = (
    "id",
    "owner_user_id",
    "created_at",
    "updated_at",
    "is_deleted",
    "deleted_at",
)


@dataclass(frozen=True, slots=True)
class CollectionSpec:
    """Static description of one entity collection (one table per entity)."""

    name: str
    fields: tuple[str, ...]
    unique_fields: tuple[tuple[str, ...], ...] = ()
    label: str | None = None

    @property
    def resource(self) -> str:
        return self.label or self.name

    @property
    def all_fields(self) -> tuple[str, ...]:
        return BASE_FIELDS + tuple(name for name in self.fields if name not in BASE_FIELDS)

    def has_field(self, name: str) -> bool:
        return name in self.all_fields


class StorageSession(Protocol):
    async def start_transaction(self) -> None: ...

    async def commit_transaction(self) -> None: ...

    async def abort_transaction(self) -> None: ...

    async def end_session(self) -> None: ...


class Collection(Protocol):
    spec: CollectionSpec

    async def insert_one(self, document: Mapping[str, Any], *, session: StorageSession | None = None) -> dict[str, Any]: ...

    async def find_one(
        self,
        query: Mapping[str, Any],
        *,
        session: StorageSession | None = None,
    ) -> dict[str, Any] | None: ...

    async def find(
        self,
        query: Mapping[str, Any],
        *,
        sort: str,
        order: SortOrder,
        skip: int,
        limit: int,
        session: StorageSession | None = None,
    ) -> list[dict[str, Any]]: ...

    async def count(self, query: Mapping[str, Any], *, session: StorageSession | None = None) -> int: ...

    async def update_one(
        self,
        query: Mapping[str, Any],
        changes: Mapping[str, Any],
        *,
        session: StorageSession | None = None,
    ) -> dict[str, Any] | None: ...

    async def delete_one(self, query: Mapping[str, Any], *, session: StorageSession | None = None) -> bool: ...


class StorageBackend(Protocol):
    async def start_session(self) -> StorageSession: ...

    def collection(self, spec: CollectionSpec) -> Collection: ...


def project(spec: CollectionSpec, document: Mapping[str, Any]) -> dict[str, Any]:
    return {name: document[name] for name in spec.all_fields if name in document}


def unknown_fields(spec: CollectionSpec, names: Sequence[str]) -> list[str]:
    return [name for name in names if not spec.has_field(name)]
