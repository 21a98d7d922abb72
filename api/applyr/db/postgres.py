from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from applyr.core import errors
from applyr.db.connection import ConnectionManager
from applyr.db.filters import iter_conditions
from applyr.db.storage import CollectionSpec, SortOrder, StorageSession, project, unknown_fields

STORAGE_ERRORS = (pg_exc.PostgresError, pg_exc.InterfaceError, OSError, TimeoutError)


class PostgresSession:
    def __init__(self, pool: asyncpg.Pool, connection: asyncpg.Connection) -> None:
        self._pool = pool
        self.connection = connection
        self._transaction: Any = None

    @property
    def in_transaction(self) -> bool:
        return self._transaction is not None

    async def start_transaction(self) -> None:
        if self._transaction is not None:
            raise RuntimeError("transaction already in progress")
        transaction = self.connection.transaction()
        try:
            await transaction.start()
        except STORAGE_ERRORS as exc:
            raise errors.persistence_failure() from exc
        self._transaction = transaction

    async def commit_transaction(self) -> None:
        transaction = self._require_transaction()
        self._transaction = None
        try:
            await transaction.commit()
        except pg_exc.UniqueViolationError as exc:
            raise errors.conflict() from exc
        except STORAGE_ERRORS as exc:
            raise errors.persistence_failure() from exc

    async def abort_transaction(self) -> None:
        transaction = self._require_transaction()
        self._transaction = None
        try:
            await transaction.rollback()
        except STORAGE_ERRORS as exc:
            raise errors.persistence_failure() from exc

    async def end_session(self) -> None:
        try:
            if self._transaction is not None:
                await self.abort_transaction()
        finally:
            await self._pool.release(self.connection)

    def _require_transaction(self) -> Any:
        if self._transaction is None:
            raise RuntimeError("no transaction in progress")
        return self._transaction


class PostgresCollection:
    def __init__(self, connections: ConnectionManager, spec: CollectionSpec) -> None:
        self.connections = connections
        self.spec = spec
        self.table = quote_ident(spec.name)

    async def insert_one(
        self,
        document: Mapping[str, Any],
        *,
        session: StorageSession | None = None,
    ) -> dict[str, Any]:
        self._reject_unknown(document)
        row = project(self.spec, document)
        columns = list(row)
        placeholders = ", ".join(f"${index}" for index in range(1, len(columns) + 1))
        sql = (
            f"insert into {self.table} ({', '.join(quote_ident(name) for name in columns)}) "
            f"values ({placeholders}) returning *"
        )
        record = await self._run("fetchrow", sql, *row.values(), session=session)
        return dict(record)

    async def find_one(
        self,
        query: Mapping[str, Any],
        *,
        session: StorageSession | None = None,
    ) -> dict[str, Any] | None:
        where_sql, params = compile_filter(self.spec, query)
        sql = f"select * from {self.table} where {where_sql} limit 1"
        record = await self._run("fetchrow", sql, *params, session=session)
        return dict(record) if record is not None else None

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
        where_sql, params = compile_filter(self.spec, query)
        direction = "asc" if order == "asc" else "desc"
        sort_column = self._column(sort)
        params.extend([limit, skip])
        sql = (
            f"select * from {self.table} where {where_sql} "
            f"order by {sort_column} {direction}, \"id\" {direction} "
            f"limit ${len(params) - 1} offset ${len(params)}"
        )
        records = await self._run("fetch", sql, *params, session=session)
        return [dict(record) for record in records]

    async def count(self, query: Mapping[str, Any], *, session: StorageSession | None = None) -> int:
        where_sql, params = compile_filter(self.spec, query)
        sql = f"select count(*) from {self.table} where {where_sql}"
        return int(await self._run("fetchval", sql, *params, session=session) or 0)

    async def update_one(
        self,
        query: Mapping[str, Any],
        changes: Mapping[str, Any],
        *,
        session: StorageSession | None = None,
    ) -> dict[str, Any] | None:
        self._reject_unknown(changes)
        where_sql, params = compile_filter(self.spec, query)
        assignments: list[str] = []
        for name, value in changes.items():
            params.append(value)
            assignments.append(f"{quote_ident(name)} = ${len(params)}")
        if not assignments:
            return await self.find_one(query, session=session)
        sql = (
            f"update {self.table} set {', '.join(assignments)} "
            f"where \"id\" = (select \"id\" from {self.table} where {where_sql} limit 1 for update) "
            "returning *"
        )
        record = await self._run("fetchrow", sql, *params, session=session)
        return dict(record) if record is not None else None

    async def delete_one(self, query: Mapping[str, Any], *, session: StorageSession | None = None) -> bool:
        where_sql, params = compile_filter(self.spec, query)
        sql = (
            f"delete from {self.table} "
            f"where \"id\" = (select \"id\" from {self.table} where {where_sql} limit 1 for update)"
        )
        status = await self._run("execute", sql, *params, session=session)
        return isinstance(status, str) and status.rsplit(" ", maxsplit=1)[-1] != "0"

    async def _run(self, method: str, sql: str, *params: Any, session: StorageSession | None) -> Any:
        executor: Any
        if isinstance(session, PostgresSession):
            executor = session.connection
        else:
            executor = self.connections.pool
        try:
            return await getattr(executor, method)(sql, *params)
        except pg_exc.UniqueViolationError as exc:
            raise errors.conflict(
                f"{self.spec.name} with the same unique fields already exists",
                details={"constraint": getattr(exc, "constraint_name", None)},
            ) from exc
        except pg_exc.ForeignKeyViolationError as exc:
            raise errors.bad_request(f"{self.spec.name} references a missing record") from exc
        except STORAGE_ERRORS as exc:
            raise errors.persistence_failure() from exc

    def _column(self, name: str) -> str:
        if not self.spec.has_field(name):
            raise errors.bad_request(f"unknown field {name!r} for {self.spec.name}", details={"field": name})
        return quote_ident(name)

    def _reject_unknown(self, document: Mapping[str, Any]) -> None:
        unknown = unknown_fields(self.spec, list(document))
        if unknown:
            raise errors.bad_request(
                f"unknown fields for {self.spec.name}: {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)},
            )


class PostgresBackend:
    def __init__(self, connections: ConnectionManager) -> None:
        self.connections = connections
        self._collections: dict[str, PostgresCollection] = {}

    async def start_session(self) -> PostgresSession:
        pool = self.connections.pool
        try:
            connection = await pool.acquire()
        except STORAGE_ERRORS as exc:
            raise errors.persistence_failure() from exc
        return PostgresSession(pool, connection)

    def collection(self, spec: CollectionSpec) -> PostgresCollection:
        existing = self._collections.get(spec.name)
        if existing is None:
            existing = PostgresCollection(self.connections, spec)
            self._collections[spec.name] = existing
        return existing


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def compile_filter(spec: CollectionSpec, query: Mapping[str, Any]) -> tuple[str, list[Any]]:
    """Translate a filter document into a SQL predicate with positional binds."""
    conditions: list[str] = []
    params: list[Any] = []

    def bind(value: Any) -> str:
        params.append(value)
        return f"${len(params)}"

    for field, operator, operand in iter_conditions(query):
        if not spec.has_field(field):
            raise errors.bad_request(f"unknown field {field!r} for {spec.name}", details={"field": field})
        column = quote_ident(field)
        if operator == "$eq":
            conditions.append(f"{column} is null" if operand is None else f"{column} = {bind(operand)}")
        elif operator == "$ne":
            conditions.append(
                f"{column} is not null" if operand is None else f"{column} is distinct from {bind(operand)}"
            )
        elif operator == "$in":
            conditions.append(f"{column} = any({bind(list(operand))})")
        elif operator == "$nin":
            conditions.append(f"({column} is null or not ({column} = any({bind(list(operand))})))")
        else:
            comparator = {"$gt": ">", "$gte": ">=", "$lt": "<", "$lte": "<="}[operator]
            conditions.append(f"{column} {comparator} {bind(operand)}")

    return (" and ".join(conditions) if conditions else "true"), params
