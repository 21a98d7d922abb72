from __future__ import annotations

import asyncio
from typing import Any

import pytest
from asyncpg import exceptions as pg_exc

from applyr.core.errors import DataAccessError, ErrorKind
from applyr.db.filters import build_filter
from applyr.db.pagination import PaginationOptions, paginate
from applyr.db.postgres import PostgresBackend, PostgresCollection
from applyr.db.storage import CollectionSpec, StorageSession
from applyr.db.transactions import run_in_transaction

JOBS = CollectionSpec(name="jobs", fields=("title", "company", "status"), label="job")


class FakeTransaction:
    def __init__(self, commit_error: BaseException | None = None, rollback_error: BaseException | None = None) -> None:
        self.commit_error = commit_error
        self.rollback_error = rollback_error
        self.events: list[str] = []

    async def start(self) -> None:
        self.events.append("start")

    async def commit(self) -> None:
        self.events.append("commit")
        if self.commit_error is not None:
            raise self.commit_error

    async def rollback(self) -> None:
        self.events.append("rollback")
        if self.rollback_error is not None:
            raise self.rollback_error


class FakeConnection:
    def __init__(
        self,
        errors: dict[str, BaseException] | None = None,
        transaction: FakeTransaction | None = None,
    ) -> None:
        self.errors = errors or {}
        self.tx = transaction or FakeTransaction()
        self.statements: list[str] = []

    def transaction(self) -> FakeTransaction:
        return self.tx

    async def _call(self, method: str, sql: str, result: Any) -> Any:
        self.statements.append(sql)
        await asyncio.sleep(0)
        if method in self.errors:
            raise self.errors[method]
        return result

    async def fetchrow(self, sql: str, *params: Any) -> Any:
        return await self._call("fetchrow", sql, None)

    async def fetch(self, sql: str, *params: Any) -> list[Any]:
        return await self._call("fetch", sql, [])

    async def fetchval(self, sql: str, *params: Any) -> Any:
        return await self._call("fetchval", sql, 0)

    async def execute(self, sql: str, *params: Any) -> str:
        return await self._call("execute", sql, "DELETE 0")


class FakePool(FakeConnection):
    def __init__(self, connection: FakeConnection | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.connection = connection or FakeConnection()
        self.released: list[FakeConnection] = []

    async def acquire(self) -> FakeConnection:
        return self.connection

    async def release(self, connection: FakeConnection) -> None:
        self.released.append(connection)


class FakeConnections:
    def __init__(self, pool: FakePool) -> None:
        self.pool = pool


def _collection(**errors: BaseException) -> PostgresCollection:
    return PostgresCollection(FakeConnections(FakePool(errors=errors)), JOBS)


def _document() -> dict[str, Any]:
    return {"id": "job-1", "owner_user_id": "user-a", "title": "Engineer", "company": "Acme", "status": "saved"}


def test_unique_violation_maps_to_conflict() -> None:
    driver_error = pg_exc.UniqueViolationError("duplicate key value violates unique constraint")
    collection = _collection(fetchrow=driver_error)

    with pytest.raises(DataAccessError) as exc_info:
        asyncio.run(collection.insert_one(_document()))

    assert exc_info.value.kind is ErrorKind.CONFLICT
    assert exc_info.value.__cause__ is driver_error


def test_foreign_key_violation_maps_to_bad_request() -> None:
    driver_error = pg_exc.ForeignKeyViolationError("insert violates foreign key constraint")
    collection = _collection(fetchrow=driver_error)

    with pytest.raises(DataAccessError) as exc_info:
        asyncio.run(collection.insert_one(_document()))

    assert exc_info.value.kind is ErrorKind.BAD_REQUEST
    assert exc_info.value.__cause__ is driver_error


@pytest.mark.parametrize(
    "driver_error",
    [
        pg_exc.ConnectionDoesNotExistError("connection was closed in the middle of operation"),
        OSError("connection reset by peer"),
        TimeoutError(),
    ],
)
def test_other_driver_errors_map_to_persistence_failure(driver_error: BaseException) -> None:
    collection = _collection(fetchrow=driver_error)

    with pytest.raises(DataAccessError) as exc_info:
        asyncio.run(collection.find_one(build_filter({"id": "job-1"})))

    assert exc_info.value.kind is ErrorKind.PERSISTENCE_FAILURE
    assert exc_info.value.__cause__ is driver_error


def test_unknown_fields_are_rejected_before_reaching_the_driver() -> None:
    pool = FakePool()
    collection = PostgresCollection(FakeConnections(pool), JOBS)

    with pytest.raises(DataAccessError) as exc_info:
        asyncio.run(collection.insert_one({**_document(), "salary": 1}))

    assert exc_info.value.kind is ErrorKind.BAD_REQUEST
    assert pool.statements == []


def test_pagination_surfaces_count_failure_without_partial_results() -> None:
    driver_error = pg_exc.ConnectionDoesNotExistError("connection was closed in the middle of operation")
    collection = _collection(fetchval=driver_error)

    with pytest.raises(DataAccessError) as exc_info:
        asyncio.run(paginate(collection, build_filter(), PaginationOptions()))

    assert exc_info.value.kind is ErrorKind.PERSISTENCE_FAILURE
    assert exc_info.value.__cause__ is driver_error


def test_session_statements_run_on_the_session_connection() -> None:
    connection = FakeConnection()
    pool = FakePool(connection=connection)
    backend = PostgresBackend(FakeConnections(pool))

    async def work(session: StorageSession) -> None:
        await backend.collection(JOBS).count(build_filter(), session=session)

    asyncio.run(run_in_transaction(backend, work))

    assert connection.tx.events == ["start", "commit"]
    assert len(connection.statements) == 1
    assert pool.statements == []
    assert pool.released == [connection]


def test_commit_unique_violation_maps_to_conflict_and_releases() -> None:
    connection = FakeConnection(
        transaction=FakeTransaction(commit_error=pg_exc.UniqueViolationError("deferred unique constraint"))
    )
    pool = FakePool(connection=connection)
    backend = PostgresBackend(FakeConnections(pool))

    async def work(_: StorageSession) -> None:
        return None

    with pytest.raises(DataAccessError) as exc_info:
        asyncio.run(run_in_transaction(backend, work))

    assert exc_info.value.kind is ErrorKind.CONFLICT
    assert pool.released == [connection]


def test_end_session_releases_connection_when_rollback_fails() -> None:
    connection = FakeConnection(
        transaction=FakeTransaction(rollback_error=pg_exc.ConnectionDoesNotExistError("connection lost"))
    )
    pool = FakePool(connection=connection)
    backend = PostgresBackend(FakeConnections(pool))

    async def scenario() -> None:
        session = await backend.start_session()
        await session.start_transaction()
        await session.end_session()

    with pytest.raises(DataAccessError) as exc_info:
        asyncio.run(scenario())

    assert exc_info.value.kind is ErrorKind.PERSISTENCE_FAILURE
    assert connection.tx.events == ["start", "rollback"]
    assert pool.released == [connection]


def test_failed_rollback_keeps_the_original_error() -> None:
    connection = FakeConnection(
        transaction=FakeTransaction(rollback_error=pg_exc.ConnectionDoesNotExistError("connection lost"))
    )
    pool = FakePool(connection=connection)
    backend = PostgresBackend(FakeConnections(pool))

    async def work(_: StorageSession) -> None:
        raise ValueError("second write failed")

    with pytest.raises(ValueError, match="second write failed"):
        asyncio.run(run_in_transaction(backend, work))

    assert connection.tx.events == ["start", "rollback"]
    assert pool.released == [connection]
