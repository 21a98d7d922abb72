from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from typing import TypeVar

from applyr.db.storage import StorageBackend, StorageSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

TransactionWork = Callable[[StorageSession], Awaitable[T]]

_active_session: ContextVar[StorageSession | None] = ContextVar("applyr_active_session", default=None)


async def run_in_transaction(
    backend: StorageBackend,
    work: TransactionWork[T],
    *,
    timeout: float | None = None,
) -> T:
    """Run ``work`` inside one storage transaction.

    ``work`` receives the session and must pass it to every write that belongs
    to the unit of work. The transaction commits when ``work`` returns and
    aborts when it raises, is cancelled, or runs past ``timeout`` seconds; the
    original exception is re-raised unchanged. The session is ended exactly
    once on every path.
    """
    if _active_session.get() is not None:
        raise RuntimeError("nested transactions are not supported")

    session = await backend.start_session()
    token = _active_session.set(session)
    try:
        await session.start_transaction()
        try:
            if timeout is None:
                result = await work(session)
            else:
                result = await asyncio.wait_for(work(session), timeout=timeout)
        except BaseException as exc:
            logger.debug("aborting transaction after %s", type(exc).__name__)
            await _abort_quietly(session)
            raise
        await session.commit_transaction()
        return result
    finally:
        _active_session.reset(token)
        await session.end_session()


async def _abort_quietly(session: StorageSession) -> None:
    # The error that caused the abort is the one the caller needs to see.
    try:
        await session.abort_transaction()
    except Exception:
        logger.exception("transaction abort failed")


def in_transaction() -> bool:
    return _active_session.get() is not None


class TransactionCoordinator:
    def __init__(self, backend: StorageBackend, default_timeout: float | None = None) -> None:
        self.backend = backend
        self.default_timeout = default_timeout

    async def run(self, work: TransactionWork[T], *, timeout: float | None = None) -> T:
        return await run_in_transaction(
            self.backend,
            work,
            timeout=timeout if timeout is not None else self.default_timeout,
        )
