from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Literal

import asyncpg  # type: ignore[import-untyped]
from asyncpg import exceptions as pg_exc

from applyr.core import errors
from applyr.core.config import Settings

logger = logging.getLogger(__name__)

ConnectionStateName = Literal["disconnected", "connecting", "connected", "disconnecting"]

CONNECT_ERRORS = (OSError, TimeoutError, pg_exc.PostgresError, pg_exc.InterfaceError)


@dataclass(frozen=True, slots=True)
class ConnectionState:
    is_connected: bool
    state: ConnectionStateName


class ConnectionManager:
    """Owns the asyncpg pool for the lifetime of the process.

    Created and driven by startup/shutdown code; nothing else flips the
    connection state.
    """

    def __init__(
        self,
        database_url: str | None,
        *,
        min_pool_size: int = 1,
        max_pool_size: int = 10,
        command_timeout: float = 15.0,
        max_retries: int = 5,
        initial_retry_delay_seconds: float = 1.0,
    ) -> None:
        self.database_url = database_url
        self.min_pool_size = min_pool_size
        self.max_pool_size = max(min_pool_size, max_pool_size)
        self.command_timeout = command_timeout
        self.max_retries = max(1, max_retries)
        self.initial_retry_delay_seconds = max(0.0, initial_retry_delay_seconds)
        self._pool: asyncpg.Pool | None = None
        self._state: ConnectionStateName = "disconnected"

    @classmethod
    def from_settings(cls, settings: Settings) -> ConnectionManager:
        return cls(
            settings.database_url,
            min_pool_size=settings.database_pool_min_size,
            max_pool_size=settings.database_pool_max_size,
            command_timeout=settings.database_command_timeout_seconds,
            max_retries=settings.database_connect_max_retries,
            initial_retry_delay_seconds=settings.database_connect_initial_delay_seconds,
        )

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise errors.persistence_failure("database unavailable")
        return self._pool

    def get_state(self) -> ConnectionState:
        return ConnectionState(is_connected=self._state == "connected", state=self._state)

    async def connect(self) -> asyncpg.Pool:
        if self._pool is not None:
            return self._pool
        if not self.database_url:
            raise errors.persistence_failure("APPLYR_DATABASE_URL is required")

        self._state = "connecting"
        last_error: BaseException | None = None
        for attempt in range(1, self.max_retries + 1):
            logger.info("connecting to database attempt=%s/%s", attempt, self.max_retries)
            try:
                self._pool = await asyncpg.create_pool(
                    dsn=self.database_url,
                    min_size=self.min_pool_size,
                    max_size=self.max_pool_size,
                    command_timeout=self.command_timeout,
                    init=_init_connection,
                )
            except CONNECT_ERRORS as exc:
                last_error = exc
                if attempt == self.max_retries:
                    break
                delay = self.initial_retry_delay_seconds * (2 ** (attempt - 1))
                logger.warning(
                    "database connection failed attempt=%s/%s; retry in %.1fs: %s",
                    attempt,
                    self.max_retries,
                    delay,
                    exc,
                )
                await asyncio.sleep(delay)
                continue

            self._state = "connected"
            logger.info("database connected")
            return self._pool

        self._state = "disconnected"
        logger.error("database connection failed after %s attempts", self.max_retries)
        raise errors.persistence_failure("database unavailable") from last_error

    async def disconnect(self) -> None:
        if self._pool is None:
            self._state = "disconnected"
            return
        self._state = "disconnecting"
        logger.info("disconnecting from database")
        try:
            await self._pool.close()
        finally:
            self._pool = None
            self._state = "disconnected"
            logger.info("database disconnected")


async def _init_connection(conn: asyncpg.Connection) -> None:
    await conn.set_type_codec("jsonb", encoder=json.dumps, decoder=json.loads, schema="pg_catalog")
