from functools import lru_cache

from applyr.core.config import get_settings
from applyr.db.connection import ConnectionManager
from applyr.db.memory import InMemoryBackend
from applyr.db.postgres import PostgresBackend
from applyr.db.storage import StorageBackend
from applyr.db.transactions import TransactionCoordinator


@lru_cache
def get_connection_manager() -> ConnectionManager:
    return ConnectionManager.from_settings(get_settings())


@lru_cache
def get_backend() -> StorageBackend:
    settings = get_settings()
    if settings.storage_backend == "memory":
        return InMemoryBackend()
    return PostgresBackend(get_connection_manager())


def get_coordinator(backend: StorageBackend | None = None) -> TransactionCoordinator:
    return TransactionCoordinator(
        backend or get_backend(),
        default_timeout=get_settings().transaction_timeout_seconds,
    )


async def open_storage() -> None:
    if get_settings().storage_backend == "postgres":
        await get_connection_manager().connect()


async def close_storage() -> None:
    if get_settings().storage_backend == "postgres":
        await get_connection_manager().disconnect()
    get_backend.cache_clear()
    get_connection_manager.cache_clear()
