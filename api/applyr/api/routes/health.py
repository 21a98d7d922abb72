from typing import Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from applyr.core.config import Settings, get_settings
from applyr.db.connection import ConnectionState
from applyr.db.runtime import get_connection_manager

router = APIRouter()


@router.get("/")
async def root() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/healthz")
async def healthz(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    return {"status": "ok", "database": _database_state(settings)}


@router.get("/readyz")
async def readyz(settings: Settings = Depends(get_settings)) -> JSONResponse:
    database = _database_state(settings)
    ready = database["is_connected"]
    return JSONResponse(
        {"status": "ok" if ready else "unavailable", "database": database},
        status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
    )


def _database_state(settings: Settings) -> dict[str, Any]:
    if settings.storage_backend == "memory":
        state = ConnectionState(is_connected=True, state="connected")
    else:
        state = get_connection_manager().get_state()
    return {"backend": settings.storage_backend, "is_connected": state.is_connected, "state": state.state}
