from dataclasses import dataclass
from typing import Any

import httpx
from fastapi import Depends, Header, HTTPException, status

from applyr.core.config import Settings, get_settings


@dataclass(slots=True)
class CurrentUser:
    id: str
    email: str | None = None
    name: str | None = None


async def get_current_user(
    settings: Settings = Depends(get_settings),
    authorization: str | None = Header(default=None, alias="Authorization"),
    cookie: str | None = Header(default=None, alias="Cookie"),
) -> CurrentUser:
    if not authorization and not cookie:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="authentication required")

    if not settings.auth_base_url:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="auth provider is not configured",
        )

    headers: dict[str, str] = {}
    if authorization:
        headers["Authorization"] = authorization
    if cookie:
        headers["Cookie"] = cookie

    payload = await _fetch_session(
        auth_base_url=settings.auth_base_url,
        headers=headers,
        timeout_seconds=settings.auth_timeout_seconds,
    )
    user = payload.get("user") if isinstance(payload, dict) else None
    if not isinstance(user, dict):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="authentication required")

    user_id = user.get("id")
    if not isinstance(user_id, str) or not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid session")

    return CurrentUser(
        id=user_id,
        email=user.get("email") if isinstance(user.get("email"), str) else None,
        name=user.get("name") if isinstance(user.get("name"), str) else None,
    )


async def _fetch_session(
    *,
    auth_base_url: str,
    headers: dict[str, str],
    timeout_seconds: float,
) -> Any:
    url = f"{auth_base_url.rstrip('/')}/api/auth/get-session"

    try:
        async with httpx.AsyncClient(timeout=timeout_seconds) as client:
            response = await client.get(url, headers=headers)
    except httpx.HTTPError as exc:  # pragma: no cover - network dependent
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="auth provider unavailable",
        ) from exc

    if response.status_code in {401, 403}:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="authentication required")
    if response.status_code != 200:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="auth provider verification failed",
        )

    return response.json()
