from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from applyr.core import errors
from applyr.core.errors import DataAccessError, ErrorKind
from applyr.db.storage import CollectionSpec, StorageBackend
from applyr.services.records import RecordRepository

logger = logging.getLogger(__name__)

PROFILES = CollectionSpec(
    name="user_profiles",
    fields=("headline", "summary", "location", "skills", "preferences"),
    unique_fields=(("owner_user_id",),),
    label="profile",
)

PROFILE_FIELDS = ("headline", "summary", "location")


def default_preferences() -> dict[str, Any]:
    return {
        "job_types": [],
        "locations": [],
        "salary_min": None,
        "industries": [],
        "company_sizes": [],
        "notifications": {"email": True, "high_match_score": 70},
    }


class ProfileService:
    """One profile per user, keyed by the owning user id."""

    def __init__(self, backend: StorageBackend) -> None:
        self.records = RecordRepository(backend, PROFILES)

    async def get_profile(self, user_id: str) -> dict[str, Any]:
        profile = await self.find_profile(user_id)
        if profile is None:
            raise errors.not_found(PROFILES.resource)
        return profile

    async def find_profile(self, user_id: str) -> dict[str, Any] | None:
        return await self.records.find_one({"owner_user_id": user_id})

    async def profile_exists(self, user_id: str) -> bool:
        return await self.records.exists({"owner_user_id": user_id})

    async def create_profile(self, user_id: str, fields: Mapping[str, Any] | None = None) -> dict[str, Any]:
        data: dict[str, Any] = {"skills": [], "preferences": default_preferences()}
        data.update(fields or {})
        profile = await self.records.create(user_id, data)
        logger.info("created profile for user=%s", user_id)
        return profile

    async def get_or_create_profile(self, user_id: str) -> dict[str, Any]:
        existing = await self.find_profile(user_id)
        if existing is not None:
            return existing
        try:
            return await self.create_profile(user_id)
        except DataAccessError as exc:
            if exc.kind is not ErrorKind.CONFLICT:
                raise
            # Another request created it first.
            return await self.get_profile(user_id)

    async def update_profile(self, user_id: str, changes: Mapping[str, Any]) -> dict[str, Any]:
        patch = {name: changes[name] for name in PROFILE_FIELDS if name in changes}
        return await self._upsert(user_id, patch)

    async def update_skills(self, user_id: str, skills: list[str]) -> dict[str, Any]:
        return await self._upsert(user_id, {"skills": _dedupe(skills)})

    async def update_preferences(self, user_id: str, preferences: Mapping[str, Any]) -> dict[str, Any]:
        # Keys present in the patch replace stored values, explicit None included.
        provided = dict(preferences)
        existing = await self.find_profile(user_id)
        if existing is None:
            merged = default_preferences()
            merged.update(provided)
            return await self.create_profile(user_id, {"preferences": merged})

        merged = {**default_preferences(), **(existing.get("preferences") or {}), **provided}
        return await self.records.update(existing["id"], user_id, {"preferences": merged})

    async def delete_profile(self, user_id: str) -> dict[str, Any]:
        profile = await self.get_profile(user_id)
        return await self.records.soft_delete(profile["id"], user_id)

    async def _upsert(self, user_id: str, patch: dict[str, Any]) -> dict[str, Any]:
        existing = await self.find_profile(user_id)
        if existing is None:
            return await self.create_profile(user_id, patch)
        return await self.records.update(existing["id"], user_id, patch)


def _dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for value in values:
        cleaned = value.strip()
        if cleaned and cleaned.lower() not in seen:
            seen.add(cleaned.lower())
            result.append(cleaned)
    return result
