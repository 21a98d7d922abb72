from __future__ import annotations

import asyncio

import pytest

from applyr.core.errors import DataAccessError, ErrorKind
from applyr.db.memory import InMemoryBackend
from applyr.services.profiles import ProfileService, default_preferences


def _service() -> ProfileService:
    return ProfileService(InMemoryBackend())


def test_get_profile_without_profile_is_not_found() -> None:
    service = _service()

    with pytest.raises(DataAccessError) as exc_info:
        asyncio.run(service.get_profile("user-a"))

    assert exc_info.value.kind is ErrorKind.NOT_FOUND
    assert exc_info.value.message == "profile not found"
    assert asyncio.run(service.find_profile("user-a")) is None
    assert asyncio.run(service.profile_exists("user-a")) is False


def test_get_or_create_profile_creates_once() -> None:
    service = _service()

    first = asyncio.run(service.get_or_create_profile("user-a"))
    second = asyncio.run(service.get_or_create_profile("user-a"))

    assert first["id"] == second["id"]
    assert first["skills"] == []
    assert first["preferences"] == default_preferences()


def test_concurrent_get_or_create_returns_the_same_profile() -> None:
    service = _service()

    async def main() -> list[dict]:
        return await asyncio.gather(*(service.get_or_create_profile("user-a") for _ in range(5)))

    profiles = asyncio.run(main())

    assert len({profile["id"] for profile in profiles}) == 1


def test_create_profile_twice_conflicts() -> None:
    service = _service()
    asyncio.run(service.create_profile("user-a"))

    with pytest.raises(DataAccessError) as exc_info:
        asyncio.run(service.create_profile("user-a"))

    assert exc_info.value.kind is ErrorKind.CONFLICT


def test_update_profile_creates_missing_profile_and_ignores_other_fields() -> None:
    service = _service()

    profile = asyncio.run(
        service.update_profile("user-a", {"headline": "Backend engineer", "skills": ["ignored"]})
    )

    assert profile["headline"] == "Backend engineer"
    assert profile["skills"] == []

    updated = asyncio.run(service.update_profile("user-a", {"location": "Berlin"}))
    assert updated["id"] == profile["id"]
    assert updated["headline"] == "Backend engineer"
    assert updated["location"] == "Berlin"


def test_update_skills_deduplicates_case_insensitively() -> None:
    service = _service()

    profile = asyncio.run(service.update_skills("user-a", ["Python", " python ", "SQL", "", "FastAPI"]))

    assert profile["skills"] == ["Python", "SQL", "FastAPI"]


def test_update_preferences_merges_into_existing() -> None:
    service = _service()
    asyncio.run(service.update_preferences("user-a", {"locations": ["Remote"], "salary_min": 90000}))

    profile = asyncio.run(service.update_preferences("user-a", {"job_types": ["contract"]}))

    assert profile["preferences"]["locations"] == ["Remote"]
    assert profile["preferences"]["salary_min"] == 90000
    assert profile["preferences"]["job_types"] == ["contract"]
    assert profile["preferences"]["notifications"] == {"email": True, "high_match_score": 70}


def test_delete_profile_soft_deletes_and_allows_a_fresh_profile() -> None:
    service = _service()
    original = asyncio.run(service.update_profile("user-a", {"headline": "old"}))

    deleted = asyncio.run(service.delete_profile("user-a"))

    assert deleted["is_deleted"] is True
    assert asyncio.run(service.profile_exists("user-a")) is False

    fresh = asyncio.run(service.get_or_create_profile("user-a"))
    assert fresh["id"] != original["id"]
    assert fresh["headline"] is None


def test_delete_missing_profile_is_not_found() -> None:
    with pytest.raises(DataAccessError) as exc_info:
        asyncio.run(_service().delete_profile("user-a"))

    assert exc_info.value.kind is ErrorKind.NOT_FOUND


def test_update_preferences_can_clear_salary_minimum() -> None:
    service = _service()
    asyncio.run(service.update_preferences("user-a", {"salary_min": 90000, "locations": ["Remote"]}))

    profile = asyncio.run(service.update_preferences("user-a", {"salary_min": None}))

    assert profile["preferences"]["salary_min"] is None
    assert profile["preferences"]["locations"] == ["Remote"]
