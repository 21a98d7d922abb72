import asyncio

import pytest

from applyr.core.errors import FORBIDDEN_MESSAGE, DataAccessError, ErrorKind
from applyr.db.memory import InMemoryBackend
from applyr.db.ownership import assert_ownership, is_owner
from applyr.db.storage import CollectionSpec
from applyr.services.records import RecordRepository

NOTES = CollectionSpec(name="notes", fields=("title",), label="note")


def test_assert_ownership_accepts_owner() -> None:
    assert_ownership({"owner_user_id": "user-a"}, "user-a")
    assert is_owner({"owner_user_id": "user-a"}, "user-a")


@pytest.mark.parametrize("record", [{"owner_user_id": "user-b"}, {"owner_user_id": None}, {}])
def test_assert_ownership_denies_everyone_else_with_one_message(record: dict) -> None:
    with pytest.raises(DataAccessError) as exc_info:
        assert_ownership(record, "user-a")

    assert exc_info.value.kind is ErrorKind.FORBIDDEN
    assert exc_info.value.kind.status_code == 403
    assert exc_info.value.message == FORBIDDEN_MESSAGE


def test_update_by_non_owner_is_forbidden_and_leaves_record_unchanged() -> None:
    repository = RecordRepository(InMemoryBackend(), NOTES)
    record = asyncio.run(repository.create("user-a", {"title": "mine"}))

    with pytest.raises(DataAccessError) as exc_info:
        asyncio.run(repository.update(record["id"], "user-b", {"title": "stolen"}))

    assert exc_info.value.kind is ErrorKind.FORBIDDEN
    assert asyncio.run(repository.get(record["id"]))["title"] == "mine"


def test_owner_scoped_get_does_not_reveal_other_owners_records() -> None:
    repository = RecordRepository(InMemoryBackend(), NOTES)
    record = asyncio.run(repository.create("user-a", {"title": "mine"}))

    with pytest.raises(DataAccessError) as exc_info:
        asyncio.run(repository.get(record["id"], "user-b"))

    assert exc_info.value.kind is ErrorKind.NOT_FOUND
