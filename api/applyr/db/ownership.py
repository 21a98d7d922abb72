from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from applyr.core import errors

OWNER_FIELD = "owner_user_id"


def assert_ownership(record: Mapping[str, Any], user_id: str) -> None:
    """Raise Forbidden unless ``user_id`` owns ``record``.

    Required before update, soft delete, restore and hard delete. Create and
    owner-scoped reads do not need it.
    """
    if record.get(OWNER_FIELD) != user_id:
        raise errors.forbidden()


def is_owner(record: Mapping[str, Any], user_id: str) -> bool:
    return record.get(OWNER_FIELD) == user_id
