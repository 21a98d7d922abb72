"""Soft delete, restore and hard delete of user-owned records.

Active -> Deleted (soft_delete), Deleted -> Active (restore), and
Active/Deleted -> Purged (hard_delete, terminal).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from applyr.core import errors
from applyr.db.filters import DELETED_AT_FIELD, DELETED_FIELD, build_filter
from applyr.db.ownership import assert_ownership
from applyr.db.storage import Collection, StorageSession

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def touch_changes(now: datetime | None = None) -> dict[str, Any]:
    return {"updated_at": now or utcnow()}


def soft_delete_changes(now: datetime | None = None) -> dict[str, Any]:
    now = now or utcnow()
    return {DELETED_FIELD: True, DELETED_AT_FIELD: now, "updated_at": now}


def restore_changes(now: datetime | None = None) -> dict[str, Any]:
    return {DELETED_FIELD: False, DELETED_AT_FIELD: None, "updated_at": now or utcnow()}


async def soft_delete(
    collection: Collection,
    record_id: str,
    user_id: str,
    *,
    session: StorageSession | None = None,
) -> dict[str, Any]:
    active = build_filter({"id": record_id})
    record = await collection.find_one(active, session=session)
    if record is None:
        raise errors.not_found(collection.spec.resource)
    assert_ownership(record, user_id)

    updated = await collection.update_one(active, soft_delete_changes(), session=session)
    if updated is None:
        # Deleted by a concurrent request between the read and the write.
        raise errors.not_found(collection.spec.resource)
    logger.info("soft deleted %s id=%s", collection.spec.name, record_id)
    return updated


async def restore(
    collection: Collection,
    record_id: str,
    user_id: str,
    *,
    session: StorageSession | None = None,
) -> dict[str, Any]:
    any_state = {"id": record_id}
    record = await collection.find_one(any_state, session=session)
    if record is None:
        raise errors.not_found(collection.spec.resource)
    assert_ownership(record, user_id)

    updated = await collection.update_one(any_state, restore_changes(), session=session)
    if updated is None:
        raise errors.not_found(collection.spec.resource)
    logger.info("restored %s id=%s", collection.spec.name, record_id)
    return updated


async def hard_delete(
    collection: Collection,
    record_id: str,
    user_id: str,
    *,
    confirm_erasure: bool = False,
    session: StorageSession | None = None,
) -> None:
    """Permanently erase a record. Irreversible; reserved for compliance erasure."""
    if confirm_erasure is not True:
        raise errors.bad_request("hard delete requires confirm_erasure=True")

    any_state = {"id": record_id}
    record = await collection.find_one(any_state, session=session)
    if record is None:
        raise errors.not_found(collection.spec.resource)
    assert_ownership(record, user_id)

    if not await collection.delete_one(any_state, session=session):
        raise errors.not_found(collection.spec.resource)
    logger.warning("hard deleted %s id=%s", collection.spec.name, record_id)
