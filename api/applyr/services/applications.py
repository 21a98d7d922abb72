from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from applyr.core import errors
from applyr.db.filters import owner_scope
from applyr.db.lifecycle import utcnow
from applyr.db.ownership import assert_ownership
from applyr.db.pagination import PaginatedResult, PaginationOptions
from applyr.db.storage import CollectionSpec, StorageBackend, StorageSession
from applyr.db.transactions import TransactionCoordinator
from applyr.services.records import RecordRepository

logger = logging.getLogger(__name__)

JOBS = CollectionSpec(
    name="jobs",
    fields=("title", "company", "location", "url", "source", "description", "status"),
    label="job",
)
APPLICATIONS = CollectionSpec(
    name="applications",
    fields=("job_id", "status", "notes", "applied_at"),
    unique_fields=(("owner_user_id", "job_id"),),
    label="application",
)
APPLICATION_EVENTS = CollectionSpec(
    name="application_events",
    fields=("application_id", "event_type", "payload", "occurred_at"),
    label="application event",
)

JOB_STATUSES = {"saved", "applied", "interviewing", "offer", "rejected", "archived"}
REQUIRED_JOB_FIELDS = ("title", "company", "status")
APPLICATION_STATUSES = {"applied", "interviewing", "offer", "rejected", "withdrawn"}


class JobService:
    def __init__(self, backend: StorageBackend) -> None:
        self.records = RecordRepository(backend, JOBS)

    async def create_job(self, user_id: str, data: Mapping[str, Any]) -> dict[str, Any]:
        payload = dict(data)
        payload.setdefault("status", "saved")
        _require_status(payload["status"], JOB_STATUSES, "job")
        return await self.records.create(user_id, payload)

    async def get_job(self, job_id: str, user_id: str, *, include_deleted: bool = False) -> dict[str, Any]:
        return await self.records.get(job_id, user_id, include_deleted=include_deleted)

    async def list_jobs(
        self,
        user_id: str,
        *,
        status: str | None = None,
        company: str | None = None,
        options: PaginationOptions | None = None,
        include_deleted: bool = False,
    ) -> PaginatedResult:
        user_filter: dict[str, Any] = {}
        if status is not None:
            user_filter["status"] = status
        if company is not None:
            user_filter["company"] = company
        return await self.records.list(owner_scope(user_id, user_filter), options, include_deleted=include_deleted)

    async def update_job(self, job_id: str, user_id: str, patch: Mapping[str, Any]) -> dict[str, Any]:
        nulled = sorted(name for name in REQUIRED_JOB_FIELDS if name in patch and patch[name] is None)
        if nulled:
            raise errors.bad_request(
                f"job fields cannot be cleared: {', '.join(nulled)}",
                details={"fields": nulled},
            )
        if "status" in patch:
            _require_status(patch["status"], JOB_STATUSES, "job")
        return await self.records.update(job_id, user_id, patch)

    async def delete_job(self, job_id: str, user_id: str) -> dict[str, Any]:
        return await self.records.soft_delete(job_id, user_id)

    async def restore_job(self, job_id: str, user_id: str) -> dict[str, Any]:
        return await self.records.restore(job_id, user_id)

    async def erase_job(self, job_id: str, user_id: str) -> None:
        await self.records.hard_delete(job_id, user_id, confirm_erasure=True)


class ApplicationService:
    """Applications and their timeline. Multi-entity writes run in one transaction."""

    def __init__(self, backend: StorageBackend, coordinator: TransactionCoordinator) -> None:
        self.coordinator = coordinator
        self.jobs = RecordRepository(backend, JOBS)
        self.applications = RecordRepository(backend, APPLICATIONS)
        self.events = RecordRepository(backend, APPLICATION_EVENTS)

    async def apply_to_job(self, user_id: str, job_id: str, notes: str | None = None) -> dict[str, Any]:
        """Create the application, mark the job applied and append the first timeline event."""

        async def work(session: StorageSession) -> dict[str, Any]:
            job = await self.jobs.find_one({"id": job_id}, session=session)
            if job is None:
                raise errors.bad_request("referenced job does not exist", details={"job_id": job_id})
            assert_ownership(job, user_id)

            duplicate = await self.applications.find_one(
                owner_scope(user_id, {"job_id": job_id}),
                session=session,
            )
            if duplicate is not None:
                raise errors.conflict(
                    "an application for this job already exists",
                    details={"application_id": duplicate["id"]},
                )

            now = utcnow()
            application = await self.applications.create(
                user_id,
                {"job_id": job_id, "status": "applied", "notes": notes, "applied_at": now},
                session=session,
            )
            updated_job = await self.jobs.update(job_id, user_id, {"status": "applied"}, session=session)
            event = await self._append_event(
                user_id,
                application["id"],
                "applied",
                {"job_id": job_id},
                session=session,
            )
            return {"application": application, "job": updated_job, "event": event}

        result = await self.coordinator.run(work)
        logger.info("user=%s applied to job=%s application=%s", user_id, job_id, result["application"]["id"])
        return result

    async def update_status(
        self,
        application_id: str,
        user_id: str,
        status: str,
        note: str | None = None,
    ) -> dict[str, Any]:
        _require_status(status, APPLICATION_STATUSES, "application")

        async def work(session: StorageSession) -> dict[str, Any]:
            current = await self.applications.get(application_id, session=session)
            application = await self.applications.update(
                application_id,
                user_id,
                {"status": status},
                session=session,
            )
            event = await self._append_event(
                user_id,
                application_id,
                "status_changed",
                {"from": current["status"], "to": status, "note": note},
                session=session,
            )
            return {"application": application, "event": event}

        return await self.coordinator.run(work)

    async def withdraw(self, application_id: str, user_id: str) -> dict[str, Any]:
        async def work(session: StorageSession) -> dict[str, Any]:
            application = await self.applications.soft_delete(application_id, user_id, session=session)
            await self._append_event(user_id, application_id, "withdrawn", {}, session=session)
            return application

        return await self.coordinator.run(work)

    async def get_application(self, application_id: str, user_id: str) -> dict[str, Any]:
        return await self.applications.get(application_id, user_id)

    async def list_applications(
        self,
        user_id: str,
        *,
        status: str | None = None,
        options: PaginationOptions | None = None,
        include_deleted: bool = False,
    ) -> PaginatedResult:
        user_filter = {"status": status} if status is not None else {}
        return await self.applications.list(
            owner_scope(user_id, user_filter),
            options,
            include_deleted=include_deleted,
        )

    async def list_events(
        self,
        application_id: str,
        user_id: str,
        options: PaginationOptions | None = None,
    ) -> PaginatedResult:
        await self.applications.get(application_id, user_id, include_deleted=True)
        return await self.events.list(
            owner_scope(user_id, {"application_id": application_id}),
            options or PaginationOptions(sort="occurred_at", order="asc"),
        )

    async def _append_event(
        self,
        user_id: str,
        application_id: str,
        event_type: str,
        payload: dict[str, Any],
        *,
        session: StorageSession,
    ) -> dict[str, Any]:
        return await self.events.create(
            user_id,
            {
                "application_id": application_id,
                "event_type": event_type,
                "payload": payload,
                "occurred_at": utcnow(),
            },
            session=session,
        )


def _require_status(status: Any, allowed: set[str], resource: str) -> None:
    if status not in allowed:
        raise errors.bad_request(
            f"{resource} status must be one of: {', '.join(sorted(allowed))}",
            details={"status": status},
        )
