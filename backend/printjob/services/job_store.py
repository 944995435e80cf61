"""
Job Store for PrintJob

Durable record of submitted print jobs:
- insert / get / delete
- status transitions (compare-and-swap on the current status)
- paged, filtered listing
- retention purge
"""

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta
from typing import AsyncIterator, List, Optional

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from printjob.models import JobStatus, PrintJob, can_transition, utcnow
from printjob.services.errors import (
    InvalidRequestError,
    InvalidTransitionError,
    JobNotFoundError,
    StorageError,
)

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "id": PrintJob.id,
    "printer_id": PrintJob.printer_id,
    "file_name": PrintJob.file_name,
    "module_part": PrintJob.module_part,
    "status": PrintJob.status,
    "created_at": PrintJob.created_at,
    "created_by": PrintJob.created_by,
}

# Column names used by the legacy printjob API
SORT_ALIASES = {
    "rowid": "id",
    "printerid": "printer_id",
    "filename": "file_name",
    "modulepart": "module_part",
    "date_creation": "created_at",
    "fk_user_creat": "created_by",
}


@dataclass
class JobFilter:
    status: Optional[JobStatus] = None
    module_part: Optional[str] = None
    printer_id: Optional[str] = None
    created_by: Optional[int] = None

    def conditions(self) -> list:
        conditions = []
        if self.status is not None:
            conditions.append(PrintJob.status == self.status)
        if self.module_part:
            conditions.append(PrintJob.module_part == self.module_part)
        if self.printer_id:
            conditions.append(PrintJob.printer_id == self.printer_id)
        if self.created_by is not None:
            conditions.append(PrintJob.created_by == self.created_by)
        return conditions


@dataclass
class JobSort:
    field: str = "id"
    order: str = "asc"

    def clauses(self) -> list:
        name = self.field.strip().lower()
        if name.startswith("t."):
            name = name[2:]
        name = SORT_ALIASES.get(name, name)
        column = SORTABLE_FIELDS.get(name)
        if column is None:
            raise InvalidRequestError(f"Unknown sort field: {self.field}")

        order = self.order.strip().lower()
        if order not in ("asc", "desc"):
            raise InvalidRequestError(f"Unknown sort order: {self.order}")

        primary = column.asc() if order == "asc" else column.desc()
        if column is PrintJob.id:
            return [primary]
        # Stable pages when the sort column has duplicates
        return [primary, PrintJob.id.asc()]


class JobStore:
    """
    Database-backed store of print jobs.

    Every method runs in its own session and transaction, so a single store
    can be shared by concurrent requests.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self.session_factory() as db:
                yield db
        except SQLAlchemyError as e:
            logger.error(f"Print job storage failure: {e}")
            raise StorageError(f"Print job storage failure: {e}") from e

    async def insert(self, job: PrintJob) -> int:
        """
        Persist a new job with status QUEUED and return its id.
        """
        job.status = JobStatus.QUEUED
        if job.created_at is None:
            job.created_at = utcnow()

        async with self._session() as db:
            db.add(job)
            await db.commit()
            await db.refresh(job)

        logger.info(
            f"Created print job {job.id}: {job.file_name} -> {job.printer_id} "
            f"(module={job.module_part}, user={job.created_by})"
        )
        return job.id

    async def get(self, job_id: int) -> PrintJob:
        async with self._session() as db:
            job = await db.get(PrintJob, job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def update_status(
        self,
        job_id: int,
        new_status: JobStatus,
        message: Optional[str] = None
    ) -> PrintJob:
        """
        Move a job to a new status.

        The UPDATE only matches while the row still holds the status the
        transition was validated against. When a concurrent update wins, the
        transition is re-validated against the fresh status.

        Raises:
            JobNotFoundError: no such job
            InvalidTransitionError: new_status is not reachable from the current status
        """
        async with self._session() as db:
            while True:
                current = await db.scalar(
                    select(PrintJob.status).where(PrintJob.id == job_id)
                )
                if current is None:
                    raise JobNotFoundError(job_id)
                if not can_transition(current, new_status):
                    raise InvalidTransitionError(job_id, current, new_status)

                values = {"status": new_status, "updated_at": utcnow()}
                if message is not None:
                    values["status_message"] = message

                result = await db.execute(
                    update(PrintJob)
                    .where(and_(PrintJob.id == job_id, PrintJob.status == current))
                    .values(**values)
                )
                await db.commit()

                if result.rowcount == 1:
                    break
                logger.debug(f"Job {job_id}: lost status race from {current.value}, retrying")

            job = await db.get(PrintJob, job_id, populate_existing=True)

        if job is None:
            # Deleted between the update and the reload
            raise JobNotFoundError(job_id)

        logger.info(f"Job {job_id}: {current.value} -> {new_status.value}")
        return job

    async def list_jobs(
        self,
        job_filter: Optional[JobFilter] = None,
        sort: Optional[JobSort] = None,
        limit: int = 100,
        offset: int = 0
    ) -> List[PrintJob]:
        """
        Return at most `limit` jobs starting at zero-based `offset`.
        """
        if limit < 0:
            raise InvalidRequestError("limit must not be negative")
        if offset < 0:
            raise InvalidRequestError("offset must not be negative")
        if limit == 0:
            return []

        job_filter = job_filter or JobFilter()
        sort = sort or JobSort()

        query = select(PrintJob)
        conditions = job_filter.conditions()
        if conditions:
            query = query.where(and_(*conditions))
        query = query.order_by(*sort.clauses()).offset(offset).limit(limit)

        async with self._session() as db:
            result = await db.execute(query)
            jobs = list(result.scalars().all())

        return jobs[:limit]

    async def iter_jobs(
        self,
        job_filter: Optional[JobFilter] = None,
        sort: Optional[JobSort] = None,
        batch_size: int = 100
    ) -> AsyncIterator[PrintJob]:
        """
        Lazily walk every matching job, one page at a time.
        """
        if batch_size <= 0:
            raise InvalidRequestError("batch_size must be positive")

        offset = 0
        while True:
            page = await self.list_jobs(job_filter, sort, limit=batch_size, offset=offset)
            for job in page:
                yield job
            if len(page) < batch_size:
                return
            offset += batch_size

    async def count(self, job_filter: Optional[JobFilter] = None) -> int:
        query = select(func.count(PrintJob.id))
        conditions = (job_filter or JobFilter()).conditions()
        if conditions:
            query = query.where(and_(*conditions))

        async with self._session() as db:
            return (await db.scalar(query)) or 0

    async def delete(self, job_id: int) -> None:
        async with self._session() as db:
            result = await db.execute(delete(PrintJob).where(PrintJob.id == job_id))
            await db.commit()

        if result.rowcount == 0:
            raise JobNotFoundError(job_id)
        logger.info(f"Deleted print job {job_id}")

    async def delete_expired(self, retention_seconds: int) -> int:
        """
        Delete every job created before now - retention_seconds.

        The cutoff is fixed when the call starts, so jobs inserted while the
        sweep runs are never removed. Returns the number of deleted rows.
        """
        if retention_seconds < 0:
            raise InvalidRequestError("retention_seconds must not be negative")

        cutoff = utcnow() - timedelta(seconds=retention_seconds)

        async with self._session() as db:
            result = await db.execute(
                delete(PrintJob).where(PrintJob.created_at < cutoff)
            )
            await db.commit()

        deleted = max(result.rowcount or 0, 0)
        if deleted:
            logger.info(f"Purged {deleted} print job(s) created before {cutoff.isoformat()}")
        return deleted
