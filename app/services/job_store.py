"""
Job state store: the only code that reads or writes ``jobs`` rows.

Wraps an AsyncSession; each mutating call commits so every stage boundary is
durable. Transition ordering is the orchestrator's responsibility.
"""
import functools
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.errors import NotFoundError, PersistenceError
from app.models.job import Job, JobStatus, IN_FLIGHT_STATUSES, STATUS_ORDER

logger = logging.getLogger(__name__)


def _store_operation(method):
    """Translate SQLAlchemy failures into PersistenceError, rolling back the session."""
    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error('Job store %s failed: %s', method.__name__, e)
            raise PersistenceError(f'Job store {method.__name__} failed: {e}') from e
    return wrapper


class JobStore:
    """Create/read/update/list operations over the job table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @_store_operation
    async def create(self, user_id: int, job_filename: str) -> Job:
        """Insert a new job in status queued."""
        logger.info('Adding new job to queue for user %s: %s', user_id, job_filename)
        job = Job(
            user_id=user_id,
            job_filename=job_filename,
            status=JobStatus.queued.value,
        )
        self.session.add(job)
        await self.session.commit()
        await self.session.refresh(job)
        logger.info('Job added to queue with ID: %s', job.id)
        return job

    @_store_operation
    async def find(self, job_id: int) -> Optional[Job]:
        result = await self.session.execute(select(Job).where(Job.id == job_id))
        return result.scalar_one_or_none()

    async def get(self, job_id: int) -> Job:
        job = await self.find(job_id)
        if job is None:
            raise NotFoundError(f'Job {job_id}')
        return job

    @_store_operation
    async def set_status(self, job_id: int, status: JobStatus) -> Job:
        """Set a job's status; raises NotFoundError for an unknown job."""
        logger.info('Updating job %s status to: %s', job_id, status.value)
        job = await self.get(job_id)
        job.status = status.value
        job.updated_at = datetime.utcnow()
        if status == JobStatus.done:
            job.completed_at = job.updated_at
        await self.session.commit()
        return job

    @_store_operation
    async def mark_done(self, job_id: int, final_file_path: str, meditation_id: int) -> Job:
        job = await self.get(job_id)
        job.final_file_path = final_file_path
        job.meditation_id = meditation_id
        await self.session.flush()
        return await self.set_status(job_id, JobStatus.done)

    @_store_operation
    async def mark_failed(self, job_id: int, stage_reached: str, cause: str) -> Job:
        """Park a job in the failed state, remembering where it stopped."""
        logger.info('Marking job %s failed at stage %s', job_id, stage_reached)
        job = await self.get(job_id)
        job.status = JobStatus.failed.value
        job.stage_reached = stage_reached
        job.error_message = cause
        job.updated_at = datetime.utcnow()
        job.completed_at = job.updated_at
        await self.session.commit()
        return job

    @_store_operation
    async def next_queued(self) -> Optional[Job]:
        """Oldest job still queued (FIFO), or None."""
        result = await self.session.execute(
            select(Job)
            .where(Job.status == JobStatus.queued.value)
            .order_by(Job.created_at.asc(), Job.id.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    @_store_operation
    async def list_queued(self) -> List[Job]:
        result = await self.session.execute(
            select(Job)
            .where(Job.status == JobStatus.queued.value)
            .order_by(Job.created_at.asc(), Job.id.asc())
        )
        return list(result.scalars().all())

    @_store_operation
    async def is_processing(self) -> bool:
        """Whether any job is between started and concatenator."""
        result = await self.session.execute(
            select(func.count(Job.id)).where(
                Job.status.in_([s.value for s in IN_FLIGHT_STATUSES])
            )
        )
        return result.scalar() > 0

    @_store_operation
    async def counts_by_status(self) -> Dict[str, int]:
        """Job count per status (every status present) plus 'total'."""
        result = await self.session.execute(
            select(Job.status, func.count(Job.id)).group_by(Job.status)
        )
        found = dict(result.all())

        counts = {status.value: 0 for status in STATUS_ORDER + [JobStatus.failed]}
        counts.update(found)
        counts['total'] = sum(found.values())
        return counts

    @_store_operation
    async def delete(self, job_id: int) -> None:
        """Remove a job row; raises NotFoundError for an unknown job."""
        logger.info('Deleting job: %s', job_id)
        job = await self.get(job_id)
        await self.session.delete(job)
        await self.session.commit()
        logger.info('Job %s deleted successfully', job_id)
