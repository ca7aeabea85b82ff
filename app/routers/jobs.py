"""
Job status endpoints.
"""
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import FileResponse
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.errors import NotFoundError
from app.models.job import IN_FLIGHT_STATUSES, Job, JobStatus
from app.schemas.job import JobResponse, JobListResponse, JobCountsResponse
from app.services.job_store import JobStore


router = APIRouter(prefix='/jobs', tags=['jobs'])


@router.get('', response_model=JobListResponse)
async def list_jobs(
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    status: Optional[str] = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> JobListResponse:
    """
    List jobs with pagination, newest first.

    Optionally filtered by status.
    """
    count_query = select(func.count(Job.id))
    query = select(Job)
    if status:
        count_query = count_query.where(Job.status == status)
        query = query.where(Job.status == status)

    count_result = await db.execute(count_query)
    total = count_result.scalar()

    result = await db.execute(
        query
        .order_by(Job.created_at.desc(), Job.id.desc())
        .limit(limit)
        .offset(offset)
    )
    jobs = result.scalars().all()

    return JobListResponse(
        jobs=[JobResponse.model_validate(job) for job in jobs],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get('/counts', response_model=JobCountsResponse)
async def job_counts(db: AsyncSession = Depends(get_db)) -> JobCountsResponse:
    """Number of jobs in each status, and whether one is mid-pipeline."""
    store = JobStore(db)
    return JobCountsResponse(
        counts=await store.counts_by_status(),
        processing=await store.is_processing(),
    )


@router.get('/{job_id}', response_model=JobResponse)
async def get_job(
    job_id: int,
    db: AsyncSession = Depends(get_db),
) -> JobResponse:
    """
    Get details for a specific job.

    Poll this after submitting a meditation: status advances through
    queued, started, elevenlabs, concatenator and ends at done or failed.
    """
    job = await JobStore(db).get(job_id)
    return JobResponse.model_validate(job)


@router.get('/{job_id}/audio')
async def get_job_audio(
    job_id: int,
    db: AsyncSession = Depends(get_db),
):
    """
    Stream the final meditation audio for a finished job.

    Raises:
        404: Job not found or audio not ready
    """
    job = await JobStore(db).get(job_id)

    if job.status != JobStatus.done.value:
        raise HTTPException(
            status_code=404,
            detail=f'Audio not ready. Job status: {job.status}'
        )

    if not job.final_file_path or not Path(job.final_file_path).exists():
        raise NotFoundError('Audio file')

    return FileResponse(
        path=job.final_file_path,
        media_type='audio/mpeg',
        filename=Path(job.final_file_path).name,
    )


@router.delete('/{job_id}', status_code=204)
async def delete_job(
    job_id: int,
    db: AsyncSession = Depends(get_db),
):
    """
    Delete a job record. Snapshot and audio files on disk are kept.

    A queued job that is deleted is skipped when its turn comes.

    Raises:
        404: Job not found
        409: Job is mid-pipeline
    """
    store = JobStore(db)
    job = await store.get(job_id)

    if job.status in {s.value for s in IN_FLIGHT_STATUSES}:
        raise HTTPException(
            status_code=409,
            detail=f'Job is being processed. Job status: {job.status}'
        )

    await store.delete(job_id)
