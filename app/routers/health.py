"""
Health check endpoint.
"""
from typing import Dict
from pydantic import BaseModel
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import APP_VERSION
from app.database import get_db
from app.services.job_processor import JobProcessor, get_job_processor
from app.services.job_store import JobStore


router = APIRouter(tags=['health'])


class HealthResponse(BaseModel):
    """Health check response schema."""
    status: str
    version: str
    processing: bool
    pending: int
    counts: Dict[str, int]


@router.get('/health', response_model=HealthResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    processor: JobProcessor = Depends(get_job_processor),
) -> HealthResponse:
    """
    Check server health status.

    Returns the version, job counts per status and queue depth.
    """
    store = JobStore(db)
    return HealthResponse(
        status='ok',
        version=APP_VERSION,
        processing=await store.is_processing(),
        pending=processor.pending,
        counts=await store.counts_by_status(),
    )
