"""
Pydantic schemas for Job API operations.
"""
from datetime import datetime
from typing import Dict, Optional, List
from pydantic import BaseModel, ConfigDict


class JobResponse(BaseModel):
    """Schema for job response."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    status: str
    job_filename: str
    stage_reached: Optional[str]
    error_message: Optional[str]
    final_file_path: Optional[str]
    meditation_id: Optional[int]
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime]


class JobListResponse(BaseModel):
    """Schema for paginated job list response."""
    jobs: List[JobResponse]
    total: int
    limit: int
    offset: int


class JobCountsResponse(BaseModel):
    """Number of jobs in each status, plus the total."""
    counts: Dict[str, int]
    processing: bool
