"""
Pydantic schemas for API request/response validation.
"""
from app.schemas.job import JobResponse, JobListResponse, JobCountsResponse
from app.schemas.meditation import (
    Element,
    ElementKind,
    MeditationCreate,
    MeditationSubmitted,
    MeditationCompleted,
    SoundFileCreate,
    SoundFileResponse,
    SoundFileListResponse,
)

__all__ = [
    'JobResponse',
    'JobListResponse',
    'JobCountsResponse',
    'Element',
    'ElementKind',
    'MeditationCreate',
    'MeditationSubmitted',
    'MeditationCompleted',
    'SoundFileCreate',
    'SoundFileResponse',
    'SoundFileListResponse',
]
