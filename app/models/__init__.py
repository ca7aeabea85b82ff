"""
SQLAlchemy models.
"""
from app.models.base import Base
from app.models.job import Job, JobStatus
from app.models.audio import (
    Meditation,
    GeneratedAudioFile,
    SoundFile,
    MeditationGeneratedAudioFile,
    MeditationSoundFile,
)

__all__ = [
    'Base',
    'Job',
    'JobStatus',
    'Meditation',
    'GeneratedAudioFile',
    'SoundFile',
    'MeditationGeneratedAudioFile',
    'MeditationSoundFile',
]
