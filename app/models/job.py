"""
Job model for meditation assembly requests.
"""
import enum
from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Integer

from app.models.base import Base


class JobStatus(str, enum.Enum):
    """Status states for meditation jobs, in pipeline order."""
    queued = 'queued'
    started = 'started'
    elevenlabs = 'elevenlabs'
    concatenator = 'concatenator'
    done = 'done'
    failed = 'failed'


# Natural lifecycle; failed can be entered from any non-terminal state
STATUS_ORDER = [
    JobStatus.queued,
    JobStatus.started,
    JobStatus.elevenlabs,
    JobStatus.concatenator,
    JobStatus.done,
]

IN_FLIGHT_STATUSES = [JobStatus.started, JobStatus.elevenlabs, JobStatus.concatenator]


def next_status(status: JobStatus):
    """Return the status that follows ``status``, or None for terminal states."""
    if status not in STATUS_ORDER or status == JobStatus.done:
        return None
    return STATUS_ORDER[STATUS_ORDER.index(status) + 1]


class Job(Base):
    """
    Represents one submitted meditation script and its lifecycle.

    Attributes:
        id: Job identifier (auto-increment, doubles as FIFO tie-breaker)
        user_id: Owning user
        status: Current job status
        job_filename: Name of the audit snapshot CSV written at submission
        stage_reached: Last status reached before the job failed
        error_message: Failure cause if failed
        final_file_path: Concatenated audio file once done
        meditation_id: Final artifact record once done
        created_at: Job creation timestamp
        updated_at: Last status change
        completed_at: When the job reached done or failed
    """
    __tablename__ = 'jobs'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=JobStatus.queued.value, index=True)
    job_filename = Column(String(255), nullable=False)
    stage_reached = Column(String(20), nullable=True)
    error_message = Column(Text, nullable=True)
    final_file_path = Column(Text, nullable=True)
    meditation_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)

    def __repr__(self):
        return f'<Job {self.id} status={self.status}>'
