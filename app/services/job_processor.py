"""
Background job processor for meditation pipelines.
"""
import asyncio
import logging
from typing import Optional

from app.services.job_store import JobStore
from app.services.orchestrator import PipelineOrchestrator, get_orchestrator

logger = logging.getLogger(__name__)


class JobProcessor:
    """
    Background job processor using asyncio.Queue.

    Runs pipelines one at a time in FIFO order, so the two external engines
    never see more than one job at once.
    """

    def __init__(self, orchestrator: PipelineOrchestrator):
        self.orchestrator = orchestrator
        self._queue: asyncio.Queue[int] = asyncio.Queue()
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def start(self):
        """Start the background job processor."""
        self._running = True
        self._task = asyncio.create_task(self._process_loop())

    async def stop(self):
        """Stop the background job processor gracefully."""
        self._running = False
        if self._task:
            # Put a sentinel to wake up the queue if waiting
            await self._queue.put(0)
            try:
                await asyncio.wait_for(self._task, timeout=5.0)
            except asyncio.TimeoutError:
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass

    async def enqueue(self, job_id: int):
        """Add a job ID to the processing queue."""
        await self._queue.put(job_id)

    async def recover(self) -> int:
        """Re-enqueue jobs left queued by a previous run, oldest first."""
        async with self.orchestrator.session_factory() as session:
            jobs = await JobStore(session).list_queued()
        for job in jobs:
            await self.enqueue(job.id)
        if jobs:
            logger.info('Recovered %d queued jobs', len(jobs))
        return len(jobs)

    async def _process_loop(self):
        """Main processing loop - consumes jobs from queue."""
        while self._running:
            try:
                # Wait for a job with timeout to allow checking _running flag
                try:
                    job_id = await asyncio.wait_for(self._queue.get(), timeout=1.0)
                except asyncio.TimeoutError:
                    continue

                # Check for sentinel value
                if not job_id:
                    continue

                await self._process_job(job_id)
                self._queue.task_done()

            except Exception:
                # Log but don't crash the loop
                logger.exception('Error in job processor loop')

    async def _process_job(self, job_id: int):
        """Process a single job."""
        result = await self.orchestrator.run(job_id)
        if result.success:
            logger.info('Job %s done: %s', job_id, result.final_file_path)
        else:
            logger.error('Job %s failed at %s: %s', job_id, result.stage_reached, result.error)


# Singleton instance
_job_processor: Optional[JobProcessor] = None


def get_job_processor() -> JobProcessor:
    """Get the job processor singleton instance."""
    global _job_processor
    if _job_processor is None:
        _job_processor = JobProcessor(get_orchestrator())
    return _job_processor


def reset_job_processor():
    """Reset the job processor singleton (for testing)."""
    global _job_processor
    _job_processor = None
