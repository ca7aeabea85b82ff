"""
Background Processing Tests

Tests for the job queue, sequential processing and startup recovery.
"""
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select

from app.models.job import Job, JobStatus
from app.services.job_processor import JobProcessor, get_job_processor, reset_job_processor
from app.services.normalizer import normalize_elements
from app.services.orchestrator import PipelineResult

from conftest import concat_success, tts_success


class TestJobProcessor:
    """Tests for JobProcessor class."""

    def test_job_processor_creates(self, orchestrator):
        """Test JobProcessor initializes correctly."""
        processor = JobProcessor(orchestrator)

        assert processor._queue is not None
        assert processor._running is False
        assert processor._task is None

    @pytest.mark.asyncio
    async def test_job_processor_starts_and_stops(self, orchestrator):
        """Test JobProcessor can start and stop."""
        processor = JobProcessor(orchestrator)

        await processor.start()
        assert processor._running is True
        assert processor._task is not None

        await processor.stop()
        assert processor._running is False

    @pytest.mark.asyncio
    async def test_job_processor_enqueues_job(self, orchestrator):
        """Test jobs can be enqueued."""
        processor = JobProcessor(orchestrator)
        await processor.enqueue(1)

        assert processor.pending == 1

    def test_job_processor_singleton(self, monkeypatch):
        """Test get_job_processor returns singleton."""
        reset_job_processor()
        monkeypatch.setattr('app.services.job_processor.get_orchestrator', lambda: MagicMock())

        processor1 = get_job_processor()
        processor2 = get_job_processor()

        assert processor1 is processor2

        reset_job_processor()


class TestSequentialProcessing:
    """Tests for sequential job processing."""

    @pytest.mark.asyncio
    async def test_processor_runs_pipeline(self):
        """Test a queued job id is handed to the orchestrator."""
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=PipelineResult(success=True, job_id=7, final_file_path='/f.mp3'))
        processor = JobProcessor(orchestrator)

        await processor.start()
        await processor.enqueue(7)
        await asyncio.sleep(0.2)
        await processor.stop()

        orchestrator.run.assert_awaited_once_with(7)

    @pytest.mark.asyncio
    async def test_processor_processes_jobs_sequentially(self, orchestrator):
        """Test multiple jobs are processed one at a time, in order."""
        processor = JobProcessor(orchestrator)
        processing_order = []
        concurrent_count = 0
        max_concurrent = 0

        async def mock_process(job_id):
            nonlocal concurrent_count, max_concurrent
            concurrent_count += 1
            max_concurrent = max(max_concurrent, concurrent_count)
            processing_order.append(job_id)
            await asyncio.sleep(0.05)  # Simulate processing time
            concurrent_count -= 1

        processor._process_job = mock_process

        await processor.start()

        await processor.enqueue(1)
        await processor.enqueue(2)
        await processor.enqueue(3)

        await asyncio.sleep(0.3)

        await processor.stop()

        assert max_concurrent == 1  # Never more than 1 concurrent
        assert processing_order == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_failed_job_does_not_stop_loop(self, orchestrator):
        processor = JobProcessor(orchestrator)
        seen = []

        async def flaky(job_id):
            seen.append(job_id)
            if job_id == 1:
                raise RuntimeError('boom')

        processor._process_job = flaky

        await processor.start()
        await processor.enqueue(1)
        await processor.enqueue(2)
        await asyncio.sleep(0.2)
        await processor.stop()

        assert seen == [1, 2]


class TestRecovery:
    """Tests for re-queuing jobs after a restart."""

    @pytest.mark.asyncio
    async def test_recover_enqueues_queued_jobs_in_order(self, orchestrator):
        elements = normalize_elements([{'id': 1, 'pause_duration': '1'}])
        first = await orchestrator.submit(1, elements)
        second = await orchestrator.submit(2, elements)

        processor = JobProcessor(orchestrator)
        recovered = await processor.recover()

        assert recovered == 2
        assert [processor._queue.get_nowait(), processor._queue.get_nowait()] == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_recovered_job_runs_to_done(self, orchestrator, fake_driver, session_factory):
        """Test a job submitted before a restart completes from its snapshot."""
        job = await orchestrator.submit(1, normalize_elements([
            {'id': 1, 'text': 'hello'},
            {'id': 2, 'pause_duration': '1.5'},
        ]))
        fake_driver.results = [tts_success('/gen/hello.mp3'), concat_success('/final/m.mp3')]

        processor = JobProcessor(orchestrator)
        await processor.start()
        await processor.recover()
        await asyncio.sleep(0.3)
        await processor.stop()

        async with session_factory() as session:
            result = await session.execute(select(Job).where(Job.id == job.id))
            assert result.scalar_one().status == JobStatus.done.value
