"""
Meditation assembly pipeline.

A job moves queued -> started -> elevenlabs -> concatenator -> done. Any error
after submission parks it in ``failed`` with the last status it reached.
The TTS engine reports one output path per synthesized row, in input order,
without echoing element ids: the Nth path belongs to the Nth speech element.
"""
import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import Settings
from app.errors import AppError, InternalError, ProcessFailure
from app.models.job import Job, JobStatus, next_status
from app.schemas.meditation import Element, ElementKind
from app.services.artifact_linker import ArtifactLinker, ResolvedSoundFiles
from app.services.csv_files import (
    generate_job_filename,
    generate_stage_filename,
    read_job_snapshot,
    snapshot_path,
    write_concatenator_csv,
    write_job_snapshot,
    write_tts_csv,
)
from app.services.job_store import JobStore
from app.services.stage_driver import StageDriver, build_stage_env

logger = logging.getLogger(__name__)

TTS_OUTPUT_PATTERN = re.compile(r'Audio file created successfully:\s*(.+)')


@dataclass
class PipelineResult:
    """Outcome of one pipeline run, as returned to callers."""
    success: bool
    job_id: int
    final_file_path: Optional[str] = None
    error: Optional[str] = None
    stage_reached: Optional[str] = None


def parse_tts_output(stdout: str) -> List[str]:
    """Generated file paths, in the order the engine reported them."""
    paths = []
    for line in stdout.splitlines():
        match = TTS_OUTPUT_PATTERN.search(line)
        if match and match.group(1).strip():
            paths.append(match.group(1).strip())
            logger.info('Found generated file: %s', paths[-1])
    return paths


def parse_concatenator_output(stdout: str, marker: str) -> Optional[str]:
    """Path from the last line carrying ``marker``, if any."""
    final_path = None
    for line in stdout.splitlines():
        head, sep, tail = line.partition(marker)
        if sep and tail.strip():
            final_path = tail.strip()
    return final_path


def speech_subsequence(elements: List[Element]) -> List[Element]:
    return [e for e in elements if e.kind == ElementKind.speech]


class PipelineOrchestrator:
    """
    Drives one job through both engines.

    Session handling follows the job processor: each run opens its own session
    from ``session_factory`` and commits at every status change. Runs are
    serialized, whether they come from the job processor or a synchronous
    request, so the engines only ever see one job.
    """

    def __init__(
        self,
        settings: Settings,
        session_factory: Callable[[], AsyncSession],
        driver: Optional[StageDriver] = None,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.driver = driver or StageDriver()
        self._run_lock = asyncio.Lock()

    def _new_job_filename(self, user_id: int) -> str:
        job_filename = generate_job_filename(user_id)
        stem = job_filename[:-len('.csv')]
        suffix = 1
        while snapshot_path(self.settings.queuer_dir, job_filename).exists():
            job_filename = f'{stem}_{suffix}.csv'
            suffix += 1
        return job_filename

    async def submit(self, user_id: int, elements: List[Element]) -> Job:
        """Write the audit snapshot, then record the job as queued."""
        logger.info('Starting meditation creation workflow for user %s', user_id)
        job_filename = self._new_job_filename(user_id)
        write_job_snapshot(self.settings.queuer_dir, job_filename, elements)

        async with self.session_factory() as session:
            job = await JobStore(session).create(user_id, job_filename)
        return job

    async def orchestrate(self, user_id: int, elements: List[Element]) -> PipelineResult:
        """Submit and run in one call, blocking until the pipeline finishes."""
        job = await self.submit(user_id, elements)
        return await self.run(job.id)

    async def _advance(self, store: JobStore, job_id: int, current: JobStatus, target: JobStatus) -> JobStatus:
        if next_status(current) != target:
            raise InternalError(f'Illegal transition for job {job_id}: {current.value} -> {target.value}')
        await store.set_status(job_id, target)
        return target

    async def run(self, job_id: int) -> PipelineResult:
        """Run stages 2-6 for a queued job, one job at a time across all callers."""
        async with self._run_lock:
            return await self._run_job(job_id)

    async def _run_job(self, job_id: int) -> PipelineResult:
        async with self.session_factory() as session:
            store = JobStore(session)

            try:
                job = await store.get(job_id)
            except AppError as e:
                logger.error('Cannot run job %s: %s', job_id, e.message)
                return PipelineResult(success=False, job_id=job_id, error=e.message)

            if job.status != JobStatus.queued.value:
                message = f'Job {job_id} is not queued (status: {job.status})'
                logger.warning(message)
                return PipelineResult(
                    success=False, job_id=job_id, error=message, stage_reached=job.status
                )

            current = JobStatus.queued
            linker = ArtifactLinker(session, self.settings.sound_files_dir)
            try:
                elements = read_job_snapshot(self.settings.queuer_dir, job.job_filename)
                logger.info('Loaded %d meditation elements for job %s', len(elements), job_id)

                sounds = await linker.resolve_sound_files(elements)
                current = await self._advance(store, job_id, current, JobStatus.started)

                speech = speech_subsequence(elements)
                current = await self._advance(store, job_id, current, JobStatus.elevenlabs)
                generated = await self._run_tts(job_id, speech)

                current = await self._advance(store, job_id, current, JobStatus.concatenator)
                final_path = await self._run_concatenator(job_id, elements, generated, sounds)

                generated_ids = await linker.save_generated_audio(generated, speech)
                meditation = await linker.save_meditation(final_path, job.user_id, job_id)
                await linker.link_generated_audio(meditation.id, generated_ids)
                await linker.link_sound_files(meditation.id, sounds.ids)
                await store.mark_done(job_id, final_path, meditation.id)

            except Exception as e:
                cause = e.message if isinstance(e, AppError) else (str(e) or type(e).__name__)
                logger.exception('Workflow failed for job %s at stage %s: %s', job_id, current.value, cause)
                try:
                    await session.rollback()
                    await store.mark_failed(job_id, current.value, cause)
                except (AppError, SQLAlchemyError) as store_error:
                    logger.error(
                        'Could not record failure of job %s: %s', job_id, store_error
                    )
                return PipelineResult(
                    success=False,
                    job_id=job_id,
                    error=cause,
                    stage_reached=current.value,
                )

        logger.info('Meditation creation workflow completed successfully: %s', final_path)
        return PipelineResult(success=True, job_id=job_id, final_file_path=final_path)

    async def _run_tts(self, job_id: int, speech: List[Element]) -> List[str]:
        if not speech:
            logger.info('No text elements to process, skipping ElevenLabs')
            return []

        rows = [
            {
                'id': element.id,
                'text': element.text,
                'voice_id': element.voice_id or self.settings.default_voice_id,
                'speed': element.speed or self.settings.default_speed,
            }
            for element in speech
        ]
        filename = generate_stage_filename('elevenlabs', job_id)
        write_tts_csv(self.settings.elevenlabs_csv_dir, filename, rows)

        result = await self.driver.run(
            self.settings.tts_command,
            ['--file_name', filename],
            env=build_stage_env(self.settings.child_env, self.settings.tts_app_name),
            cwd=self.settings.tts_workdir,
        )
        if not result.success:
            raise ProcessFailure(
                'elevenlabs',
                f'ElevenLabs process failed with exit code: {result.exit_code} ({result.error})',
                result.exit_code,
            )

        paths = parse_tts_output(result.stdout)
        if len(paths) != len(speech):
            message = f'Expected {len(speech)} files but got {len(paths)} from ElevenLabs output'
            if self.settings.strict_tts_output_count:
                raise ProcessFailure('elevenlabs', message, result.exit_code)
            logger.warning(message)

        logger.info('ElevenLabs workflow completed with %d generated files', len(paths))
        return paths

    async def _run_concatenator(
        self,
        job_id: int,
        elements: List[Element],
        generated: List[str],
        sounds: ResolvedSoundFiles,
    ) -> str:
        rows = []
        speech_index = 0
        for element in elements:
            kind = element.kind
            if kind == ElementKind.speech:
                path = generated[speech_index] if speech_index < len(generated) else None
                speech_index += 1
                if path is None:
                    logger.warning('No generated audio for element %s, omitting it', element.id)
                    continue
                rows.append({'id': element.id, 'audio_file_name_and_path': path, 'pause_duration': ''})
            elif kind == ElementKind.sound_clip:
                path = sounds.paths.get(element.sound_file)
                if path is None:
                    logger.warning('Sound file %s unresolved, omitting element %s', element.sound_file, element.id)
                    continue
                rows.append({'id': element.id, 'audio_file_name_and_path': path, 'pause_duration': ''})
            else:
                rows.append({'id': element.id, 'audio_file_name_and_path': '', 'pause_duration': element.pause_duration})

        if not rows:
            raise InternalError(f'Job {job_id} has no audio segments to concatenate')

        filename = generate_stage_filename('audio_concatenator', job_id)
        write_concatenator_csv(self.settings.audio_csv_dir, filename, rows)

        result = await self.driver.run(
            self.settings.concatenator_command,
            ['--file_name', filename],
            env=build_stage_env(self.settings.child_env, self.settings.concatenator_app_name),
            cwd=self.settings.concatenator_workdir,
        )
        if not result.success:
            raise ProcessFailure(
                'concatenator',
                f'AudioConcatenator process failed with exit code: {result.exit_code} ({result.error})',
                result.exit_code,
            )

        final_path = parse_concatenator_output(result.stdout, self.settings.concatenator_output_marker)
        if not final_path:
            raise ProcessFailure('concatenator', 'No final audio file path in AudioConcatenator output', result.exit_code)

        logger.info('AudioConcatenator workflow completed: %s', final_path)
        return final_path


# Singleton instance
_orchestrator: Optional[PipelineOrchestrator] = None


def get_orchestrator() -> PipelineOrchestrator:
    """Get the orchestrator singleton, bound to the application database."""
    global _orchestrator
    if _orchestrator is None:
        from app.config import get_settings
        from app.database import async_session_factory
        _orchestrator = PipelineOrchestrator(get_settings(), async_session_factory)
    return _orchestrator


def reset_orchestrator():
    """Reset the orchestrator singleton (for testing)."""
    global _orchestrator
    _orchestrator = None
