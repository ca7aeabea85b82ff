"""
Meditation submission endpoints.
"""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.config import Settings, get_settings
from app.schemas.meditation import MeditationCreate, MeditationSubmitted, MeditationCompleted
from app.services.job_processor import JobProcessor, get_job_processor
from app.services.normalizer import normalize_request
from app.services.orchestrator import PipelineOrchestrator, get_orchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/meditations', tags=['meditations'])


@router.post('', response_model=MeditationSubmitted, status_code=202)
async def submit_meditation(
    body: MeditationCreate,
    settings: Settings = Depends(get_settings),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
    processor: JobProcessor = Depends(get_job_processor),
) -> MeditationSubmitted:
    """
    Queue a meditation script for assembly.

    Exactly one of ``filenameCsv`` or ``meditationArray`` must be given.
    Returns immediately with the job id; poll ``/jobs/{id}`` for progress.
    Invalid scripts are rejected with 400 before any job is created.
    """
    logger.info('Processing meditation request for user %s', body.user_id)
    elements = normalize_request(
        settings.user_request_csv_dir,
        filename_csv=body.filename_csv,
        meditation_array=body.meditation_array,
    )

    job = await orchestrator.submit(body.user_id, elements)
    await processor.enqueue(job.id)

    return MeditationSubmitted(job_id=job.id, status=job.status)


@router.post('/sync', response_model=MeditationCompleted)
async def create_meditation_sync(
    body: MeditationCreate,
    settings: Settings = Depends(get_settings),
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """
    Assemble a meditation and wait for the result.

    Skips the job queue but still waits for any running job to finish; the
    connection stays open for the whole pipeline.
    """
    elements = normalize_request(
        settings.user_request_csv_dir,
        filename_csv=body.filename_csv,
        meditation_array=body.meditation_array,
    )

    result = await orchestrator.orchestrate(body.user_id, elements)

    if not result.success:
        logger.error('Meditation creation failed: %s', result.error)
        return JSONResponse(
            status_code=500,
            content={
                'success': False,
                'jobId': result.job_id,
                'error': {
                    'code': 'WORKFLOW_FAILED',
                    'message': result.error or 'Meditation creation failed',
                    'status': 500,
                    'stageReached': result.stage_reached,
                },
            },
        )

    logger.info('Meditation creation successful: %s', result.final_file_path)
    return MeditationCompleted(job_id=result.job_id, final_file_path=result.final_file_path)
