#!/usr/bin/env python3
"""
MantrifyQueuer FastAPI Server

Accepts meditation scripts, queues them as jobs, and assembles each one into a
single audio file by driving the ElevenLabs requester and the audio
concatenator as child processes.
"""
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.config import APP_NAME, APP_VERSION, SERVER_HOST, SERVER_PORT, get_settings, configure_logging
from app.database import init_db, close_db
from app.errors import AppError, InternalError, ValidationError
from app.services.job_processor import get_job_processor
from app.routers import health_router, jobs_router, meditations_router, sound_files_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Startup:
        - Configure logging from settings
        - Initialize database and create tables
        - Start job processor and re-enqueue jobs left queued

    Shutdown:
        - Stop job processor
        - Close database connections
    """
    settings = get_settings()
    configure_logging(settings)
    print(f'Starting {APP_NAME} v{APP_VERSION}...')

    # Initialize database
    print('Initializing database...')
    await init_db()

    # Start job processor
    print('Starting job processor...')
    job_processor = get_job_processor()
    await job_processor.start()
    recovered = await job_processor.recover()
    if recovered:
        print(f'Re-queued {recovered} job(s) from a previous run')

    print(f'Server ready at http://{SERVER_HOST}:{SERVER_PORT}')
    print('API documentation available at /docs')

    yield

    # Shutdown
    print('Shutting down...')

    # Stop job processor
    await job_processor.stop()

    # Close database
    await close_db()

    print('Shutdown complete.')


# Create FastAPI application
app = FastAPI(
    title=APP_NAME,
    description='Queues meditation scripts and assembles them into audio files.',
    version=APP_VERSION,
    lifespan=lifespan,
)

# Register routers
app.include_router(health_router)
app.include_router(jobs_router)
app.include_router(meditations_router)
app.include_router(sound_files_router)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    logger.error('Error: %s (%s %s)', exc.message, request.method, request.url.path)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {'field': '.'.join(str(part) for part in err['loc'][1:]), 'message': err['msg']}
        for err in exc.errors()
    ]
    error = ValidationError('Request body validation failed', details)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception('Unhandled error on %s %s', request.method, request.url.path)
    error = InternalError(str(exc) or 'An unexpected error occurred')
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.get('/', include_in_schema=False)
async def root():
    """Service banner."""
    return {'message': f'{APP_NAME} API', 'status': 'running', 'version': APP_VERSION}


if __name__ == '__main__':
    uvicorn.run(
        app,
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=False,
        log_level='info',
    )
