"""
Pytest fixtures for testing.
"""
import os
from pathlib import Path
from typing import AsyncGenerator, List

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.config import Settings, get_settings
from app.models import Base
from app.database import get_db
from app.services.job_processor import JobProcessor, get_job_processor, reset_job_processor
from app.services.orchestrator import PipelineOrchestrator, get_orchestrator, reset_orchestrator
from app.services.stage_driver import StageResult


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings rooted in a temporary directory."""
    settings = Settings(
        queuer_dir=tmp_path / 'queuer',
        elevenlabs_csv_dir=tmp_path / 'elevenlabs_csv',
        audio_csv_dir=tmp_path / 'audio_csv',
        sound_files_dir=tmp_path / 'sound_files',
        database_url=f'sqlite+aiosqlite:///{tmp_path / "test.db"}',
        tts_command=['tts-engine'],
        concatenator_command=['concat-engine'],
        default_voice_id='default-voice',
        default_speed='1.0',
        child_env={'PATH': os.environ.get('PATH', '')},
    )
    settings.ensure_directories()
    return settings


@pytest_asyncio.fixture(scope='function')
async def test_engine(test_settings):
    """Create a test database engine."""
    engine = create_async_engine(test_settings.database_url, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture(scope='function')
async def test_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


class FakeDriver:
    """Stage driver double that replays scripted results and records calls."""

    def __init__(self, results: List[StageResult] = None):
        self.results = list(results or [])
        self.calls = []

    async def run(self, command, args, env=None, cwd=None):
        self.calls.append({
            'command': list(command),
            'args': list(args),
            'env': env,
            'cwd': cwd,
            'file_name': args[args.index('--file_name') + 1],
        })
        return self.results.pop(0)


def tts_success(*paths: str) -> StageResult:
    lines = ['Starting ElevenLabs requester']
    lines += [f'Audio file created successfully: {p}' for p in paths]
    return StageResult(success=True, exit_code=0, stdout='\n'.join(lines) + '\n', stderr='')


def concat_success(path: str) -> StageResult:
    return StageResult(
        success=True,
        exit_code=0,
        stdout=f'Concatenating...\nAudio concatenation completed: {path}\n',
        stderr='',
    )


def failure(exit_code: int = 1) -> StageResult:
    return StageResult(
        success=False,
        exit_code=exit_code,
        stdout='',
        stderr='boom\n',
        error=f'Process exited with code {exit_code}',
    )


@pytest.fixture
def fake_driver():
    return FakeDriver()


@pytest.fixture
def orchestrator(test_settings, session_factory, fake_driver) -> PipelineOrchestrator:
    return PipelineOrchestrator(test_settings, session_factory, driver=fake_driver)


@pytest_asyncio.fixture
async def client(test_settings, session_factory, orchestrator):
    """Create a test client with mocked dependencies."""
    # Reset singletons
    reset_orchestrator()
    reset_job_processor()

    from server import app

    processor = JobProcessor(orchestrator)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    # Override dependencies
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_job_processor] = lambda: processor

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as client:
        client.processor = processor
        yield client

    # Clean up
    app.dependency_overrides.clear()
    reset_orchestrator()
    reset_job_processor()


@pytest.fixture
def upload_csv(test_settings):
    """Write a script CSV into the user upload directory."""
    def _write(name: str, content: str) -> Path:
        path = test_settings.user_request_csv_dir / name
        path.write_text(content, encoding='utf-8')
        return path
    return _write
