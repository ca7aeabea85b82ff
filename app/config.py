"""
Application configuration and paths.
"""
import logging
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Application identity
APP_NAME = 'MantrifyQueuer'
APP_VERSION = '0.1.0'

# Server configuration
SERVER_HOST = '127.0.0.1'
SERVER_PORT = 5111

# Paths
SCRIPT_DIR = Path(__file__).parent.parent
DEFAULT_DATA_DIR = SCRIPT_DIR / 'data'

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class Settings(BaseSettings):
    """
    Runtime configuration, built once at process start.

    The settings object is handed to the orchestrator, stage driver and job
    processor explicitly; nothing below the server reads the environment.
    """
    # Job snapshots live in <queuer_dir>/<YYYYMMDD>/, uploads in
    # <queuer_dir>/user_request_csv_files/
    queuer_dir: Path = DEFAULT_DATA_DIR / 'queuer'
    elevenlabs_csv_dir: Path = DEFAULT_DATA_DIR / 'elevenlabs_csv'
    audio_csv_dir: Path = DEFAULT_DATA_DIR / 'audio_csv'
    sound_files_dir: Path = DEFAULT_DATA_DIR / 'sound_files'
    log_dir: Optional[Path] = None
    log_level: str = 'INFO'

    database_url: str = f'sqlite+aiosqlite:///{DEFAULT_DATA_DIR / "queuer.db"}'

    # External engines
    tts_command: List[str] = Field(default_factory=lambda: ['npm', 'start', '--'])
    tts_workdir: Optional[Path] = None
    tts_app_name: str = 'RequesterElevenLabs01'
    concatenator_command: List[str] = Field(default_factory=lambda: ['npm', 'start', '--'])
    concatenator_workdir: Optional[Path] = None
    concatenator_app_name: str = 'AudioFileConcatenator01'
    concatenator_output_marker: str = 'Audio concatenation completed:'

    # Defaults written to the TTS CSV when an element leaves them out
    default_voice_id: str = ''
    default_speed: str = ''

    # Treat a TTS output/input count mismatch as a pipeline failure
    strict_tts_output_count: bool = True

    # Base environment for child processes, captured once
    child_env: Dict[str, str] = Field(default_factory=lambda: dict(os.environ))

    model_config = SettingsConfigDict(
        env_prefix='QUEUER_',
        env_file='.env',
        case_sensitive=False,
        extra='ignore',
    )

    @property
    def user_request_csv_dir(self) -> Path:
        return self.queuer_dir / 'user_request_csv_files'

    def ensure_directories(self):
        """Create required directories if they don't exist."""
        for directory in (
            self.queuer_dir,
            self.user_request_csv_dir,
            self.elevenlabs_csv_dir,
            self.audio_csv_dir,
            self.sound_files_dir,
        ):
            directory.mkdir(parents=True, exist_ok=True)
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the settings singleton, loading it from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings():
    """Reset the settings singleton (for testing)."""
    global _settings
    _settings = None


def configure_logging(settings: Settings):
    """Route application logs to stderr and, if configured, a log file."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if settings.log_dir is not None:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_dir / f'{APP_NAME}.log'))

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    for noisy in ('aiosqlite', 'sqlalchemy.engine'):
        logging.getLogger(noisy).setLevel(logging.WARNING)
