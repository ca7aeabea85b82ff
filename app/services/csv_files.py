"""
CSV files exchanged with the external engines, plus the job audit snapshot.

Every file has a fixed header row:
    job snapshot:       id,text,voice_id,speed,pause_duration,sound_file
    TTS input:          id,text,voice_id,speed
    concatenator input: id,audio_file_name_and_path,pause_duration
"""
import csv
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from app.schemas.meditation import Element, element_row

logger = logging.getLogger(__name__)

JOB_SNAPSHOT_COLUMNS = ['id', 'text', 'voice_id', 'speed', 'pause_duration', 'sound_file']
TTS_COLUMNS = ['id', 'text', 'voice_id', 'speed']
CONCATENATOR_COLUMNS = ['id', 'audio_file_name_and_path', 'pause_duration']

_JOB_FILENAME_PATTERN = re.compile(r'^job_user\d+_(\d{8})_\d{6}(?:_\d+)?\.csv$')


def _timestamp(moment: Optional[datetime] = None) -> str:
    return (moment or datetime.utcnow()).strftime('%Y%m%d_%H%M%S')


def generate_job_filename(user_id: int, moment: Optional[datetime] = None) -> str:
    """Snapshot name: job_user<uid>_<YYYYMMDD>_<HHMMSS>.csv."""
    return f'job_user{user_id}_{_timestamp(moment)}.csv'


def generate_stage_filename(prefix: str, job_id: int, moment: Optional[datetime] = None) -> str:
    """Intermediate file name, unique per job: <prefix>_job<id>_<YYYYMMDD>_<HHMMSS>.csv."""
    return f'{prefix}_job{job_id}_{_timestamp(moment)}.csv'


def snapshot_path(queuer_dir: Path, job_filename: str) -> Path:
    """Resolve a job snapshot to <queuer_dir>/<YYYYMMDD>/<job_filename>."""
    match = _JOB_FILENAME_PATTERN.match(job_filename)
    if not match:
        raise ValueError(f'Invalid job filename format: {job_filename}')
    return queuer_dir / match.group(1) / job_filename


def _write_rows(path: Path, columns: List[str], rows: List[Dict[str, str]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open('w', encoding='utf-8', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=columns, extrasaction='ignore')
        writer.writeheader()
        writer.writerows(rows)
    return path


def read_rows(path: Path) -> List[Dict[str, str]]:
    """Read a CSV with a header row; surrounding whitespace is trimmed and blank lines skipped."""
    with path.open('r', encoding='utf-8', newline='') as f:
        reader = csv.DictReader(f)
        rows = []
        for record in reader:
            row = {
                (key or '').strip(): (value or '').strip()
                for key, value in record.items()
                if key is not None
            }
            if any(row.values()):
                rows.append(row)
    logger.info('Parsed %d rows from CSV file %s', len(rows), path)
    return rows


def write_job_snapshot(queuer_dir: Path, job_filename: str, elements: List[Element]) -> Path:
    """Write the audit snapshot of a job's full element sequence."""
    path = snapshot_path(queuer_dir, job_filename)
    logger.info('Writing job CSV with %d elements to: %s', len(elements), path)
    return _write_rows(path, JOB_SNAPSHOT_COLUMNS, [element_row(e) for e in elements])


def read_job_snapshot(queuer_dir: Path, job_filename: str) -> List[Element]:
    """Load the element sequence back from a job snapshot."""
    path = snapshot_path(queuer_dir, job_filename)
    return [
        Element(**{column: row.get(column) or None for column in JOB_SNAPSHOT_COLUMNS})
        for row in read_rows(path)
    ]


def write_tts_csv(directory: Path, filename: str, rows: List[Dict[str, str]]) -> Path:
    path = directory / filename
    logger.info('Writing ElevenLabs CSV with %d rows to: %s', len(rows), path)
    return _write_rows(path, TTS_COLUMNS, rows)


def write_concatenator_csv(directory: Path, filename: str, rows: List[Dict[str, str]]) -> Path:
    path = directory / filename
    logger.info('Writing AudioConcatenator CSV with %d rows to: %s', len(rows), path)
    return _write_rows(path, CONCATENATOR_COLUMNS, rows)
