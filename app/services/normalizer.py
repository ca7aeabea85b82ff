"""
Validation and classification of meditation script elements.

Accepts either a previously uploaded CSV (by name) or an inline list, never
both, and returns the elements in their original order. Every problem found
is reported at once, keyed by element index.
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from app.errors import ValidationError
from app.schemas.meditation import Element
from app.services.csv_files import read_rows

logger = logging.getLogger(__name__)


def _clean(value: Any) -> Optional[str]:
    """Absent, null and blank values all mean 'not set'."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _is_number(value: str) -> bool:
    try:
        float(value)
    except ValueError:
        return False
    return True


def _check_element(index: int, raw: Any, errors: List[Dict[str, Any]]) -> Optional[Element]:
    def fail(message: str):
        errors.append({'index': index, 'message': message})

    before = len(errors)

    if not isinstance(raw, dict):
        fail('Element must be an object')
        return None

    element_id = _clean(raw.get('id'))
    if element_id is None:
        fail('Element is missing required field: id')
        return None

    voice_id = raw.get('voice_id')
    if voice_id is not None and not isinstance(voice_id, str):
        fail('voice_id must be a string')

    text = _clean(raw.get('text'))
    voice_id = _clean(voice_id)
    speed = _clean(raw.get('speed'))
    pause_duration = _clean(raw.get('pause_duration'))
    sound_file = _clean(raw.get('sound_file'))

    if speed is not None and not _is_number(speed):
        fail('speed must be a number')
    if pause_duration is not None and not _is_number(pause_duration):
        fail('pause_duration must be a number')

    if text is None and pause_duration is None and sound_file is None:
        fail('Element must have at least one of: text, pause_duration, or sound_file')

    if sound_file is not None and any(v is not None for v in (text, voice_id, speed, pause_duration)):
        fail('sound_file cannot be used with text, voice_id, speed, or pause_duration in the same element')

    if len(errors) != before:
        return None

    return Element(
        id=element_id,
        text=text,
        voice_id=voice_id,
        speed=speed,
        pause_duration=pause_duration,
        sound_file=sound_file,
    )


def normalize_elements(raw_elements: List[Any]) -> List[Element]:
    """
    Validate an ordered list of raw element mappings.

    Raises:
        ValidationError: with ``details`` listing ``{index, message}`` for
            every offending element.
    """
    if not isinstance(raw_elements, list):
        raise ValidationError('meditationArray must be an array')
    if not raw_elements:
        raise ValidationError('meditationArray cannot be empty')

    errors: List[Dict[str, Any]] = []
    elements = []
    for index, raw in enumerate(raw_elements):
        element = _check_element(index, raw, errors)
        if element is not None:
            elements.append(element)

    if errors:
        raise ValidationError('meditationArray validation failed', errors)

    logger.info('Normalized %d meditation elements', len(elements))
    return elements


def load_csv_elements(csv_dir: Path, filename_csv: str) -> List[Element]:
    """Read and validate an uploaded script CSV from ``csv_dir``."""
    path = csv_dir / filename_csv
    if Path(filename_csv).name != filename_csv or not path.is_file():
        raise ValidationError(f'CSV file not found: {filename_csv}')

    logger.info('Reading CSV file: %s', path)
    return normalize_elements(read_rows(path))


def normalize_request(
    csv_dir: Path,
    filename_csv: Optional[str] = None,
    meditation_array: Optional[List[Any]] = None,
) -> List[Element]:
    """Resolve a submission to its validated element sequence."""
    has_csv = bool(filename_csv)
    has_array = meditation_array is not None

    if has_csv and has_array:
        raise ValidationError('Cannot provide both filenameCsv and meditationArray')
    if not has_csv and not has_array:
        raise ValidationError('Either filenameCsv or meditationArray must be provided')

    if has_csv:
        return load_csv_elements(csv_dir, filename_csv)
    return normalize_elements(meditation_array)
