"""
Pydantic schemas for meditation scripts and submissions.
"""
import enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ConfigDict


class ElementKind(str, enum.Enum):
    """Semantic kind of a script element."""
    speech = 'speech'
    pause = 'pause'
    sound_clip = 'sound_clip'


class Element(BaseModel):
    """
    One ordered unit of a meditation script.

    Numeric fields are kept as the caller wrote them so snapshots round-trip
    unchanged; the normalizer guarantees they parse as numbers.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    text: Optional[str] = None
    voice_id: Optional[str] = None
    speed: Optional[str] = None
    pause_duration: Optional[str] = None
    sound_file: Optional[str] = None

    @property
    def kind(self) -> ElementKind:
        if self.sound_file:
            return ElementKind.sound_clip
        if self.text:
            return ElementKind.speech
        return ElementKind.pause


class MeditationCreate(BaseModel):
    """Schema for submitting a meditation script."""
    model_config = ConfigDict(populate_by_name=True)

    user_id: int = Field(..., alias='userId', gt=0, description='Owning user')
    filename_csv: Optional[str] = Field(
        None, alias='filenameCsv', description='Previously uploaded script CSV'
    )
    meditation_array: Optional[List[Any]] = Field(
        None, alias='meditationArray', description='Inline ordered script elements'
    )


class MeditationSubmitted(BaseModel):
    """Response for an accepted submission."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    job_id: int = Field(..., alias='jobId')
    status: str
    message: str = 'Meditation job queued'


class MeditationCompleted(BaseModel):
    """Response for a synchronous submission that finished."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    job_id: int = Field(..., alias='jobId')
    final_file_path: str = Field(..., alias='finalFilePath')
    message: str = 'Meditation created successfully'


class SoundFileCreate(BaseModel):
    """Schema for registering a catalog sound clip."""
    name: str = Field(..., min_length=1)
    filename: str = Field(..., min_length=1)
    description: Optional[str] = None
    file_path: Optional[str] = Field(None, description='Directory holding the clip (default: sound files dir)')


class SoundFileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]
    filename: str
    file_path: Optional[str]


class SoundFileListResponse(BaseModel):
    sound_files: List[SoundFileResponse]


def element_row(element: Element) -> Dict[str, str]:
    """Flatten an element to a CSV row, empty strings for absent fields."""
    return {key: value or '' for key, value in element.model_dump().items()}
