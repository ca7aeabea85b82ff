"""
Records which audio artifacts make up a finished meditation.

Linking is not idempotent: calling the link methods twice for the same
meditation creates duplicate link rows.
"""
import logging
from dataclasses import dataclass
from pathlib import Path, PurePath
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audio import (
    Meditation,
    GeneratedAudioFile,
    SoundFile,
    MeditationGeneratedAudioFile,
    MeditationSoundFile,
)
from app.schemas.meditation import Element, ElementKind

logger = logging.getLogger(__name__)


@dataclass
class ResolvedSoundFiles:
    """Catalog lookups for a script's sound-clip elements."""
    paths: Dict[str, str]
    ids: List[int]


def split_file_path(full_path: str) -> tuple:
    """Split a path into (filename, directory with trailing slash)."""
    path = PurePath(full_path)
    directory = str(path.parent)
    if not directory.endswith('/'):
        directory += '/'
    return path.name, directory


class ArtifactLinker:
    """Catalog lookups and artifact/link persistence for one session."""

    def __init__(self, session: AsyncSession, sound_files_dir: Path):
        self.session = session
        self.sound_files_dir = sound_files_dir

    def catalog_path(self, sound_file: SoundFile) -> str:
        directory = Path(sound_file.file_path) if sound_file.file_path else self.sound_files_dir
        return str(directory / sound_file.filename)

    async def resolve_sound_files(self, elements: List[Element]) -> ResolvedSoundFiles:
        """
        Look up every sound-clip reference by exact filename.

        Unknown filenames are logged and dropped. Ids come back deduplicated in
        first-use order since one clip may appear several times in a script.
        """
        references = [e.sound_file for e in elements if e.kind == ElementKind.sound_clip]
        if not references:
            logger.info('No sound files found in meditation elements')
            return ResolvedSoundFiles(paths={}, ids=[])

        logger.info('Found %d sound file references in meditation elements', len(references))

        result = await self.session.execute(
            select(SoundFile).where(SoundFile.filename.in_(set(references)))
        )
        catalog = {sound.filename: sound for sound in result.scalars().all()}

        paths: Dict[str, str] = {}
        ids: List[int] = []
        for filename in references:
            sound = catalog.get(filename)
            if sound is None:
                logger.warning('SoundFiles record not found for filename: %s', filename)
                continue
            paths[filename] = self.catalog_path(sound)
            if sound.id not in ids:
                ids.append(sound.id)

        if len(ids) < len(references):
            logger.info('Resolved %d references to %d unique sound files', len(references), len(ids))
        return ResolvedSoundFiles(paths=paths, ids=ids)

    async def save_generated_audio(
        self,
        generated_paths: List[str],
        speech_elements: List[Element],
    ) -> List[int]:
        """One generated_audio_files row per path, text taken from the Nth speech element."""
        created = []
        for index, full_path in enumerate(generated_paths):
            element: Optional[Element] = speech_elements[index] if index < len(speech_elements) else None
            filename, file_path = split_file_path(full_path)
            record = GeneratedAudioFile(
                filename=filename,
                file_path=file_path,
                text=element.text if element else '',
            )
            self.session.add(record)
            await self.session.flush()
            created.append(record.id)
            logger.info('Created GeneratedAudioFile record %s: %s', record.id, filename)
        return created

    async def save_meditation(self, final_path: str, user_id: int, job_id: int) -> Meditation:
        filename, file_path = split_file_path(final_path)
        meditation = Meditation(
            user_id=user_id,
            job_id=job_id,
            title=PurePath(filename).stem,
            filename=filename,
            file_path=file_path,
        )
        self.session.add(meditation)
        await self.session.flush()
        logger.info('Meditation saved to database with ID: %s', meditation.id)
        return meditation

    async def link_generated_audio(self, meditation_id: int, generated_ids: List[int]) -> List[int]:
        links = [
            MeditationGeneratedAudioFile(meditation_id=meditation_id, generated_audio_file_id=gid)
            for gid in generated_ids
        ]
        self.session.add_all(links)
        await self.session.flush()
        logger.info('Linked meditation %s to %d generated audio files', meditation_id, len(links))
        return [link.id for link in links]

    async def link_sound_files(self, meditation_id: int, sound_file_ids: List[int]) -> List[int]:
        links = [
            MeditationSoundFile(meditation_id=meditation_id, sound_file_id=sid)
            for sid in sound_file_ids
        ]
        self.session.add_all(links)
        await self.session.flush()
        logger.info('Linked meditation %s to %d sound files', meditation_id, len(links))
        return [link.id for link in links]
