"""
Audio artifact models: generated speech, catalog sound clips, final meditations
and the link tables between them.
"""
from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Integer, ForeignKey

from app.models.base import Base


class Meditation(Base):
    """The single concatenated audio file produced for a job."""
    __tablename__ = 'meditations'

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    job_id = Column(Integer, ForeignKey('jobs.id'), nullable=True)
    title = Column(String(255), nullable=False)
    filename = Column(String(255), nullable=False)
    file_path = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    def __repr__(self):
        return f'<Meditation {self.id} {self.filename}>'


class GeneratedAudioFile(Base):
    """One audio file produced by the TTS engine for one speech element."""
    __tablename__ = 'generated_audio_files'

    id = Column(Integer, primary_key=True, autoincrement=True)
    filename = Column(String(255), nullable=False)
    file_path = Column(Text, nullable=False)
    text = Column(Text, nullable=False, default='')
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class SoundFile(Base):
    """A pre-recorded sound clip that scripts reference by filename."""
    __tablename__ = 'sound_files'

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    filename = Column(String(255), nullable=False, unique=True)
    file_path = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class MeditationGeneratedAudioFile(Base):
    __tablename__ = 'meditation_generated_audio_files'

    id = Column(Integer, primary_key=True, autoincrement=True)
    meditation_id = Column(Integer, ForeignKey('meditations.id'), nullable=False, index=True)
    generated_audio_file_id = Column(Integer, ForeignKey('generated_audio_files.id'), nullable=False)


class MeditationSoundFile(Base):
    __tablename__ = 'meditation_sound_files'

    id = Column(Integer, primary_key=True, autoincrement=True)
    meditation_id = Column(Integer, ForeignKey('meditations.id'), nullable=False, index=True)
    sound_file_id = Column(Integer, ForeignKey('sound_files.id'), nullable=False)
