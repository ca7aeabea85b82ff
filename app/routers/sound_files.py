"""
Sound clip catalog endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.models.audio import SoundFile
from app.schemas.meditation import SoundFileCreate, SoundFileResponse, SoundFileListResponse


router = APIRouter(prefix='/sound-files', tags=['sound-files'])


@router.get('', response_model=SoundFileListResponse)
async def list_sound_files(db: AsyncSession = Depends(get_db)) -> SoundFileListResponse:
    """List the sound clips scripts may reference by filename."""
    result = await db.execute(select(SoundFile).order_by(SoundFile.filename))
    return SoundFileListResponse(
        sound_files=[SoundFileResponse.model_validate(s) for s in result.scalars().all()]
    )


@router.post('', response_model=SoundFileResponse, status_code=201)
async def register_sound_file(
    data: SoundFileCreate,
    db: AsyncSession = Depends(get_db),
) -> SoundFileResponse:
    """
    Register a sound clip in the catalog.

    Raises:
        409: A clip with this filename is already registered
    """
    existing = await db.execute(select(SoundFile).where(SoundFile.filename == data.filename))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail=f'Sound file already registered: {data.filename}')

    sound = SoundFile(
        name=data.name,
        filename=data.filename,
        description=data.description,
        file_path=data.file_path,
    )
    db.add(sound)
    await db.commit()
    await db.refresh(sound)
    return SoundFileResponse.model_validate(sound)
