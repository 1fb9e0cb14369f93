"""API dependencies: db session, storage and remote store."""
from uuid import UUID

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.video import Video
from app.services.remote_store import S3MediaStore, get_remote_store
from app.services.storage_service import LocalStorage, get_storage
from app.services.video_service import get_video_by_id


def get_storage_dep() -> LocalStorage:
    return get_storage()


def get_remote_store_dep() -> S3MediaStore:
    return get_remote_store()


async def get_video_or_404(
    video_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> Video:
    video = await get_video_by_id(db, video_id)
    if video is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Video not found")
    return video
