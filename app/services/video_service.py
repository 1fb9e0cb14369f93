"""Video record store: the persistence seam used by uploads and the pipeline."""
import logging
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.video import ProcessingStatus, Video
from app.processing.errors import RecordMissing

logger = logging.getLogger(__name__)

# Fields the processing pipeline is allowed to write
PROCESSING_FIELDS = frozenset({
    "processing_status",
    "processing_error",
    "duration",
    "thumbnail_url",
    "thumbnail_ref",
    "original_path",
    "processed_variants",
    "remote_ref",
})


UNFINISHED_STATUSES = (ProcessingStatus.UPLOADING.value, ProcessingStatus.PROCESSING.value)


def _column_value(value):
    if isinstance(value, ProcessingStatus):
        return value.value
    if isinstance(value, dict):
        # JSON columns only detect reassignment
        return dict(value)
    return value


async def create_video(
    db: AsyncSession,
    *,
    video_id: UUID,
    title: str,
    description: str | None,
    original_path: str,
    thumbnail_url: str | None,
    thumbnail_ref: str | None = None,
    visibility: str = "public",
) -> Video:
    video = Video(
        id=video_id,
        title=title,
        description=description,
        visibility=visibility,
        original_path=original_path,
        thumbnail_url=thumbnail_url,
        thumbnail_ref=thumbnail_ref,
        duration=0,
        processed_variants={},
        processing_status=ProcessingStatus.PROCESSING.value,
    )
    db.add(video)
    await db.flush()
    await db.refresh(video)
    return video


async def get_video_by_id(db: AsyncSession, video_id: UUID) -> Video | None:
    result = await db.execute(select(Video).where(Video.id == video_id))
    return result.scalar_one_or_none()


async def update_video_fields(db: AsyncSession, video_id: UUID, **fields) -> Video:
    """Partial update, last write wins on the supplied fields."""
    video = await get_video_by_id(db, video_id)
    if video is None:
        raise RecordMissing(video_id)
    for name, value in fields.items():
        setattr(video, name, _column_value(value))
    await db.flush()
    return video


async def finish_video(db: AsyncSession, video_id: UUID, status: ProcessingStatus, **fields) -> bool:
    """Move an unfinished record to a terminal status in one conditional UPDATE.

    Returns False if the record is missing or already ready/failed; nothing is
    written in that case.
    """
    values = {name: _column_value(value) for name, value in fields.items()}
    values["processing_status"] = ProcessingStatus(status).value
    result = await db.execute(
        update(Video)
        .where(Video.id == video_id, Video.processing_status.in_(UNFINISHED_STATUSES))
        .values(**values)
    )
    return result.rowcount == 1


async def delete_video(db: AsyncSession, video: Video) -> None:
    await db.delete(video)
    await db.flush()


async def list_stale_processing(db: AsyncSession, older_than: timedelta) -> list[Video]:
    cutoff = datetime.utcnow() - older_than
    result = await db.execute(
        select(Video).where(
            Video.processing_status.in_(UNFINISHED_STATUSES),
            Video.updated_at < cutoff,
        )
    )
    return list(result.scalars().all())


class VideoRecordStore:
    """Short-lived session per call, committed immediately.

    The pipeline writes through after each step so readers see partial
    progress, and nothing already written is rolled back by a later failure.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def get(self, video_id: UUID) -> Video | None:
        async with self.session_maker() as db:
            return await get_video_by_id(db, video_id)

    def _check_fields(self, fields: dict) -> None:
        unknown = set(fields) - PROCESSING_FIELDS
        if unknown:
            raise ValueError(f"Pipeline may not write {sorted(unknown)}")

    async def update(self, video_id: UUID, **fields) -> Video:
        self._check_fields(fields)
        async with self.session_maker() as db:
            video = await update_video_fields(db, video_id, **fields)
            await db.commit()
            return video

    async def finish(self, video_id: UUID, status: ProcessingStatus, **fields) -> bool:
        """Terminal write. False if another writer already finalized the record."""
        self._check_fields(fields)
        async with self.session_maker() as db:
            done = await finish_video(db, video_id, status, **fields)
            await db.commit()
            return done
