"""Periodic maintenance tasks.

A worker crash mid-pipeline leaves a video in ``processing`` forever. The
sweep marks such records failed once they have gone untouched for
PROCESSING_STALE_AFTER_MINUTES. It takes the per-video lock for each write,
so a record whose job is still running is skipped.
"""
import asyncio
import logging
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.celery_app import celery_app
from app.core.config import settings
from app.db.session import create_worker_engine, make_session_maker
from app.models.video import ProcessingStatus
from app.processing.errors import JobAlreadyRunning
from app.processing.locks import JobLocks, get_job_locks
from app.services.storage_service import get_storage
from app.services.video_service import finish_video, list_stale_processing

logger = logging.getLogger(__name__)

STALE_ERROR = "Processing timed out"


async def sweep_stale_jobs(
    session_maker: async_sessionmaker[AsyncSession],
    locks: JobLocks,
    older_than: timedelta,
) -> list[str]:
    """Fail stale unfinished records. Returns the ids that were failed."""
    failed: list[str] = []
    async with session_maker() as db:
        stale = [(video.id, video.original_path) for video in await list_stale_processing(db, older_than)]
        for video_id, source in stale:
            try:
                async with locks.hold(video_id):
                    done = await finish_video(
                        db,
                        video_id,
                        ProcessingStatus.FAILED,
                        processing_error=STALE_ERROR,
                        original_path=None,
                    )
                    await db.commit()
                    if done:
                        get_storage().delete(source)
                        failed.append(str(video_id))
            except JobAlreadyRunning:
                logger.info("Video %s looks stale but its job is still running", video_id)
    if failed:
        logger.warning("Marked %d stale video(s) as failed: %s", len(failed), failed)
    return failed


async def _sweep() -> list[str]:
    engine = create_worker_engine()
    try:
        return await sweep_stale_jobs(
            make_session_maker(engine),
            get_job_locks(),
            timedelta(minutes=settings.PROCESSING_STALE_AFTER_MINUTES),
        )
    finally:
        await engine.dispose()


@celery_app.task(name="app.workers.maintenance.fail_stale_processing_jobs")
def fail_stale_processing_jobs() -> int:
    return len(asyncio.run(_sweep()))
