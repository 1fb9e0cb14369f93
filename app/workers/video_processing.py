"""Celery tasks for video processing (probe, thumbnail, transcode or remote upload)."""
import asyncio
import logging

from app.core.celery_app import celery_app
from app.db.session import create_worker_engine, make_session_maker
from app.processing.errors import JobError
from app.processing.orchestrator import JobOutcome, VideoJob, process_video_job

logger = logging.getLogger(__name__)


async def _run_job(job: VideoJob) -> JobOutcome | None:
    engine = create_worker_engine()
    try:
        return await process_video_job(job, make_session_maker(engine))
    except JobError as e:
        # Raised before any side effect; nothing to record
        logger.warning("Skipping processing job: %s", e)
        return None
    finally:
        await engine.dispose()


@celery_app.task(name="app.workers.video_processing.process_video_upload")
def process_video_upload(video_id: str, source_path: str, use_remote_store: bool = False) -> str | None:
    """Run the ingestion pipeline for one uploaded video. Never retried automatically."""
    job = VideoJob.from_task_args(video_id, source_path, use_remote_store)
    logger.info("Processing video %s (remote=%s)", job.video_id, job.use_remote_store)
    outcome = asyncio.run(_run_job(job))
    return outcome.status.value if outcome else None
