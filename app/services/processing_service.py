"""Hand-off from the upload handler to the background pipeline."""
import logging
from pathlib import Path
from uuid import UUID

from app.processing.orchestrator import VideoJob
from app.workers.video_processing import process_video_upload

logger = logging.getLogger(__name__)


def submit_processing_job(video_id: UUID, source_path: str | Path, use_remote_store: bool) -> bool:
    """Enqueue processing and return immediately. Returns False if the broker refused it."""
    job = VideoJob(video_id=video_id, source_path=Path(source_path), use_remote_store=use_remote_store)
    try:
        process_video_upload.delay(**job.to_task_args())
    except Exception as e:
        # The record itself was created; an operator can re-trigger processing
        logger.warning("Failed to enqueue processing for video %s: %s", video_id, e)
        return False
    return True
