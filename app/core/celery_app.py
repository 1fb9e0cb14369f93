"""Celery application for background tasks (video processing, maintenance)."""
from celery import Celery
from celery.signals import worker_process_init

from app.core.config import settings

celery_app = Celery(
    "streamline",
    broker=settings.CELERY_BROKER_URL,
    include=["app.workers.video_processing", "app.workers.maintenance"],
)
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    # One encode per slot; the pool size is the transcoding concurrency
    worker_concurrency=settings.PROCESSING_CONCURRENCY,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_ignore_result=True,
    beat_schedule={
        "fail-stale-processing-jobs": {
            "task": "app.workers.maintenance.fail_stale_processing_jobs",
            "schedule": float(settings.PROCESSING_SWEEP_INTERVAL_SECONDS),
        },
    },
)


@worker_process_init.connect
def _init_worker_process(**kwargs) -> None:
    from app.core.logging_config import configure_logging
    from app.processing.paths import init_media_dirs

    configure_logging()
    init_media_dirs()
