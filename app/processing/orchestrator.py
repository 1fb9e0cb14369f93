"""Processing orchestrator: drives one uploaded video to ``ready`` or ``failed``.

Stages: STARTED -> PROBED -> (REMOTE_UPLOADING | LOCAL_THUMBNAILING)
-> (REMOTE_DONE | LOCAL_TRANSCODING) -> FINALIZED.

Only a probe failure aborts unconditionally. Thumbnail problems are
cosmetic, a single variant failing is tolerated as long as something
playable exists, and a failed remote video upload fails the job without
falling back to local encoding. Progress is written through as it happens
and is never rolled back.
"""
import asyncio
import enum
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Awaitable, Callable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.models.video import ProcessingStatus, Video
from app.processing.errors import ProbeError, RecordFinalized, RecordMissing, RemoteStoreError, ThumbnailError, TranscodeError
from app.processing.locks import JobLocks, get_job_locks
from app.processing.paths import MediaPaths
from app.processing.probe import MediaInfo, probe_media
from app.processing.quality import ORIGINAL_LABEL, QUALITY_LABELS, QualityTarget, targets_for_height
from app.processing.thumbnails import generate_thumbnail
from app.processing.transcoder import transcode_variant
from app.services.remote_store import MediaKind, S3MediaStore, get_remote_store
from app.services.storage_service import StorageBackend, get_storage
from app.services.video_service import VideoRecordStore

logger = logging.getLogger(__name__)

ProbeFn = Callable[[Path], Awaitable[MediaInfo]]
ThumbnailFn = Callable[[Path, Path, MediaInfo], Awaitable[Path]]
TranscodeFn = Callable[[Path, QualityTarget, Path], Awaitable[Path]]


class JobStage(str, enum.Enum):
    STARTED = "started"
    PROBED = "probed"
    REMOTE_UPLOADING = "remote_uploading"
    LOCAL_THUMBNAILING = "local_thumbnailing"
    REMOTE_DONE = "remote_done"
    LOCAL_TRANSCODING = "local_transcoding"
    FINALIZED = "finalized"


@dataclass(frozen=True)
class VideoJob:
    video_id: UUID
    source_path: Path
    use_remote_store: bool

    def to_task_args(self) -> dict:
        return {
            "video_id": str(self.video_id),
            "source_path": str(self.source_path),
            "use_remote_store": self.use_remote_store,
        }

    @classmethod
    def from_task_args(cls, video_id: str, source_path: str, use_remote_store: bool) -> "VideoJob":
        return cls(UUID(str(video_id)), Path(source_path), bool(use_remote_store))


@dataclass
class JobOutcome:
    video_id: UUID
    status: ProcessingStatus
    variants: dict[str, str] = field(default_factory=dict)
    failed_variants: list[str] = field(default_factory=list)
    error: str | None = None
    stage: JobStage = JobStage.STARTED


class ProcessingOrchestrator:
    def __init__(
        self,
        store: VideoRecordStore,
        remote_store: S3MediaStore,
        storage: StorageBackend,
        locks: JobLocks,
        paths: MediaPaths | None = None,
        probe: ProbeFn = probe_media,
        thumbnailer: ThumbnailFn = generate_thumbnail,
        transcoder: TranscodeFn = transcode_variant,
        default_thumbnail: str | None = None,
    ):
        self.store = store
        self.remote_store = remote_store
        self.storage = storage
        self.locks = locks
        self.paths = paths or storage.paths
        self.probe = probe
        self.thumbnailer = thumbnailer
        self.transcoder = transcoder
        self.default_thumbnail = default_thumbnail or settings.DEFAULT_THUMBNAIL

    async def run(self, job: VideoJob) -> JobOutcome:
        """Process one job. Raises JobError subclasses before any side effect."""
        async with self.locks.hold(job.video_id):
            return await self._run_locked(job)

    async def _run_locked(self, job: VideoJob) -> JobOutcome:
        video = await self.store.get(job.video_id)
        if video is None:
            raise RecordMissing(job.video_id)
        if video.status.is_terminal:
            raise RecordFinalized(job.video_id, video.processing_status)

        outcome = JobOutcome(video_id=job.video_id, status=ProcessingStatus.PROCESSING)
        self._advance(outcome, JobStage.STARTED)
        if video.status == ProcessingStatus.UPLOADING:
            await self.store.update(job.video_id, processing_status=ProcessingStatus.PROCESSING)

        try:
            media = await self.probe(job.source_path)
            self._advance(outcome, JobStage.PROBED)
            logger.info(
                "Video %s: %.1fs %dx%d %s",
                job.video_id, media.duration_seconds, media.width, media.height, media.codec,
            )
            await self.store.update(job.video_id, duration=int(media.duration_seconds))
            if job.use_remote_store and self.remote_store.is_configured():
                return await self._run_remote(job, video, media, outcome)
            if job.use_remote_store:
                logger.warning("Video %s: remote store requested but not configured, processing locally", job.video_id)
            return await self._run_local(job, video, media, outcome)
        except ProbeError as e:
            logger.error("Video %s: probe failed: %s", job.video_id, e)
            return await self._finish_failed(job, outcome, str(e))
        except asyncio.CancelledError:
            logger.warning("Video %s: processing cancelled", job.video_id)
            await self._finish_failed(job, outcome, "Processing cancelled")
            raise
        except Exception as e:
            logger.exception("Video %s: processing error", job.video_id)
            return await self._finish_failed(job, outcome, str(e) or type(e).__name__)

    def _has_custom_thumbnail(self, video: Video) -> bool:
        return bool(video.thumbnail_url) and video.thumbnail_url != self.default_thumbnail

    async def _run_remote(self, job: VideoJob, video: Video, media: MediaInfo, outcome: JobOutcome) -> JobOutcome:
        self._advance(outcome, JobStage.REMOTE_UPLOADING)
        if not self._has_custom_thumbnail(video):
            await self._remote_thumbnail(job, media)

        try:
            upload = await self.remote_store.upload_media(job.source_path, MediaKind.VIDEO)
        except RemoteStoreError as e:
            logger.error("Video %s: remote upload failed: %s", job.video_id, e)
            return await self._finish_failed(job, outcome, str(e))

        self._advance(outcome, JobStage.REMOTE_DONE)
        variants = {ORIGINAL_LABEL: upload.url}
        for label in QUALITY_LABELS:
            url = self.remote_store.build_variant_url(upload.remote_id, label)
            if url:
                variants[label] = url
        outcome.variants = variants
        return await self._finish_ready(job, outcome, processed_variants=variants, remote_ref=upload.remote_id)

    async def _remote_thumbnail(self, job: VideoJob, media: MediaInfo) -> None:
        output = self.paths.thumbnail_path(job.video_id)
        try:
            await self.thumbnailer(job.source_path, output, media)
        except ThumbnailError as e:
            logger.warning("Video %s: thumbnail generation failed, keeping default: %s", job.video_id, e)
            return

        try:
            upload = await self.remote_store.upload_media(output, MediaKind.IMAGE)
        except RemoteStoreError as e:
            logger.warning("Video %s: thumbnail upload failed, serving local copy: %s", job.video_id, e)
            await self.store.update(job.video_id, thumbnail_url=self.storage.url_for(output), thumbnail_ref=None)
            return

        self.storage.delete(output)
        await self.store.update(job.video_id, thumbnail_url=upload.url, thumbnail_ref=upload.remote_id)

    async def _run_local(self, job: VideoJob, video: Video, media: MediaInfo, outcome: JobOutcome) -> JobOutcome:
        self._advance(outcome, JobStage.LOCAL_THUMBNAILING)
        if not self._has_custom_thumbnail(video):
            output = self.paths.thumbnail_path(job.video_id)
            try:
                await self.thumbnailer(job.source_path, output, media)
            except ThumbnailError as e:
                logger.warning("Video %s: thumbnail generation failed, keeping default: %s", job.video_id, e)
            else:
                await self.store.update(job.video_id, thumbnail_url=self.storage.url_for(output), thumbnail_ref=None)

        self._advance(outcome, JobStage.LOCAL_TRANSCODING)
        targets = targets_for_height(media.height)
        if len(targets) < len(QUALITY_LABELS):
            logger.info(
                "Video %s: source is %dp, attempting %s",
                job.video_id, media.height, [t.label for t in targets] or "no ladder targets",
            )

        for target in targets:
            output = self.paths.variant_path(job.video_id, target.label)
            try:
                await self.transcoder(job.source_path, target, output)
            except TranscodeError as e:
                logger.warning("Video %s: %s", job.video_id, e)
                outcome.failed_variants.append(target.label)
                continue
            outcome.variants[target.label] = self.storage.url_for(output)
            await self.store.update(job.video_id, processed_variants=outcome.variants)

        if not outcome.variants:
            ext = job.source_path.suffix.lower() or ".mp4"
            fallback = self.paths.variant_path(job.video_id, ORIGINAL_LABEL, ext)
            await asyncio.to_thread(self.storage.copy, job.source_path, fallback)
            outcome.variants[ORIGINAL_LABEL] = self.storage.url_for(fallback)
            logger.info("Video %s: no variant encoded, serving original copy", job.video_id)

        return await self._finish_ready(job, outcome, processed_variants=outcome.variants)

    async def _finish_ready(self, job: VideoJob, outcome: JobOutcome, **fields) -> JobOutcome:
        done = await self.store.finish(
            job.video_id,
            ProcessingStatus.READY,
            processing_error=None,
            original_path=None,
            **fields,
        )
        if not done:
            return await self._finalized_elsewhere(job, outcome)
        outcome.status = ProcessingStatus.READY
        self._release_source(job)
        self._advance(outcome, JobStage.FINALIZED)
        logger.info("Video %s processed successfully: %s", job.video_id, sorted(outcome.variants))
        return outcome

    async def _finish_failed(self, job: VideoJob, outcome: JobOutcome, error: str) -> JobOutcome:
        done = await self.store.finish(
            job.video_id,
            ProcessingStatus.FAILED,
            processing_error=error,
            original_path=None,
        )
        if not done:
            return await self._finalized_elsewhere(job, outcome)
        outcome.status = ProcessingStatus.FAILED
        outcome.error = error
        self._release_source(job)
        self._advance(outcome, JobStage.FINALIZED)
        return outcome

    async def _finalized_elsewhere(self, job: VideoJob, outcome: JobOutcome) -> JobOutcome:
        # The stale sweep (or an operator) already wrote a terminal status; it wins
        video = await self.store.get(job.video_id)
        if video is not None:
            outcome.status = video.status
            outcome.error = video.processing_error
        logger.warning(
            "Video %s: already finalized as %s, discarding this job's result",
            job.video_id, outcome.status.value,
        )
        self._release_source(job)
        self._advance(outcome, JobStage.FINALIZED)
        return outcome

    def _release_source(self, job: VideoJob) -> None:
        self.storage.delete(job.source_path)

    def _advance(self, outcome: JobOutcome, stage: JobStage) -> None:
        outcome.stage = stage
        logger.debug("Video %s: stage %s", outcome.video_id, stage.value)


async def process_video_job(
    job: VideoJob,
    session_maker: async_sessionmaker[AsyncSession],
    *,
    locks: JobLocks | None = None,
    remote_store: S3MediaStore | None = None,
    storage: StorageBackend | None = None,
) -> JobOutcome:
    orchestrator = ProcessingOrchestrator(
        store=VideoRecordStore(session_maker),
        remote_store=remote_store or get_remote_store(),
        storage=storage or get_storage(),
        locks=locks or get_job_locks(),
    )
    return await orchestrator.run(job)
