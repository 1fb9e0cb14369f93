"""Video upload, read and delete endpoints. Processing happens in the background."""
import logging
import uuid

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_db, get_remote_store_dep, get_storage_dep, get_video_or_404
from app.core.config import settings
from app.models.video import ProcessingStatus, Video
from app.processing.errors import RemoteStoreError
from app.schemas.video import VideoBase, VideoProcessingState, VideoResponse, VideoUploadResponse
from app.services.processing_service import submit_processing_job
from app.services.remote_store import MediaKind, S3MediaStore
from app.services.storage_service import FileTooLarge, LocalStorage
from app.services.video_service import create_video, delete_video

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/videos", tags=["videos"])

# Allowed MIME types
VIDEO_TYPES = {"video/mp4", "video/quicktime", "video/webm", "video/x-matroska", "video/x-msvideo"}
THUMBNAIL_TYPES = {"image/jpeg", "image/png", "image/webp"}

EXT_MAP = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "video/mp4": ".mp4",
    "video/quicktime": ".mov",
    "video/webm": ".webm",
    "video/x-matroska": ".mkv",
    "video/x-msvideo": ".avi",
}


def _validate_file(file: UploadFile, allowed: set[str]) -> str:
    content_type = file.content_type or ""
    if content_type not in allowed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid file type: {content_type}. Allowed: {sorted(allowed)}",
        )
    return EXT_MAP[content_type]


async def _save_upload(storage: LocalStorage, file: UploadFile, dest, max_size_mb: int) -> None:
    try:
        await run_in_threadpool(storage.save_stream, file.file, dest, max_size_mb * 1024 * 1024)
    except FileTooLarge:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File too large. Max {max_size_mb}MB",
        )


@router.post("", response_model=VideoUploadResponse, status_code=status.HTTP_201_CREATED)
async def upload_video(
    title: str = Form(...),
    description: str | None = Form(None),
    visibility: str = Form("public"),
    video: UploadFile = File(...),
    thumbnail: UploadFile | None = File(None),
    db: AsyncSession = Depends(get_db),
    storage: LocalStorage = Depends(get_storage_dep),
    remote_store: S3MediaStore = Depends(get_remote_store_dep),
):
    """Store the upload, create the record in ``processing`` and queue the pipeline."""
    try:
        meta = VideoBase(title=title, description=description, visibility=visibility)
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=e.errors(include_url=False))

    ext = _validate_file(video, VIDEO_TYPES)
    thumb_ext = _validate_file(thumbnail, THUMBNAIL_TYPES) if thumbnail and thumbnail.filename else None

    video_id = uuid.uuid4()
    source_path = storage.paths.upload_path(video_id, ext)
    await _save_upload(storage, video, source_path, settings.MAX_VIDEO_UPLOAD_MB)

    use_remote = settings.USE_REMOTE_MEDIA_STORE and remote_store.is_configured()
    thumbnail_url = settings.DEFAULT_THUMBNAIL
    thumbnail_ref = None
    try:
        if thumb_ext:
            thumb_path = storage.paths.custom_thumbnail_path(video_id, thumb_ext)
            await _save_upload(storage, thumbnail, thumb_path, settings.MAX_THUMBNAIL_UPLOAD_MB)
            if use_remote:
                try:
                    result = await remote_store.upload_media(thumb_path, MediaKind.IMAGE)
                    thumbnail_url, thumbnail_ref = result.url, result.remote_id
                except RemoteStoreError as e:
                    logger.warning("Custom thumbnail upload failed, using default: %s", e)
                finally:
                    storage.delete(thumb_path)
            else:
                thumbnail_url = storage.url_for(thumb_path)

        record = await create_video(
            db,
            video_id=video_id,
            title=meta.title,
            description=meta.description,
            visibility=meta.visibility,
            original_path=str(source_path),
            thumbnail_url=thumbnail_url,
            thumbnail_ref=thumbnail_ref,
        )
        await db.commit()
    except BaseException:
        storage.delete(source_path)
        if thumb_ext:
            storage.delete(storage.paths.custom_thumbnail_path(video_id, thumb_ext))
        raise

    submit_processing_job(video_id, source_path, settings.USE_REMOTE_MEDIA_STORE)
    return VideoUploadResponse(
        message="Video uploaded successfully and is being processed",
        video=VideoResponse.model_validate(record),
    )


@router.get("/{video_id}", response_model=VideoResponse)
async def get_video(video: Video = Depends(get_video_or_404)):
    return video


@router.get("/{video_id}/status", response_model=VideoProcessingState)
async def get_processing_status(video: Video = Depends(get_video_or_404)):
    """Poll this until ``processing_status`` is ready or failed."""
    return video


@router.delete("/{video_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_video_endpoint(
    video: Video = Depends(get_video_or_404),
    db: AsyncSession = Depends(get_db),
    storage: LocalStorage = Depends(get_storage_dep),
    remote_store: S3MediaStore = Depends(get_remote_store_dep),
):
    if not video.status.is_terminal:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Video is still processing")

    storage.delete_tree(storage.paths.variant_dir(video.id))
    local_thumb = storage.path_for_url(video.thumbnail_url or "")
    if local_thumb:
        storage.delete(local_thumb)
    await remote_store.delete_media(video.remote_ref, MediaKind.VIDEO)
    await remote_store.delete_media(video.thumbnail_ref, MediaKind.IMAGE)

    await delete_video(db, video)
    await db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
