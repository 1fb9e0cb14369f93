"""Filesystem layout for uploads and processed media.

Every per-job path is derived from the video id, so concurrent jobs never
write to the same file.
"""
from dataclasses import dataclass
from pathlib import Path
from uuid import UUID

from app.core.config import Settings, settings


@dataclass(frozen=True)
class MediaPaths:
    uploads_dir: Path
    media_dir: Path

    @property
    def videos_dir(self) -> Path:
        return self.media_dir / "videos"

    @property
    def thumbnails_dir(self) -> Path:
        return self.media_dir / "thumbnails"

    def upload_path(self, video_id: UUID, ext: str) -> Path:
        return self.uploads_dir / f"{video_id}{ext}"

    def custom_thumbnail_path(self, video_id: UUID, ext: str) -> Path:
        return self.thumbnails_dir / f"{video_id}-custom{ext}"

    def thumbnail_path(self, video_id: UUID) -> Path:
        return self.thumbnails_dir / f"{video_id}.jpg"

    def variant_dir(self, video_id: UUID) -> Path:
        return self.videos_dir / str(video_id)

    def variant_path(self, video_id: UUID, label: str, ext: str = ".mp4") -> Path:
        return self.variant_dir(video_id) / f"{label}{ext}"

    def relative_to_media(self, path: Path) -> str:
        return path.resolve().relative_to(self.media_dir.resolve()).as_posix()


def media_paths(config: Settings = settings) -> MediaPaths:
    return MediaPaths(
        uploads_dir=Path(config.UPLOAD_DIR).resolve(),
        media_dir=Path(config.MEDIA_DIR).resolve(),
    )


def init_media_dirs(config: Settings = settings) -> MediaPaths:
    """Create the upload and media directories. Call once at process start."""
    paths = media_paths(config)
    for directory in (paths.uploads_dir, paths.videos_dir, paths.thumbnails_dir):
        directory.mkdir(parents=True, exist_ok=True)
    return paths
