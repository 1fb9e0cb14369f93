"""Local storage for uploaded sources and processed media.

Raw uploads live in UPLOAD_DIR and are never served. Processed variants and
thumbnails live under MEDIA_DIR and are served at {MEDIA_BASE_URL}/media/.
"""
import logging
import shutil
from pathlib import Path
from typing import BinaryIO, Protocol

from app.core.config import settings
from app.processing.paths import MediaPaths, media_paths

logger = logging.getLogger(__name__)

MEDIA_URL_PREFIX = "/media/"


class StorageBackend(Protocol):
    """Protocol for local media storage."""

    paths: MediaPaths

    def save_stream(self, stream: BinaryIO, dest: Path, max_bytes: int | None = None) -> int:
        ...

    def copy(self, src: Path, dest: Path) -> Path:
        ...

    def url_for(self, path: Path) -> str:
        ...

    def path_for_url(self, url: str) -> Path | None:
        ...

    def delete(self, path: str | Path | None) -> bool:
        ...


class FileTooLarge(Exception):
    pass


class LocalStorage:
    """Store files on local disk under the configured upload and media roots."""

    def __init__(self, paths: MediaPaths | None = None, base_url: str | None = None):
        self.paths = paths or media_paths()
        self.base_url = (base_url or settings.MEDIA_BASE_URL).rstrip("/")

    def save_stream(self, stream: BinaryIO, dest: Path, max_bytes: int | None = None) -> int:
        """Copy ``stream`` to ``dest`` in chunks. Returns bytes written."""
        dest.parent.mkdir(parents=True, exist_ok=True)
        written = 0
        try:
            with dest.open("wb") as out:
                while chunk := stream.read(1024 * 1024):
                    written += len(chunk)
                    if max_bytes is not None and written > max_bytes:
                        raise FileTooLarge(f"Upload exceeds {max_bytes} bytes")
                    out.write(chunk)
        except BaseException:
            dest.unlink(missing_ok=True)
            raise
        return written

    def copy(self, src: Path, dest: Path) -> Path:
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dest)
        return dest

    def url_for(self, path: Path) -> str:
        rel = self.paths.relative_to_media(path)
        return f"{self.base_url}{MEDIA_URL_PREFIX}{rel}"

    def path_for_url(self, url: str) -> Path | None:
        """Map a local media URL back to its file. Remote URLs give None."""
        if not url or not url.startswith(self.base_url + MEDIA_URL_PREFIX):
            return None
        rel = url[len(self.base_url + MEDIA_URL_PREFIX):]
        candidate = (self.paths.media_dir / rel).resolve()
        if not candidate.is_relative_to(self.paths.media_dir.resolve()):
            return None
        return candidate

    def delete(self, path: str | Path | None) -> bool:
        """Delete a file. Returns True if deleted."""
        if not path:
            return False
        try:
            Path(path).unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Could not delete %s: %s", path, e)
            return False

    def delete_tree(self, path: Path) -> None:
        shutil.rmtree(path, ignore_errors=True)


# Singleton - swap implementation here when moving media to a bucket
_storage: LocalStorage | None = None


def get_storage() -> LocalStorage:
    global _storage
    if _storage is None:
        _storage = LocalStorage()
    return _storage
