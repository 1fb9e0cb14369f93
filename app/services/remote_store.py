"""Remote media store on an S3-compatible bucket (MinIO in development).

Sources are uploaded as-is. The bucket's encoding hook publishes the quality
renditions next to each source object as ``{stem}/{label}.mp4``, so variant
URLs can be built as soon as the upload succeeds, before the renditions exist.
"""
import asyncio
import enum
import logging
import mimetypes
import uuid
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import Settings, settings
from app.processing.errors import RemoteStoreError
from app.processing.quality import ORIGINAL_LABEL, QUALITY_LABELS

logger = logging.getLogger(__name__)


class MediaKind(str, enum.Enum):
    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True)
class RemoteUpload:
    url: str
    remote_id: str
    duration: float | None = None
    format: str | None = None


class S3MediaStore:
    def __init__(self, config: Settings = settings, client=None):
        self.config = config
        self._client = client

    def is_configured(self) -> bool:
        c = self.config
        return all((c.S3_ENDPOINT_URL, c.S3_ACCESS_KEY, c.S3_SECRET_KEY, c.S3_BUCKET_MEDIA, c.S3_BUCKET_VIDEOS))

    @property
    def client(self):
        if self._client is None:
            timeout = self.config.REMOTE_UPLOAD_TIMEOUT_SECONDS
            self._client = boto3.client(
                "s3",
                endpoint_url=self.config.S3_ENDPOINT_URL,
                region_name=self.config.S3_REGION,
                aws_access_key_id=self.config.S3_ACCESS_KEY,
                aws_secret_access_key=self.config.S3_SECRET_KEY,
                config=Config(connect_timeout=10, read_timeout=timeout, retries={"max_attempts": 2}),
            )
        return self._client

    def _bucket(self, kind: MediaKind) -> str:
        return self.config.S3_BUCKET_VIDEOS if kind == MediaKind.VIDEO else self.config.S3_BUCKET_MEDIA

    def _folder(self, kind: MediaKind) -> str:
        return "videos" if kind == MediaKind.VIDEO else "thumbnails"

    def public_url(self, bucket: str, key: str) -> str:
        base = self.config.S3_PUBLIC_URL or f"{(self.config.S3_ENDPOINT_URL or '').rstrip('/')}/{bucket}"
        return f"{base.rstrip('/')}/{key}"

    async def upload_media(self, path: str | Path, kind: MediaKind) -> RemoteUpload:
        if not self.is_configured():
            raise RemoteStoreError("Remote media store is not configured")

        source = Path(path)
        kind = MediaKind(kind)
        bucket = self._bucket(kind)
        key = f"{self._folder(kind)}/{uuid.uuid4().hex}{source.suffix.lower()}"
        content_type = mimetypes.guess_type(source.name)[0] or "application/octet-stream"
        timeout = self.config.REMOTE_UPLOAD_TIMEOUT_SECONDS

        try:
            await asyncio.wait_for(
                asyncio.to_thread(
                    self.client.upload_file,
                    str(source),
                    bucket,
                    key,
                    ExtraArgs={"ContentType": content_type},
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            raise RemoteStoreError(f"Upload of {source.name} timed out after {timeout}s") from e
        except (BotoCoreError, ClientError, OSError) as e:
            raise RemoteStoreError(f"Upload of {source.name} failed: {e}") from e

        logger.info("Uploaded %s to %s/%s", source.name, bucket, key)
        return RemoteUpload(
            url=self.public_url(bucket, key),
            remote_id=key,
            format=source.suffix.lstrip(".").lower() or None,
        )

    async def delete_media(self, remote_id: str | None, kind: MediaKind) -> None:
        """Best-effort delete. Never raises."""
        if not remote_id or not self.is_configured():
            return
        kind = MediaKind(kind)
        bucket = self._bucket(kind)
        keys = [remote_id]
        if kind == MediaKind.VIDEO:
            keys += [self._rendition_key(remote_id, label) for label in QUALITY_LABELS]
        try:
            await asyncio.wait_for(
                asyncio.to_thread(
                    self.client.delete_objects,
                    Bucket=bucket,
                    Delete={"Objects": [{"Key": k} for k in keys], "Quiet": True},
                ),
                timeout=self.config.REMOTE_UPLOAD_TIMEOUT_SECONDS,
            )
        except (asyncio.TimeoutError, BotoCoreError, ClientError) as e:
            logger.error("Error deleting %s from remote store: %s", remote_id, e)

    def _rendition_key(self, remote_id: str, label: str) -> str:
        key = PurePosixPath(remote_id)
        return str(key.parent / key.stem / f"{label}.mp4")

    def build_variant_url(self, remote_id: str | None, label: str = ORIGINAL_LABEL) -> str | None:
        if not remote_id:
            return None
        bucket = self.config.S3_BUCKET_VIDEOS
        if label == ORIGINAL_LABEL:
            return self.public_url(bucket, remote_id)
        if label not in QUALITY_LABELS:
            return None
        return self.public_url(bucket, self._rendition_key(remote_id, label))


_remote_store: S3MediaStore | None = None


def get_remote_store() -> S3MediaStore:
    global _remote_store
    if _remote_store is None:
        _remote_store = S3MediaStore()
    return _remote_store
