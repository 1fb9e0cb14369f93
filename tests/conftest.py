import os
import tempfile
import uuid
from datetime import datetime
from pathlib import Path

_scratch = tempfile.mkdtemp(prefix="streamline-tests-")
os.environ.setdefault("UPLOAD_DIR", os.path.join(_scratch, "uploads"))
os.environ.setdefault("MEDIA_DIR", os.path.join(_scratch, "media"))
os.environ.setdefault("PROCESSING_LOCK_BACKEND", "local")
os.environ.setdefault("MEDIA_BASE_URL", "http://testserver")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.config import Settings  # noqa: E402
from app.db.session import Base, make_session_maker  # noqa: E402
from app.models.video import ProcessingStatus, Video  # noqa: E402
from app.processing.locks import LocalJobLocks  # noqa: E402
from app.processing.paths import MediaPaths  # noqa: E402
from app.processing.probe import MediaInfo  # noqa: E402
from app.services.remote_store import S3MediaStore  # noqa: E402
from app.services.storage_service import LocalStorage  # noqa: E402
from app.services.video_service import VideoRecordStore  # noqa: E402

BASE_URL = "http://testserver"
DEFAULT_THUMBNAIL = "default-thumbnail.jpg"


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return make_session_maker(engine)


@pytest.fixture
def store(session_maker):
    return VideoRecordStore(session_maker)


@pytest.fixture
def paths(tmp_path) -> MediaPaths:
    paths = MediaPaths(uploads_dir=tmp_path / "uploads", media_dir=tmp_path / "media")
    for directory in (paths.uploads_dir, paths.videos_dir, paths.thumbnails_dir):
        directory.mkdir(parents=True, exist_ok=True)
    return paths


@pytest.fixture
def storage(paths) -> LocalStorage:
    return LocalStorage(paths=paths, base_url=BASE_URL)


@pytest.fixture
def locks() -> LocalJobLocks:
    return LocalJobLocks()


@pytest.fixture
def remote_settings() -> Settings:
    return Settings(
        S3_ENDPOINT_URL="http://minio.test:9000",
        S3_ACCESS_KEY="key",
        S3_SECRET_KEY="secret",
        S3_BUCKET_MEDIA="media-bucket",
        S3_BUCKET_VIDEOS="video-bucket",
        S3_PUBLIC_URL="https://cdn.test",
        REMOTE_UPLOAD_TIMEOUT_SECONDS=5,
    )


@pytest.fixture
def unconfigured_remote_store() -> S3MediaStore:
    return S3MediaStore(config=Settings(S3_ACCESS_KEY=None, S3_SECRET_KEY=None))


@pytest.fixture
def make_video(session_maker, paths):
    """Insert a video record and write a fake uploaded source for it."""

    async def _make(
        status: ProcessingStatus = ProcessingStatus.PROCESSING,
        thumbnail_url: str | None = DEFAULT_THUMBNAIL,
        ext: str = ".mp4",
        updated_at: datetime | None = None,
    ) -> tuple[Video, Path]:
        video_id = uuid.uuid4()
        source = paths.upload_path(video_id, ext)
        source.write_bytes(b"fake video payload")
        async with session_maker() as db:
            video = Video(
                id=video_id,
                title="Intro to fuzzing",
                description="demo",
                processing_status=status.value,
                thumbnail_url=thumbnail_url,
                original_path=str(source),
                processed_variants={},
                duration=0,
            )
            if updated_at is not None:
                video.created_at = updated_at
                video.updated_at = updated_at
            db.add(video)
            await db.commit()
        return video, source

    return _make


@pytest.fixture
def media_info():
    def _info(width: int = 1920, height: int = 1080, duration: float = 95.4, codec: str = "h264") -> MediaInfo:
        return MediaInfo(duration_seconds=duration, width=width, height=height, codec=codec)

    return _info
