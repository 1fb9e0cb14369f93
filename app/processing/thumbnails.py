"""Thumbnail generator: one still frame at a fixed share of the duration."""
import logging
from pathlib import Path

from app.core.config import settings
from app.processing.errors import ThumbnailError
from app.processing.ffmpeg import CommandTimeout, run_command, summarize_stderr
from app.processing.probe import MediaInfo

logger = logging.getLogger(__name__)


def thumbnail_offset(duration_seconds: float, percent: float | None = None) -> float:
    if percent is None:
        percent = settings.THUMBNAIL_OFFSET_PERCENT
    return round(max(duration_seconds, 0.0) * percent / 100.0, 3)


def build_thumbnail_command(source: Path, output: Path, offset: float) -> list[str]:
    width, height = settings.THUMBNAIL_SIZE.lower().split("x")
    return [
        settings.FFMPEG_PATH,
        "-y",
        "-ss", f"{offset:.3f}",
        "-i", str(source),
        "-frames:v", "1",
        "-vf", f"scale={width}:{height}",
        "-q:v", "2",
        str(output),
    ]


async def generate_thumbnail(source_path: str | Path, output_path: str | Path, media: MediaInfo) -> Path:
    """Write a JPEG still of ``source_path`` to ``output_path``.

    Does not check for user-supplied thumbnails; callers decide whether one
    should be generated at all.
    """
    source = Path(source_path)
    output = Path(output_path)
    if not media.has_video:
        raise ThumbnailError("Source has no video frames")

    output.parent.mkdir(parents=True, exist_ok=True)
    offset = thumbnail_offset(media.duration_seconds)
    try:
        result = await run_command(build_thumbnail_command(source, output, offset))
    except OSError as e:
        raise ThumbnailError(f"ffmpeg not available: {e}") from e
    except CommandTimeout as e:
        raise ThumbnailError(str(e)) from e

    if not result.ok:
        output.unlink(missing_ok=True)
        raise ThumbnailError(f"ffmpeg failed: {summarize_stderr(result.stderr)}")
    if not output.is_file() or output.stat().st_size == 0:
        output.unlink(missing_ok=True)
        raise ThumbnailError("No frame decoded")

    logger.debug("Thumbnail for %s written at %.3fs", source.name, offset)
    return output
