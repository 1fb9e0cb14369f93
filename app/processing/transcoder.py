"""Variant transcoder: one MP4 per quality target."""
import logging
from pathlib import Path

from app.core.config import settings
from app.processing.errors import TranscodeError
from app.processing.ffmpeg import CommandTimeout, run_command, summarize_stderr
from app.processing.quality import QualityTarget

logger = logging.getLogger(__name__)


def scale_filter(quality: QualityTarget) -> str:
    # Fit within the box, keep aspect, never exceed the source size, even dimensions for x264
    return (
        f"scale='min({quality.max_width},iw)':'min({quality.max_height},ih)'"
        ":force_original_aspect_ratio=decrease:force_divisible_by=2"
    )


def build_transcode_command(source: Path, quality: QualityTarget, output: Path) -> list[str]:
    return [
        settings.FFMPEG_PATH,
        "-y",
        "-i", str(source),
        "-c:v", "libx264",
        "-preset", settings.TRANSCODE_PRESET,
        "-b:v", quality.video_bitrate,
        "-vf", scale_filter(quality),
        "-pix_fmt", "yuv420p",
        "-c:a", "aac",
        "-b:a", settings.AUDIO_BITRATE,
        "-movflags", "+faststart",
        "-f", "mp4",
        str(output),
    ]


async def transcode_variant(source_path: str | Path, quality: QualityTarget, output_path: str | Path) -> Path:
    """Encode ``source_path`` into ``output_path`` for one quality target.

    Output goes to a ``.part`` file first so a failed encode never leaves a
    truncated variant behind.
    """
    source = Path(source_path)
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    partial = output.with_name(output.name + ".part")

    try:
        result = await run_command(build_transcode_command(source, quality, partial))
    except OSError as e:
        partial.unlink(missing_ok=True)
        raise TranscodeError(quality.label, f"ffmpeg not available: {e}") from e
    except CommandTimeout as e:
        partial.unlink(missing_ok=True)
        raise TranscodeError(quality.label, str(e)) from e
    except BaseException:
        partial.unlink(missing_ok=True)
        raise

    if not result.ok:
        partial.unlink(missing_ok=True)
        raise TranscodeError(quality.label, summarize_stderr(result.stderr))
    if not partial.is_file():
        raise TranscodeError(quality.label, "encoder produced no output")

    partial.replace(output)
    logger.info("Encoded %s -> %s", quality.label, output.name)
    return output
