"""Media probe: duration, dimensions and codec via ffprobe."""
import json
from dataclasses import dataclass
from pathlib import Path

from app.core.config import settings
from app.processing.errors import ProbeError
from app.processing.ffmpeg import CommandTimeout, run_command, summarize_stderr


@dataclass(frozen=True)
class MediaInfo:
    duration_seconds: float
    width: int
    height: int
    codec: str

    @property
    def has_video(self) -> bool:
        return self.width > 0 and self.height > 0


def _to_float(value) -> float | None:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    return result if result >= 0 else None


def parse_probe_output(raw: str) -> MediaInfo:
    """Build MediaInfo from ``ffprobe -print_format json`` output."""
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ProbeError(f"Unreadable ffprobe output: {e}") from e

    streams = data.get("streams") or []
    fmt = data.get("format") or {}
    if not streams and not fmt:
        raise ProbeError("Not a recognized media container")

    video = next((s for s in streams if s.get("codec_type") == "video"), None)

    duration = _to_float(fmt.get("duration"))
    if duration is None:
        # Some containers only carry duration per stream
        duration = next(
            (d for d in (_to_float(s.get("duration")) for s in streams) if d is not None),
            0.0,
        )

    return MediaInfo(
        duration_seconds=duration,
        width=int(video.get("width") or 0) if video else 0,
        height=int(video.get("height") or 0) if video else 0,
        codec=video.get("codec_name", "unknown") if video else "unknown",
    )


async def probe_media(source_path: str | Path) -> MediaInfo:
    source = Path(source_path)
    if not source.is_file():
        raise ProbeError(f"Source file not found: {source}")

    args = [
        settings.FFPROBE_PATH,
        "-v", "error",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(source),
    ]
    try:
        result = await run_command(args)
    except OSError as e:
        raise ProbeError(f"ffprobe not available: {e}") from e
    except CommandTimeout as e:
        raise ProbeError(str(e)) from e

    if not result.ok:
        raise ProbeError(f"ffprobe failed: {summarize_stderr(result.stderr)}")
    return parse_probe_output(result.stdout)
