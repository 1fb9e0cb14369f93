"""Fixed quality ladder for locally transcoded variants."""
from dataclasses import dataclass

ORIGINAL_LABEL = "original"


@dataclass(frozen=True)
class QualityTarget:
    label: str
    max_width: int
    max_height: int
    video_bitrate: str


QUALITY_LADDER: tuple[QualityTarget, ...] = (
    QualityTarget("360p", 640, 360, "500k"),
    QualityTarget("480p", 854, 480, "1000k"),
    QualityTarget("720p", 1280, 720, "2500k"),
    QualityTarget("1080p", 1920, 1080, "5000k"),
)

QUALITY_LABELS = tuple(q.label for q in QUALITY_LADDER)


def targets_for_height(source_height: int) -> list[QualityTarget]:
    """Ladder entries that do not exceed the source height. Never transcode upward."""
    return [q for q in QUALITY_LADDER if q.max_height <= source_height]


def get_target(label: str) -> QualityTarget | None:
    return next((q for q in QUALITY_LADDER if q.label == label), None)
