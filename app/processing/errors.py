"""Errors raised by the ingestion pipeline.

Media errors describe a failed external step (ffprobe, ffmpeg, remote store).
Job errors describe why a job refused to run at all; they are raised before
the job touches the record or the source file.
"""
from uuid import UUID


class MediaProcessingError(Exception):
    """Base class for failures of a single pipeline step."""


class ProbeError(MediaProcessingError):
    """Source is unreadable or not a recognized media container. Fatal."""


class ThumbnailError(MediaProcessingError):
    """Still frame could not be extracted. Never fatal."""


class TranscodeError(MediaProcessingError):
    """One quality variant failed to encode. Fatal only if no fallback exists."""

    def __init__(self, label: str, message: str):
        self.label = label
        super().__init__(f"{label}: {message}")


class RemoteStoreError(MediaProcessingError):
    """Upload to the remote media store failed or timed out."""


class JobError(Exception):
    """Base class for jobs that abort before any side effect."""

    def __init__(self, video_id: UUID | str, message: str):
        self.video_id = video_id
        super().__init__(f"Video {video_id}: {message}")


class RecordMissing(JobError):
    def __init__(self, video_id: UUID | str):
        super().__init__(video_id, "record not found")


class RecordFinalized(JobError):
    def __init__(self, video_id: UUID | str, status: str):
        self.status = status
        super().__init__(video_id, f"already finalized as {status}")


class JobAlreadyRunning(JobError):
    def __init__(self, video_id: UUID | str):
        super().__init__(video_id, "another processing job holds the lock")
