"""Video model and its processing lifecycle."""
import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, Uuid

from app.db.session import Base


class ProcessingStatus(str, enum.Enum):
    UPLOADING = "uploading"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProcessingStatus.READY, ProcessingStatus.FAILED)


class Video(Base):
    __tablename__ = "videos"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    visibility = Column(String(20), nullable=False, default="public")  # public | unlisted | private

    # Written only by the processing pipeline (and the upload handler at creation)
    processing_status = Column(String(20), nullable=False, default=ProcessingStatus.UPLOADING.value, index=True)
    processing_error = Column(Text, nullable=True)
    duration = Column(Integer, nullable=False, default=0)  # seconds
    thumbnail_url = Column(Text, nullable=True)
    thumbnail_ref = Column(Text, nullable=True)  # remote object key when hosted remotely
    original_path = Column(Text, nullable=True)
    processed_variants = Column(JSON, nullable=False, default=dict)  # label -> playable URL
    remote_ref = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def status(self) -> ProcessingStatus:
        return ProcessingStatus(self.processing_status)
