"""Pydantic schemas for Video."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.video import ProcessingStatus


class VideoBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=5000)
    visibility: str = Field(default="public", pattern="^(public|unlisted|private)$")


class VideoProcessingState(BaseModel):
    id: UUID
    processing_status: ProcessingStatus
    processing_error: str | None = None
    duration: int = 0
    processed_variants: dict[str, str] = Field(default_factory=dict)

    model_config = {"from_attributes": True}


class VideoResponse(VideoBase, VideoProcessingState):
    thumbnail_url: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class VideoUploadResponse(BaseModel):
    message: str
    video: VideoResponse
