from __future__ import annotations
"""Pydantic v2 schemas for the Video model and the video API payloads."""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field


class GenerateVideoRequest(BaseModel):
    """JSON body for a standard generation request.

    Multipart requests carry the same fields plus an `input_reference` file.
    """

    model_config = {"coerce_numbers_to_str": True}

    prompt: Optional[str] = None
    model: Optional[str] = None
    seconds: Optional[str] = None
    size: Optional[str] = None


class RemixVideoRequest(BaseModel):
    """Schema for remixing an existing provider video.

    A remix keeps the source video's duration and size, so only the prompt
    and model are read.
    """

    prompt: Optional[str] = None
    input_video_id: Optional[str] = None
    model: Optional[str] = None


class VideoIdRequest(BaseModel):
    """Body carrying a single id (`videoId`, as sent by the browser client)."""

    videoId: Optional[str] = None


class VideoRead(BaseModel):
    """Schema for reading a video record."""

    id: str
    prompt: str
    video_url: str = ""
    video_id: str | None = None
    model: str | None = None
    status: str
    error_message: str | None = None
    creation_type: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True, "protected_namespaces": ()}


class VideoEnvelope(BaseModel):
    video: VideoRead
    message: str | None = None


class VideoList(BaseModel):
    videos: list[VideoRead]


class VideoStats(BaseModel):
    total_videos: int = 0
    completed_videos: int = 0
    failed_videos: int = 0
    in_progress_videos: int = 0
    standard_videos: int = 0
    remix_videos: int = 0


class DeleteVideoResponse(BaseModel):
    success: bool = True
    message: str
    deletedVideoId: str


class StatusCheckResponse(BaseModel):
    """Result of a manual provider status check."""

    success: bool = True
    status: str
    message: str
    progress: Any = None
    error: str | None = None


class ProgressResponse(BaseModel):
    """Current persisted state, refreshed from the provider while in progress."""

    status: str
    progress: Any = None
    error_message: str | None = None
    video_url: str | None = None
    provider_status: str | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
