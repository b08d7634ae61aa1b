from __future__ import annotations
"""Video ORM model — one row per generation job submitted to the provider."""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, String, Text, func
from sqlalchemy.dialects.mysql import LONGTEXT
from sqlalchemy.orm import Mapped, mapped_column

from sora_studio.database import Base


class VideoStatus(str, enum.Enum):
    """Video job lifecycle statuses."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class CreationType(str, enum.Enum):
    """How the job was created."""

    STANDARD = "standard"
    REMIX = "remix"


# Status only moves forward; terminal states have no exits
VALID_TRANSITIONS: dict[VideoStatus, set[VideoStatus]] = {
    VideoStatus.IN_PROGRESS: {VideoStatus.COMPLETED, VideoStatus.FAILED},
    VideoStatus.COMPLETED: set(),
    VideoStatus.FAILED: set(),
}

TERMINAL_STATUSES: frozenset[str] = frozenset(
    s.value for s, targets in VALID_TRANSITIONS.items() if not targets
)

# Legacy rows may hold a base64 data URL, which overflows MySQL TEXT
_URL_TYPE = Text().with_variant(LONGTEXT(), "mysql")


class Video(Base):
    """A video generation job and, once finished, the location of its output."""

    __tablename__ = "videos"
    __table_args__ = (
        Index("ix_videos_created_at", "created_at"),
        Index("ix_videos_status_created_at", "status", "created_at"),
        Index("ix_videos_creation_type", "creation_type"),
        {
            "mysql_charset": "utf8mb4",
            "mysql_collate": "utf8mb4_unicode_ci",
        },
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    prompt: Mapped[str] = mapped_column(Text, nullable=False)
    video_url: Mapped[str] = mapped_column(_URL_TYPE, nullable=False, default="")

    # Provider's external job identifier
    video_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, unique=True, index=True
    )
    model: Mapped[str] = mapped_column(String(100), nullable=False, default="sora-2")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=VideoStatus.IN_PROGRESS.value, index=True
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    creation_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=CreationType.STANDARD.value
    )

    created_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True, server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True, server_default=func.now(), onupdate=func.now()
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __repr__(self) -> str:
        return f"<Video id={self.id} video_id={self.video_id} status={self.status}>"
