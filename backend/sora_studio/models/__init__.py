"""ORM model package — registers all models with Base.metadata."""

from sora_studio.models.video import (
    CreationType,
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    Video,
    VideoStatus,
)

__all__ = [
    "Video",
    "VideoStatus",
    "CreationType",
    "TERMINAL_STATUSES",
    "VALID_TRANSITIONS",
]
