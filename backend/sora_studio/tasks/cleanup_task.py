from __future__ import annotations
"""Celery Beat task for the maintenance sweep — runs daily at 3 AM.

Deletes failed video records older than FAILED_VIDEO_RETENTION_DAYS.
Completed and in-progress records are never touched.
"""

import logging

from celery import shared_task

from sora_studio.config import get_settings
from sora_studio.tasks import run_async

logger = logging.getLogger(__name__)
settings = get_settings()


@shared_task(name="sora_studio.tasks.cleanup_task.cleanup_old_failed_videos")
def cleanup_old_failed_videos(days_old: int | None = None) -> dict:
    """Delete failed records older than `days_old` days (default from settings)."""
    from sora_studio.services.video_store import delete_old_failed_videos

    days = settings.FAILED_VIDEO_RETENTION_DAYS if days_old is None else days_old
    deleted = run_async(delete_old_failed_videos(days))

    logger.info("Cleanup complete: %d failed video(s) removed", deleted)
    return {"deleted": deleted, "days_old": days}
