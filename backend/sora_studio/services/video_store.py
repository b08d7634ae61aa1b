from __future__ import annotations
"""Video record queries — every call runs through the database retry wrapper.

Each operation opens its own session so a retried attempt never reuses a
session left in a broken state by the previous one.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import case, delete, func, select, update

from sora_studio.models.video import CreationType, Video, VideoStatus
from sora_studio.services.db_retry import execute_with_retry

logger = logging.getLogger(__name__)


async def list_videos(limit: int = 50, offset: int = 0) -> list[Video]:
    """Newest videos first, paginated."""
    from sora_studio.database import async_session_factory

    async def _op() -> list[Video]:
        async with async_session_factory() as session:
            result = await session.execute(
                select(Video)
                .order_by(Video.created_at.desc(), Video.id)
                .limit(limit)
                .offset(offset)
            )
            return list(result.scalars().all())

    return await execute_with_retry(_op, operation_name="list_videos")


async def get_video(record_id: str) -> Video | None:
    """Fetch a single record by its primary key."""
    from sora_studio.database import async_session_factory

    async def _op() -> Video | None:
        async with async_session_factory() as session:
            return await session.get(Video, record_id)

    return await execute_with_retry(_op, operation_name="get_video")


async def get_video_by_job_id(job_id: str) -> Video | None:
    """Fetch a record by the provider's job id."""
    from sora_studio.database import async_session_factory

    async def _op() -> Video | None:
        async with async_session_factory() as session:
            result = await session.execute(select(Video).where(Video.video_id == job_id))
            return result.scalars().first()

    return await execute_with_retry(_op, operation_name="get_video_by_job_id")


async def insert_video(
    *,
    prompt: str,
    video_id: str,
    model: str,
    status: str = VideoStatus.IN_PROGRESS.value,
    video_url: str = "",
    error_message: str | None = None,
    creation_type: str = CreationType.STANDARD.value,
    created_at: datetime | None = None,
) -> Video:
    """Insert a new record and return it with server defaults loaded."""
    from sora_studio.database import async_session_factory

    if status == VideoStatus.COMPLETED.value and not video_url:
        raise ValueError("A completed video requires a video_url")

    async def _op() -> Video:
        async with async_session_factory() as session:
            video = Video(
                prompt=prompt,
                video_id=video_id,
                model=model,
                status=status,
                video_url=video_url,
                error_message=error_message,
                creation_type=creation_type,
            )
            if created_at is not None:
                video.created_at = created_at
            session.add(video)
            await session.commit()
            await session.refresh(video)
            return video

    return await execute_with_retry(_op, operation_name="insert_video")


async def finalize_video(record_id: str, status: str, **fields: Any) -> bool:
    """Move an in-progress record to a terminal status.

    The update only matches rows still in progress, so a record that already
    completed or failed is left untouched. Returns True when a row changed.
    """
    from sora_studio.database import async_session_factory

    target = VideoStatus(status)
    if target not in (VideoStatus.COMPLETED, VideoStatus.FAILED):
        raise ValueError(f"finalize_video needs a terminal status, got {status!r}")
    if target is VideoStatus.COMPLETED and not fields.get("video_url"):
        raise ValueError("A completed video requires a video_url")

    values = {"status": target.value, **fields}

    async def _op() -> int:
        async with async_session_factory() as session:
            result = await session.execute(
                update(Video)
                .where(
                    Video.id == record_id,
                    Video.status == VideoStatus.IN_PROGRESS.value,
                )
                .values(**values)
            )
            await session.commit()
            return result.rowcount

    changed = await execute_with_retry(_op, operation_name="finalize_video")
    if not changed:
        logger.warning(
            "Record %s not finalized as %s (missing or no longer in progress)",
            record_id, target.value,
        )
    return bool(changed)


async def delete_video(record_id: str) -> bool:
    """Delete a record. Returns False when it did not exist."""
    from sora_studio.database import async_session_factory

    async def _op() -> int:
        async with async_session_factory() as session:
            result = await session.execute(delete(Video).where(Video.id == record_id))
            await session.commit()
            return result.rowcount

    return bool(await execute_with_retry(_op, operation_name="delete_video"))


async def get_video_stats() -> dict[str, int]:
    """Counts by status and by creation type."""
    from sora_studio.database import async_session_factory

    def _count_where(condition):
        return func.coalesce(func.sum(case((condition, 1), else_=0)), 0)

    async def _op() -> dict[str, int]:
        async with async_session_factory() as session:
            row = (await session.execute(
                select(
                    func.count(Video.id),
                    _count_where(Video.status == VideoStatus.COMPLETED.value),
                    _count_where(Video.status == VideoStatus.FAILED.value),
                    _count_where(Video.status == VideoStatus.IN_PROGRESS.value),
                    _count_where(Video.creation_type == CreationType.STANDARD.value),
                    _count_where(Video.creation_type == CreationType.REMIX.value),
                )
            )).one()
        keys = (
            "total_videos",
            "completed_videos",
            "failed_videos",
            "in_progress_videos",
            "standard_videos",
            "remix_videos",
        )
        return {key: int(value or 0) for key, value in zip(keys, row)}

    return await execute_with_retry(_op, operation_name="get_video_stats")


async def delete_old_failed_videos(days_old: int = 7) -> int:
    """Delete failed records created more than `days_old` days ago."""
    from sora_studio.database import async_session_factory

    cutoff = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=days_old)

    async def _op() -> int:
        async with async_session_factory() as session:
            result = await session.execute(
                delete(Video).where(
                    Video.status == VideoStatus.FAILED.value,
                    Video.created_at < cutoff,
                )
            )
            await session.commit()
            return result.rowcount

    deleted = await execute_with_retry(_op, operation_name="delete_old_failed_videos")
    logger.info("Cleaned up %d failed video(s) older than %d days", deleted, days_old)
    return deleted
