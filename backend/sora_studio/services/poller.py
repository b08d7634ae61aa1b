from __future__ import annotations
"""Job polling — bridges an external provider job to the local video record.

States:
  in_progress → completed        (provider succeeded, video stored)
  in_progress → failed           (provider failed, or download/upload failed)
  in_progress → failed (timeout) (attempts exhausted, no message)

A record deleted mid-poll, or finalized first by a progress refresh, keeps
its state and the poll discards its own upload.

The loop is fire-and-forget: nothing propagates to a caller, the outcome is
only visible on the persisted record. Every terminal write is conditional on
the record still being in progress.
"""

import asyncio
import logging
from typing import Any

import httpx

from sora_studio.config import get_settings
from sora_studio.exceptions import ProviderError, StorageError
from sora_studio.models.video import VideoStatus
from sora_studio.services import video_store
from sora_studio.services.providers import (
    VideoProvider,
    format_job_error,
    get_provider,
    is_failed,
    is_succeeded,
)
from sora_studio.services.storage import delete_video_from_storage, upload_video_to_storage

logger = logging.getLogger(__name__)
settings = get_settings()

# Result of a poll whose record was deleted before it finished
RECORD_DELETED = "deleted"


async def store_completed_video(
    provider: VideoProvider,
    job_id: str,
    record_id: str,
    status_data: dict[str, Any],
) -> str | None:
    """Download a finished job, upload it to storage and mark the record completed.

    Returns the public URL, or None when the record was no longer in progress
    (deleted, or finalized by another poll); the uploaded copy is then removed.
    Provider and storage failures propagate so each caller can decide how to
    record them.
    """
    content = await provider.download_content(job_id, status_data)
    video_url = await upload_video_to_storage(content, job_id)
    logger.info("Video for job %s stored at %s", job_id, video_url)

    if await video_store.finalize_video(
        record_id, VideoStatus.COMPLETED.value, video_url=video_url
    ):
        logger.info("Record %s completed (job %s)", record_id, job_id)
        return video_url

    try:
        await delete_video_from_storage(video_url)
    except StorageError as exc:
        logger.warning("Could not remove unused upload %s: %s", video_url, exc)
    return None


async def _mark_failed(record_id: str, error_message: str | None = None) -> None:
    """Record a failure; never raises, the poll loop has no caller to report to."""
    fields = {"error_message": error_message} if error_message else {}
    try:
        await video_store.finalize_video(record_id, VideoStatus.FAILED.value, **fields)
        logger.info(
            "Record %s marked failed%s",
            record_id, f": {error_message}" if error_message else "",
        )
    except Exception:
        logger.exception("Failed to mark record %s as failed", record_id)


async def _finish(
    provider: VideoProvider, job_id: str, record_id: str, status_data: dict[str, Any]
) -> str:
    try:
        video_url = await store_completed_video(provider, job_id, record_id, status_data)
    except StorageError as exc:
        logger.error("Upload failed for job %s: %s", job_id, exc)
        message = str(exc)
        if not message.startswith("Failed to upload video"):
            message = f"Failed to upload video: {message}"
        await _mark_failed(record_id, message)
        return VideoStatus.FAILED.value
    except ProviderError as exc:
        logger.error("Download failed for job %s: %s", job_id, exc.message)
        await _mark_failed(record_id, exc.message)
        return VideoStatus.FAILED.value
    except httpx.HTTPError as exc:
        logger.error("Download failed for job %s: %s", job_id, exc)
        await _mark_failed(record_id, f"Failed to download video content: {exc}")
        return VideoStatus.FAILED.value

    if video_url is None:
        return await _persisted_status(record_id)
    return VideoStatus.COMPLETED.value


async def _persisted_status(record_id: str) -> str:
    """Status actually stored for a record this poll could not finalize."""
    video = await video_store.get_video(record_id)
    return video.status if video else RECORD_DELETED


async def poll_and_update_video(
    job_id: str,
    record_id: str,
    model: str,
    *,
    max_attempts: int | None = None,
    poll_interval: float | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> str:
    """Poll the provider until the job reaches a terminal state; returns the final status."""
    max_attempts = settings.GENERATE_MAX_POLL_ATTEMPTS if max_attempts is None else max_attempts
    poll_interval = settings.POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval

    try:
        async with get_provider(http_client=http_client) as provider:
            logger.info(
                "Polling job %s (record=%s model=%s provider=%s max_attempts=%d)",
                job_id, record_id, model, provider.name, max_attempts,
            )

            for attempt in range(1, max_attempts + 1):
                await asyncio.sleep(poll_interval)

                try:
                    status_data = await provider.get_status(job_id)
                except (ProviderError, httpx.HTTPError) as exc:
                    logger.warning(
                        "Status check for job %s failed (attempt %d/%d): %s",
                        job_id, attempt, max_attempts, exc,
                    )
                    continue

                status = status_data.get("status")
                logger.info(
                    "Job %s status=%s progress=%s (attempt %d/%d)",
                    job_id, status, status_data.get("progress", "unknown"),
                    attempt, max_attempts,
                )

                if is_succeeded(status):
                    return await _finish(provider, job_id, record_id, status_data)

                if is_failed(status):
                    error_message = format_job_error(status_data)
                    logger.error("Job %s failed: %s", job_id, error_message)
                    await _mark_failed(record_id, error_message)
                    return VideoStatus.FAILED.value

            logger.error("Job %s timed out after %d attempts", job_id, max_attempts)
            await _mark_failed(record_id)
            return VideoStatus.FAILED.value

    except Exception:
        logger.exception("Unexpected error polling job %s (record=%s)", job_id, record_id)
        await _mark_failed(record_id)
        return VideoStatus.FAILED.value
