from __future__ import annotations
"""Background polling of provider jobs.

`dispatch_poll` is the single entry point used by the API. It hands the job to
a Celery worker (POLL_BACKEND=celery) or schedules it on the running event
loop (POLL_BACKEND=local, for single-process development servers). Either way
the request returns immediately and the outcome lands on the record.
"""

import asyncio
import logging

from celery import shared_task

from sora_studio.config import get_settings
from sora_studio.models.video import VideoStatus
from sora_studio.tasks import run_async

logger = logging.getLogger(__name__)
settings = get_settings()

# Strong references so in-process poll tasks are not garbage collected mid-run
_background_tasks: set[asyncio.Task] = set()


@shared_task(name="sora_studio.tasks.poll_tasks.poll_video_job")
def poll_video_job(job_id: str, record_id: str, model: str, max_attempts: int) -> dict:
    """Poll one provider job to completion inside a Celery worker."""
    from sora_studio.services.poller import poll_and_update_video

    status = run_async(
        poll_and_update_video(job_id, record_id, model, max_attempts=max_attempts)
    )
    logger.info("Poll task for job %s finished: %s", job_id, status)
    return {"job_id": job_id, "record_id": record_id, "status": status}


async def dispatch_poll(job_id: str, record_id: str, model: str, max_attempts: int) -> None:
    """Start background polling for a freshly created job."""
    if settings.POLL_BACKEND.lower() == "local":
        from sora_studio.services.poller import poll_and_update_video

        task = asyncio.create_task(
            poll_and_update_video(job_id, record_id, model, max_attempts=max_attempts)
        )
        _background_tasks.add(task)
        task.add_done_callback(_background_tasks.discard)
        logger.info("Started in-process polling for job %s", job_id)
        return

    try:
        poll_video_job.delay(job_id, record_id, model, max_attempts)
        logger.info("Queued polling task for job %s", job_id)
    except Exception as exc:
        # Nothing else will finalize this record
        logger.error("Could not queue polling for job %s: %s", job_id, exc)
        from sora_studio.services import video_store

        await video_store.finalize_video(
            record_id,
            VideoStatus.FAILED.value,
            error_message=f"Failed to start background polling: {exc}",
        )
