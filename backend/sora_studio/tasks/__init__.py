"""Celery application configuration."""

import asyncio
import threading

from celery import Celery
from celery.schedules import crontab

from sora_studio.config import get_settings

settings = get_settings()

celery_app = Celery(
    "sora_studio",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=[
        "sora_studio.tasks.poll_tasks",
        "sora_studio.tasks.cleanup_task",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,               # ACK after task completes, not on receive
    task_reject_on_worker_lost=True,    # Re-queue task if worker crashes/restarts
    worker_prefetch_multiplier=1,       # Polls are long-lived; one at a time per worker process
)

# Maintenance sweep of old failed records, daily at 3:00 AM
celery_app.conf.beat_schedule = {
    "cleanup-old-failed-videos": {
        "task": "sora_studio.tasks.cleanup_task.cleanup_old_failed_videos",
        "schedule": crontab(hour=3, minute=0),
    },
}

# Thread-local storage for event loop reuse within Celery workers
_thread_local = threading.local()


def run_async(coro):
    """Run async code in a sync Celery task.

    Reuses a thread-local event loop so successive tasks in one worker
    thread share a loop instead of creating and closing one per call.
    """
    loop = getattr(_thread_local, "loop", None)
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        _thread_local.loop = loop
    return loop.run_until_complete(coro)
