"""System status endpoint — checks health of all dependent services."""

from __future__ import annotations

import time
from typing import Any

import redis
from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from sora_studio.config import get_settings
from sora_studio.database import get_db
from sora_studio.tasks import celery_app

router = APIRouter()
settings = get_settings()


def _check_redis() -> dict[str, Any]:
    """Check Redis connectivity and basic info."""
    t0 = time.time()
    try:
        r = redis.Redis.from_url(settings.REDIS_URL, socket_timeout=3)
        info = r.info("server")
        ping = r.ping()
        latency_ms = round((time.time() - t0) * 1000, 1)
        return {
            "status": "ok" if ping else "error",
            "latency_ms": latency_ms,
            "version": info.get("redis_version", "unknown"),
        }
    except Exception as e:
        return {"status": "error", "error": str(e)}


def _check_celery_workers() -> dict[str, Any]:
    """Check Celery workers via ping broadcast."""
    if settings.POLL_BACKEND.lower() == "local":
        return {"status": "disabled", "workers": [], "count": 0}

    try:
        inspector = celery_app.control.inspect(timeout=2)
        ping_result = inspector.ping()

        if not ping_result:
            return {
                "status": "offline",
                "workers": [],
                "count": 0,
                "message": "No running Celery worker detected",
            }

        workers = [
            {"name": name, "status": "ok" if pong.get("ok") == "pong" else "error"}
            for name, pong in ping_result.items()
        ]
        active = inspector.active() or {}
        return {
            "status": "ok",
            "workers": workers,
            "count": len(workers),
            "active_tasks": sum(len(tasks) for tasks in active.values()),
        }
    except Exception as e:
        return {"status": "error", "error": str(e), "workers": [], "count": 0}


def _check_provider() -> dict[str, Any]:
    """Report whether the configured provider has the credentials it needs."""
    provider = settings.AI_PROVIDER.lower()
    if provider == "azure":
        configured = bool(settings.AZURE_API_KEY and settings.AZURE_ENDPOINT)
        endpoint = settings.AZURE_ENDPOINT
    else:
        configured = bool(settings.OPENAI_API_KEY)
        endpoint = settings.OPENAI_BASE_URL
    return {
        "name": provider,
        "status": "ok" if configured else "unconfigured",
        "endpoint": endpoint,
    }


async def _check_database(db: AsyncSession) -> dict[str, Any]:
    t0 = time.time()
    try:
        await db.execute(text("SELECT 1"))
        return {"status": "ok", "latency_ms": round((time.time() - t0) * 1000, 1)}
    except Exception as e:
        return {"status": "error", "error": str(e)}


@router.get("/health")
async def system_health(db: AsyncSession = Depends(get_db)):
    """Aggregate health of database, Redis, Celery workers and provider config."""
    services = {
        "database": await _check_database(db),
        "redis": _check_redis(),
        "celery": _check_celery_workers(),
        "provider": _check_provider(),
        "storage": {"backend": settings.STORAGE_BACKEND},
    }
    critical = (services["database"]["status"], services["provider"]["status"])
    overall = "healthy" if all(s == "ok" for s in critical) else "degraded"
    return {"status": overall, "services": services}
