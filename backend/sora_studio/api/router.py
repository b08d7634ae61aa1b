from __future__ import annotations
"""Master API router — mounts all sub-routers."""

from fastapi import APIRouter, Depends

from sora_studio.api.deps import require_user
from sora_studio.api.system import router as system_router
from sora_studio.api.videos import router as videos_router

api_router = APIRouter(
    prefix="/api", redirect_slashes=False, dependencies=[Depends(require_user)]
)

api_router.include_router(videos_router, tags=["Videos"])
api_router.include_router(system_router, prefix="/system", tags=["System"])
