from __future__ import annotations
"""Video API endpoints — generation, remix, manual fetch, status and listing."""

import logging
from typing import Any

import httpx
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.datastructures import UploadFile

from sora_studio.api.deps import provider_http_client
from sora_studio.config import get_settings
from sora_studio.exceptions import ProviderError, StorageError
from sora_studio.models.video import CreationType, VideoStatus
from sora_studio.schemas.video import (
    DeleteVideoResponse,
    GenerateVideoRequest,
    ProgressResponse,
    RemixVideoRequest,
    StatusCheckResponse,
    VideoEnvelope,
    VideoIdRequest,
    VideoList,
    VideoRead,
    VideoStats,
)
from sora_studio.services import video_store
from sora_studio.services.poller import store_completed_video
from sora_studio.services.providers import (
    InputReference,
    format_job_error,
    get_provider,
    is_failed,
    is_succeeded,
)
from sora_studio.services.storage import delete_video_from_storage, upload_video_to_storage
from sora_studio.tasks.poll_tasks import dispatch_poll

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter()


def _provider_label() -> str:
    return settings.AI_PROVIDER.upper()


async def _parse_generate_request(
    request: Request,
) -> tuple[GenerateVideoRequest, InputReference | None]:
    """Accept either a JSON body or a multipart form with an `input_reference` file."""
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith("multipart/form-data"):
            form = await request.form()
            input_reference = None
            upload = form.get("input_reference")
            if isinstance(upload, UploadFile) and upload.filename:
                input_reference = InputReference(
                    filename=upload.filename,
                    content=await upload.read(),
                    content_type=upload.content_type or "application/octet-stream",
                )
            fields = {
                key: value for key, value in form.items()
                if key != "input_reference" and isinstance(value, str)
            }
            return GenerateVideoRequest(**fields), input_reference

        payload = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid request body") from exc

    try:
        return GenerateVideoRequest.model_validate(payload), None
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail="Invalid request body") from exc


def _provider_http_error(exc: ProviderError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)


@router.get("/videos", response_model=VideoList)
async def list_videos(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """List video records, newest first."""
    videos = await video_store.list_videos(limit=limit, offset=offset)
    return VideoList(videos=[VideoRead.model_validate(v) for v in videos])


@router.get("/videos/stats", response_model=VideoStats)
async def video_stats():
    """Counts by status and creation type."""
    return VideoStats(**await video_store.get_video_stats())


@router.post("/generate-video", response_model=VideoEnvelope)
async def generate_video(
    request: Request,
    client: httpx.AsyncClient = Depends(provider_http_client),
):
    """Submit a generation job and start background polling."""
    data, input_reference = await _parse_generate_request(request)
    if not data.prompt:
        raise HTTPException(status_code=400, detail="Prompt is required")

    model = data.model or settings.DEFAULT_MODEL
    seconds = data.seconds or settings.DEFAULT_SECONDS
    size = data.size or settings.DEFAULT_SIZE

    logger.info(
        "Generate request: provider=%s model=%s seconds=%s size=%s reference=%s",
        settings.AI_PROVIDER, model, seconds, size, bool(input_reference),
    )

    try:
        async with get_provider(http_client=client) as provider:
            job = await provider.create_job(
                prompt=data.prompt,
                model=model,
                seconds=seconds,
                size=size,
                input_reference=input_reference,
            )
    except ProviderError as exc:
        raise _provider_http_error(exc) from exc
    except httpx.HTTPError as exc:
        logger.error("Provider request failed: %s", exc)
        raise HTTPException(status_code=502, detail=f"Failed to generate video: {exc}") from exc

    video = await video_store.insert_video(
        prompt=data.prompt,
        video_id=job["id"],
        model=model,
        creation_type=CreationType.STANDARD.value,
    )
    await dispatch_poll(job["id"], video.id, model, settings.GENERATE_MAX_POLL_ATTEMPTS)

    return VideoEnvelope(video=VideoRead.model_validate(video))


@router.post("/remix-video", response_model=VideoEnvelope)
async def remix_video(
    data: RemixVideoRequest,
    client: httpx.AsyncClient = Depends(provider_http_client),
):
    """Create a remix of an existing provider video and start background polling."""
    if not data.prompt:
        raise HTTPException(status_code=400, detail="Prompt is required")
    if not data.input_video_id:
        raise HTTPException(status_code=400, detail="Input video ID is required for remix")

    model = data.model or settings.DEFAULT_MODEL
    logger.info("Remix request: source=%s model=%s", data.input_video_id, model)

    try:
        async with get_provider(http_client=client) as provider:
            job = await provider.remix_job(data.input_video_id, data.prompt)
    except ProviderError as exc:
        raise _provider_http_error(exc) from exc
    except httpx.HTTPError as exc:
        logger.error("Provider request failed: %s", exc)
        raise HTTPException(status_code=502, detail=f"Failed to remix video: {exc}") from exc

    video = await video_store.insert_video(
        prompt=data.prompt,
        video_id=job["id"],
        model=model,
        creation_type=CreationType.REMIX.value,
    )
    await dispatch_poll(job["id"], video.id, model, settings.REMIX_MAX_POLL_ATTEMPTS)

    return VideoEnvelope(video=VideoRead.model_validate(video))


@router.post("/fetch-video", response_model=VideoEnvelope)
async def fetch_video(
    data: VideoIdRequest,
    client: httpx.AsyncClient = Depends(provider_http_client),
):
    """Import an already-finished provider job by its job id."""
    job_id = data.videoId
    if not job_id:
        raise HTTPException(status_code=400, detail="Video ID is required")

    existing = await video_store.get_video_by_job_id(job_id)
    if existing:
        return VideoEnvelope(
            video=VideoRead.model_validate(existing),
            message="Video already exists in database",
        )

    async with get_provider(http_client=client) as provider:
        try:
            metadata = await provider.get_status(job_id)
        except ProviderError as exc:
            raise HTTPException(
                status_code=exc.status_code,
                detail=f"Failed to fetch video metadata: {exc.message}",
            ) from exc
        except httpx.HTTPError as exc:
            raise HTTPException(
                status_code=502, detail=f"Failed to fetch video metadata: {exc}"
            ) from exc

        status = metadata.get("status")
        if not is_succeeded(status):
            raise HTTPException(
                status_code=400, detail=f"Video is not ready yet. Current status: {status}"
            )

        try:
            content = await provider.download_content(job_id, metadata)
        except (ProviderError, httpx.HTTPError) as exc:
            logger.error("Manual fetch download failed for %s: %s", job_id, exc)
            raise HTTPException(status_code=500, detail="Failed to download video content") from exc

    try:
        video_url = await upload_video_to_storage(content, job_id)
    except StorageError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    video = await video_store.insert_video(
        prompt=f"Manually fetched video (ID: {job_id})",
        video_id=job_id,
        model=metadata.get("model") or settings.DEFAULT_MODEL,
        status=VideoStatus.COMPLETED.value,
        video_url=video_url,
    )
    logger.info("Imported job %s as record %s", job_id, video.id)

    return VideoEnvelope(
        video=VideoRead.model_validate(video),
        message="Video fetched and stored successfully",
    )


@router.delete("/delete-video", response_model=DeleteVideoResponse)
async def delete_video(id: str | None = Query(None)):
    """Delete a record and, best effort, its stored blob."""
    if not id:
        raise HTTPException(status_code=400, detail="Video ID is required")

    video = await video_store.get_video(id)
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")

    video_url = video.video_url
    await video_store.delete_video(id)

    if video_url:
        try:
            await delete_video_from_storage(video_url)
        except StorageError as exc:
            logger.warning("Record %s deleted but storage cleanup failed: %s", id, exc)

    return DeleteVideoResponse(message="Video deleted successfully", deletedVideoId=id)


@router.post("/check-video-status", response_model=StatusCheckResponse)
async def check_video_status(
    data: VideoIdRequest,
    client: httpx.AsyncClient = Depends(provider_http_client),
):
    """Manually refresh an in-progress record from the provider."""
    if not data.videoId:
        raise HTTPException(status_code=400, detail="Video ID is required")

    video = await video_store.get_video(data.videoId)
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")

    if video.status != VideoStatus.IN_PROGRESS.value:
        return JSONResponse(
            status_code=400,
            content={"detail": "Video is not in progress", "currentStatus": video.status},
        )

    async with get_provider(http_client=client) as provider:
        try:
            status_data = await provider.get_status(video.video_id)
        except ProviderError as exc:
            logger.error("Status check for job %s failed: %s", video.video_id, exc.message)
            raise HTTPException(
                status_code=exc.status_code,
                detail=f"Failed to check status with {_provider_label()}",
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("Status check for job %s failed: %s", video.video_id, exc)
            raise HTTPException(
                status_code=502, detail=f"Failed to check status with {_provider_label()}"
            ) from exc

        status = status_data.get("status")
        logger.info("Manual status check for job %s: %s", video.video_id, status)

        if is_succeeded(status):
            try:
                video_url = await store_completed_video(
                    provider, video.video_id, video.id, status_data
                )
            except ProviderError as exc:
                raise _provider_http_error(exc) from exc
            except StorageError as exc:
                raise HTTPException(status_code=500, detail=str(exc)) from exc
            except httpx.HTTPError as exc:
                raise HTTPException(
                    status_code=502, detail=f"Failed to download video content: {exc}"
                ) from exc
            if video_url is None:
                current = await video_store.get_video(video.id)
                if current is None:
                    raise HTTPException(status_code=404, detail="Video not found")
                return StatusCheckResponse(
                    status=current.status,
                    message="Video is no longer in progress",
                    error=current.error_message,
                )
            return StatusCheckResponse(
                status=VideoStatus.COMPLETED.value,
                message="Video generation completed successfully",
            )

    if is_failed(status):
        error_message = format_job_error(status_data)
        await video_store.finalize_video(
            video.id, VideoStatus.FAILED.value, error_message=error_message
        )
        return StatusCheckResponse(
            status=VideoStatus.FAILED.value,
            message="Video generation failed",
            error=error_message,
        )

    return StatusCheckResponse(
        status=status or "unknown",
        progress=status_data.get("progress"),
        message="Video is still being generated",
    )


@router.get("/video-progress", response_model=ProgressResponse)
async def video_progress(
    video_id: str | None = Query(None),
    client: httpx.AsyncClient = Depends(provider_http_client),
):
    """Persisted state for a provider job, refreshed from the provider while in progress."""
    if not video_id:
        raise HTTPException(status_code=400, detail="video_id parameter is required")

    video = await video_store.get_video_by_job_id(video_id)
    if not video:
        raise HTTPException(status_code=404, detail="Video not found")

    if video.status != VideoStatus.IN_PROGRESS.value:
        return ProgressResponse(
            status=video.status,
            error_message=video.error_message,
            video_url=video.video_url,
        )

    status_data: dict[str, Any] | None = None
    async with get_provider(http_client=client) as provider:
        try:
            status_data = await provider.get_status(video_id)
        except (ProviderError, httpx.HTTPError) as exc:
            logger.warning("Real-time status for job %s unavailable: %s", video_id, exc)

        if status_data is not None and is_succeeded(status_data.get("status")):
            try:
                await store_completed_video(provider, video_id, video.id, status_data)
            except (ProviderError, StorageError, httpx.HTTPError) as exc:
                # Record stays in progress; the poller or a later refresh retries
                logger.error("Progress refresh could not store job %s: %s", video_id, exc)

    if status_data is not None and is_failed(status_data.get("status")):
        await video_store.finalize_video(
            video.id,
            VideoStatus.FAILED.value,
            error_message=format_job_error(status_data),
        )

    refreshed = await video_store.get_video(video.id) or video
    if status_data is None:
        return ProgressResponse(
            status=refreshed.status,
            error_message=refreshed.error_message,
            video_url=refreshed.video_url,
        )

    progress = status_data.get("progress")
    if refreshed.status == VideoStatus.COMPLETED.value:
        progress = 100
    return ProgressResponse(
        status=refreshed.status,
        progress=progress,
        error_message=refreshed.error_message,
        video_url=refreshed.video_url,
        provider_status=status_data.get("status"),
    )
