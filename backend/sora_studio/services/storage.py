from __future__ import annotations
"""Video object storage — local media volume or a Supabase Storage bucket.

Finished videos are stored as `videos/{job_id}-{timestamp_ms}.mp4` and
referenced by a public URL kept in the record's `video_url`.
"""

import asyncio
import logging
import os
import time
from abc import ABC, abstractmethod
from urllib.parse import urlparse

from sora_studio.config import Settings, get_settings
from sora_studio.exceptions import StorageError

logger = logging.getLogger(__name__)

SUPABASE_PUBLIC_MARKER = "/storage/v1/object/public/"
LOCAL_MEDIA_MARKER = "/media/"


def build_object_path(job_id: str) -> str:
    return f"videos/{job_id}-{int(time.time() * 1000)}.mp4"


def is_base64_data_url(url: str) -> bool:
    """Legacy records embed the whole video as a data URL."""
    return url.startswith("data:")


def is_storage_url(url: str, settings: Settings | None = None) -> bool:
    settings = settings or get_settings()
    if not url or is_base64_data_url(url):
        return False
    if SUPABASE_PUBLIC_MARKER in url:
        return True
    return url.startswith(f"{settings.PUBLIC_BASE_URL.rstrip('/')}{LOCAL_MEDIA_MARKER}")


def extract_file_path_from_url(url: str, settings: Settings | None = None) -> str | None:
    """Object path inside the bucket / media volume, or None if the URL is not ours."""
    settings = settings or get_settings()
    try:
        path = urlparse(url).path
    except ValueError:
        logger.error("Failed to parse storage URL: %s", url[:100])
        return None

    supabase_prefix = f"{SUPABASE_PUBLIC_MARKER}{settings.STORAGE_BUCKET}/"
    for marker in (supabase_prefix, LOCAL_MEDIA_MARKER):
        if marker in path:
            return path.split(marker, 1)[1] or None
    return None


class VideoStorage(ABC):
    """Uploads video bytes and hands back a public URL."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    @abstractmethod
    async def upload(self, data: bytes, job_id: str) -> str: ...

    @abstractmethod
    async def delete(self, file_path: str) -> None: ...


class LocalVideoStorage(VideoStorage):
    """Files under MEDIA_VOLUME, served by the app's /media static mount."""

    async def upload(self, data: bytes, job_id: str) -> str:
        file_path = build_object_path(job_id)
        full_path = os.path.join(self.settings.MEDIA_VOLUME, file_path)
        os.makedirs(os.path.dirname(full_path), exist_ok=True)

        logger.info(
            "Storing video %s (%.2f MB)", file_path, len(data) / (1024 * 1024)
        )
        try:
            with open(full_path, "wb") as f:
                f.write(data)
        except OSError as exc:
            raise StorageError(f"Failed to upload video: {exc}") from exc

        return f"{self.settings.PUBLIC_BASE_URL.rstrip('/')}{LOCAL_MEDIA_MARKER}{file_path}"

    async def delete(self, file_path: str) -> None:
        root = os.path.realpath(self.settings.MEDIA_VOLUME)
        full_path = os.path.realpath(os.path.join(root, file_path))
        if os.path.commonpath([root, full_path]) != root:
            raise StorageError(f"Refusing to delete outside media volume: {file_path}")
        try:
            os.remove(full_path)
        except FileNotFoundError:
            logger.warning("Video file already gone: %s", full_path)
        except OSError as exc:
            raise StorageError(f"Failed to delete video: {exc}") from exc


class SupabaseVideoStorage(VideoStorage):
    """Public Supabase Storage bucket (STORAGE_BUCKET)."""

    def __init__(self, settings: Settings | None = None) -> None:
        super().__init__(settings)
        self._client = None

    def _bucket(self):
        if self._client is None:
            from supabase import create_client

            if not self.settings.SUPABASE_URL or not self.settings.SUPABASE_SERVICE_KEY:
                raise StorageError("SUPABASE_URL or SUPABASE_SERVICE_KEY not set")
            self._client = create_client(
                self.settings.SUPABASE_URL, self.settings.SUPABASE_SERVICE_KEY
            )
        return self._client.storage.from_(self.settings.STORAGE_BUCKET)

    async def upload(self, data: bytes, job_id: str) -> str:
        file_path = build_object_path(job_id)
        logger.info(
            "Uploading video to bucket %s: %s (%.2f MB)",
            self.settings.STORAGE_BUCKET, file_path, len(data) / (1024 * 1024),
        )

        def _upload() -> str:
            bucket = self._bucket()
            bucket.upload(
                file_path,
                data,
                {"content-type": "video/mp4", "cache-control": "3600", "upsert": "false"},
            )
            return bucket.get_public_url(file_path)

        try:
            public_url = await asyncio.to_thread(_upload)
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(f"Failed to upload video: {exc}") from exc

        logger.info("Public URL generated: %s", public_url)
        return public_url

    async def delete(self, file_path: str) -> None:
        try:
            await asyncio.to_thread(lambda: self._bucket().remove([file_path]))
        except StorageError:
            raise
        except Exception as exc:
            raise StorageError(f"Failed to delete video: {exc}") from exc


STORAGE_BACKENDS: dict[str, type[VideoStorage]] = {
    "local": LocalVideoStorage,
    "supabase": SupabaseVideoStorage,
}


def get_storage(settings: Settings | None = None) -> VideoStorage:
    settings = settings or get_settings()
    backend = STORAGE_BACKENDS.get(settings.STORAGE_BACKEND.lower())
    if backend is None:
        raise StorageError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")
    return backend(settings)


async def upload_video_to_storage(data: bytes, job_id: str) -> str:
    """Upload finished video bytes; returns the public URL."""
    return await get_storage().upload(data, job_id)


async def delete_video_from_storage(video_url: str) -> None:
    """Remove the object behind a public URL. Unknown URLs are skipped with a warning."""
    file_path = extract_file_path_from_url(video_url)
    if not file_path:
        logger.warning("Could not extract file path from URL: %s", video_url[:100])
        return
    logger.info("Deleting video from storage: %s", file_path)
    await get_storage().delete(file_path)
