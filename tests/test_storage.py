import asyncio
import os
import re

import pytest

from sora_studio.exceptions import StorageError
from sora_studio.services import storage
from sora_studio.services.storage import (
    LocalVideoStorage,
    SupabaseVideoStorage,
    build_object_path,
    delete_video_from_storage,
    extract_file_path_from_url,
    get_storage,
    is_base64_data_url,
    is_storage_url,
    upload_video_to_storage,
)

SUPABASE_URL = "https://proj.supabase.co/storage/v1/object/public/videos/videos/video_1-1700000000000.mp4"


def test_object_path_format():
    assert re.fullmatch(r"videos/video_abc-\d{13}\.mp4", build_object_path("video_abc"))


def test_url_classification(settings):
    assert is_base64_data_url("data:video/mp4;base64,AAAA")
    assert not is_storage_url("data:video/mp4;base64,AAAA")
    assert not is_storage_url("")
    assert is_storage_url(SUPABASE_URL)
    assert is_storage_url("http://testserver/media/videos/a.mp4")
    assert not is_storage_url("https://cdn.example.com/a.mp4")


def test_extract_file_path(settings):
    assert extract_file_path_from_url(SUPABASE_URL) == "videos/video_1-1700000000000.mp4"
    assert extract_file_path_from_url("http://testserver/media/videos/a.mp4") == "videos/a.mp4"
    assert extract_file_path_from_url("https://cdn.example.com/a.mp4") is None


def test_get_storage_selects_backend(settings):
    assert isinstance(get_storage(), LocalVideoStorage)
    supabase = settings.model_copy(update={"STORAGE_BACKEND": "supabase"})
    assert isinstance(get_storage(supabase), SupabaseVideoStorage)
    with pytest.raises(StorageError):
        get_storage(settings.model_copy(update={"STORAGE_BACKEND": "ftp"}))


def test_local_upload_and_delete(settings):
    url = asyncio.run(upload_video_to_storage(b"mp4", "video_local"))
    assert url.startswith("http://testserver/media/videos/video_local-")

    full_path = os.path.join(settings.MEDIA_VOLUME, extract_file_path_from_url(url))
    assert os.path.exists(full_path)

    asyncio.run(delete_video_from_storage(url))
    assert not os.path.exists(full_path)

    # A second delete only logs
    asyncio.run(delete_video_from_storage(url))


def test_delete_skips_foreign_urls(monkeypatch):
    calls = []
    monkeypatch.setattr(storage, "get_storage", lambda: calls.append("called"))
    asyncio.run(delete_video_from_storage("data:video/mp4;base64,AAAA"))
    assert calls == []


def test_local_delete_refuses_paths_outside_media_volume(settings):
    with pytest.raises(StorageError):
        asyncio.run(LocalVideoStorage(settings).delete("../../etc/passwd"))


class FakeBucket:
    def __init__(self):
        self.uploads = []
        self.removed = []

    def upload(self, path, data, file_options):
        self.uploads.append((path, data, file_options))

    def get_public_url(self, path):
        return f"https://proj.supabase.co/storage/v1/object/public/videos/{path}"

    def remove(self, paths):
        self.removed.extend(paths)


def test_supabase_upload_uses_bucket(settings, monkeypatch):
    bucket = FakeBucket()
    backend = SupabaseVideoStorage(settings.model_copy(update={"STORAGE_BACKEND": "supabase"}))
    monkeypatch.setattr(backend, "_bucket", lambda: bucket)

    url = asyncio.run(backend.upload(b"mp4", "video_sb"))

    path, data, options = bucket.uploads[0]
    assert re.fullmatch(r"videos/video_sb-\d{13}\.mp4", path)
    assert data == b"mp4"
    assert options == {"content-type": "video/mp4", "cache-control": "3600", "upsert": "false"}
    assert url.endswith(path)

    asyncio.run(backend.delete(path))
    assert bucket.removed == [path]


def test_supabase_errors_become_storage_errors(settings, monkeypatch):
    backend = SupabaseVideoStorage(settings)

    def broken():
        raise RuntimeError("bucket not found")

    monkeypatch.setattr(backend, "_bucket", broken)
    with pytest.raises(StorageError, match="Failed to upload video: bucket not found"):
        asyncio.run(backend.upload(b"mp4", "video_sb"))


def test_supabase_requires_credentials(settings):
    backend = SupabaseVideoStorage(settings.model_copy(update={"SUPABASE_URL": "", "SUPABASE_SERVICE_KEY": ""}))
    with pytest.raises(StorageError):
        asyncio.run(backend.upload(b"mp4", "video_sb"))
