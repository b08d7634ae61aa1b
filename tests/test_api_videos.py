import asyncio
import os

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import FakeProvider
from sora_studio.api import videos as videos_api
from sora_studio.api.deps import provider_http_client
from sora_studio.exceptions import DatabaseConnectionError, DatabaseTimeoutError
from sora_studio.main import app
from sora_studio.services import video_store
from sora_studio.services.storage import extract_file_path_from_url


@pytest.fixture
def dispatched(monkeypatch):
    calls = []

    async def fake_dispatch(job_id, record_id, model, max_attempts):
        calls.append((job_id, record_id, model, max_attempts))

    monkeypatch.setattr(videos_api, "dispatch_poll", fake_dispatch)
    return calls


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def client(db, provider, dispatched):
    async def _provider_client():
        async with provider.client() as http_client:
            yield http_client

    app.dependency_overrides[provider_http_client] = _provider_client
    yield TestClient(app)
    app.dependency_overrides.clear()


def _insert(video_id="video_123", **kwargs):
    kwargs.setdefault("prompt", "a fox in the snow")
    kwargs.setdefault("model", "sora-2")
    return asyncio.run(video_store.insert_video(video_id=video_id, **kwargs))


def _reload(record_id):
    return asyncio.run(video_store.get_video(record_id))


def test_root_and_health(client):
    assert client.get("/").json()["status"] == "running"
    assert client.get("/health").json()["status"] == "healthy"


def test_generate_video_json(client, provider, dispatched, settings):
    resp = client.post("/api/generate-video", json={"prompt": "a red balloon"})
    assert resp.status_code == 200

    video = resp.json()["video"]
    assert video["prompt"] == "a red balloon"
    assert video["video_id"] == "video_123"
    assert video["status"] == "in_progress"
    assert video["model"] == "sora-2"
    assert video["creation_type"] == "standard"
    assert dispatched == [("video_123", video["id"], "sora-2", settings.GENERATE_MAX_POLL_ATTEMPTS)]

    sent = provider.requests[0]
    assert sent.method == "POST"
    assert b'"seconds":"4"' in sent.content.replace(b" ", b"")
    assert b'"size":"1280x720"' in sent.content.replace(b" ", b"")


def test_generate_video_multipart_with_reference(client, provider):
    resp = client.post(
        "/api/generate-video",
        data={"prompt": "animate this", "model": "sora-2-pro", "seconds": "8"},
        files={"input_reference": ("frame.png", b"PNGDATA", "image/png")},
    )
    assert resp.status_code == 200
    assert resp.json()["video"]["model"] == "sora-2-pro"

    sent = provider.requests[0]
    assert sent.headers["content-type"].startswith("multipart/form-data")
    assert b"PNGDATA" in sent.content


def test_generate_requires_prompt(client, dispatched):
    resp = client.post("/api/generate-video", json={"model": "sora-2"})
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Prompt is required"}
    assert dispatched == []


def test_generate_relays_provider_error(client, provider, dispatched):
    provider.handler = lambda request: httpx.Response(
        400, json={"error": {"message": "Invalid size"}}
    )
    resp = client.post("/api/generate-video", json={"prompt": "x", "size": "1x1"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Failed to generate video: Invalid size"
    assert dispatched == []
    assert asyncio.run(video_store.list_videos()) == []


def test_remix_video(client, dispatched, settings):
    resp = client.post(
        "/api/remix-video", json={"prompt": "make it rain", "input_video_id": "video_src"}
    )
    assert resp.status_code == 200

    video = resp.json()["video"]
    assert video["video_id"] == "video_remix_1"
    assert video["creation_type"] == "remix"
    assert dispatched[0][3] == settings.REMIX_MAX_POLL_ATTEMPTS



def test_generate_accepts_numeric_seconds(client, provider):
    resp = client.post("/api/generate-video", json={"prompt": "a red balloon", "seconds": 8})
    assert resp.status_code == 200
    assert b'"seconds":"8"' in provider.requests[0].content.replace(b" ", b"")


def test_remix_ignores_duration_and_size(client, provider):
    resp = client.post("/api/remix-video", json={
        "prompt": "make it rain",
        "input_video_id": "video_src",
        "seconds": "12",
        "size": "720x1280",
    })
    assert resp.status_code == 200

    sent = provider.requests[0]
    assert sent.url.path.endswith("/videos/video_src/remix")
    assert b"seconds" not in sent.content
    assert b"size" not in sent.content

@pytest.mark.parametrize("body, detail", [
    ({"input_video_id": "video_src"}, "Prompt is required"),
    ({"prompt": "x"}, "Input video ID is required for remix"),
])
def test_remix_validation(client, body, detail):
    resp = client.post("/api/remix-video", json=body)
    assert resp.status_code == 400
    assert resp.json()["detail"] == detail


def test_fetch_existing_video(client):
    record = _insert()
    resp = client.post("/api/fetch-video", json={"videoId": "video_123"})
    assert resp.status_code == 200
    assert resp.json()["message"] == "Video already exists in database"
    assert resp.json()["video"]["id"] == record.id


def test_fetch_imports_finished_job(client, provider):
    provider.statuses = [{"id": "video_123", "status": "completed", "model": "sora-2-pro"}]
    resp = client.post("/api/fetch-video", json={"videoId": "video_123"})
    assert resp.status_code == 200

    body = resp.json()
    assert body["message"] == "Video fetched and stored successfully"
    assert body["video"]["status"] == "completed"
    assert body["video"]["model"] == "sora-2-pro"
    assert body["video"]["prompt"] == "Manually fetched video (ID: video_123)"
    assert body["video"]["video_url"].startswith("http://testserver/media/videos/video_123-")


def test_fetch_not_ready(client, provider):
    provider.statuses = [{"status": "in_progress"}]
    resp = client.post("/api/fetch-video", json={"videoId": "video_123"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Video is not ready yet. Current status: in_progress"


def test_fetch_metadata_error(client, provider):
    provider.statuses = [404]
    resp = client.post("/api/fetch-video", json={"videoId": "video_404"})
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Failed to fetch video metadata: upstream unavailable"


def test_fetch_download_error(client, provider):
    provider.statuses = [{"status": "completed"}]
    provider.content_status = 403
    resp = client.post("/api/fetch-video", json={"videoId": "video_123"})
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to download video content"


def test_delete_video_removes_record_and_file(client, provider, settings):
    provider.statuses = [{"status": "completed"}]
    video = client.post("/api/fetch-video", json={"videoId": "video_123"}).json()["video"]
    file_path = os.path.join(settings.MEDIA_VOLUME, extract_file_path_from_url(video["video_url"]))
    assert os.path.exists(file_path)

    resp = client.delete("/api/delete-video", params={"id": video["id"]})
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "message": "Video deleted successfully",
        "deletedVideoId": video["id"],
    }
    assert _reload(video["id"]) is None
    assert not os.path.exists(file_path)


def test_delete_unknown_video(client):
    assert client.delete("/api/delete-video", params={"id": "nope"}).status_code == 404


def test_check_status_requires_in_progress(client):
    record = _insert(status="failed", error_message="boom")
    resp = client.post("/api/check-video-status", json={"videoId": record.id})
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Video is not in progress", "currentStatus": "failed"}


def test_check_status_completes_video(client, provider):
    record = _insert()
    provider.statuses = [{"status": "succeeded"}]

    resp = client.post("/api/check-video-status", json={"videoId": record.id})
    assert resp.status_code == 200
    assert resp.json()["status"] == "completed"
    assert resp.json()["message"] == "Video generation completed successfully"

    stored = _reload(record.id)
    assert stored.status == "completed"
    assert stored.video_url


def test_check_status_records_failure(client, provider):
    record = _insert()
    provider.statuses = [{"status": "failed", "error": {"code": "policy", "message": "Blocked"}}]

    resp = client.post("/api/check-video-status", json={"videoId": record.id})
    assert resp.json()["status"] == "failed"
    assert resp.json()["error"] == "policy: Blocked"
    assert _reload(record.id).error_message == "policy: Blocked"


def test_check_status_still_running(client, provider):
    record = _insert()
    provider.statuses = [{"status": "in_progress", "progress": 42}]

    resp = client.post("/api/check-video-status", json={"videoId": record.id})
    assert resp.json() == {
        "success": True,
        "status": "in_progress",
        "message": "Video is still being generated",
        "progress": 42,
        "error": None,
    }
    assert _reload(record.id).status == "in_progress"


def test_check_status_provider_unavailable(client, provider):
    record = _insert()
    provider.statuses = [503]
    resp = client.post("/api/check-video-status", json={"videoId": record.id})
    assert resp.status_code == 503
    assert resp.json()["detail"] == "Failed to check status with OPENAI"


def test_check_status_reports_a_lost_race(client, provider, monkeypatch, settings):
    record = _insert()
    provider.statuses = [{"status": "succeeded"}]
    finalize = video_store.finalize_video

    async def cancelled_first(record_id, status, **fields):
        await finalize(record_id, "failed", error_message="cancelled")
        return False

    monkeypatch.setattr(video_store, "finalize_video", cancelled_first)
    videos_dir = os.path.join(settings.MEDIA_VOLUME, "videos")
    os.makedirs(videos_dir, exist_ok=True)
    before = set(os.listdir(videos_dir))

    resp = client.post("/api/check-video-status", json={"videoId": record.id})
    assert resp.status_code == 200
    assert resp.json()["status"] == "failed"
    assert resp.json()["error"] == "cancelled"
    assert set(os.listdir(videos_dir)) == before


def test_progress_requires_id(client):
    assert client.get("/api/video-progress").status_code == 400
    assert client.get("/api/video-progress", params={"video_id": "missing"}).status_code == 404


def test_progress_for_terminal_record_skips_provider(client, provider):
    _insert(status="failed", error_message="boom")
    resp = client.get("/api/video-progress", params={"video_id": "video_123"})
    body = resp.json()
    assert body["status"] == "failed"
    assert body["error_message"] == "boom"
    assert body["provider_status"] is None
    assert provider.status_calls == 0


def test_progress_reports_provider_progress(client, provider):
    _insert()
    provider.statuses = [{"status": "in_progress", "progress": 55}]
    body = client.get("/api/video-progress", params={"video_id": "video_123"}).json()
    assert body["status"] == "in_progress"
    assert body["progress"] == 55
    assert body["provider_status"] == "in_progress"


def test_progress_refresh_completes_record(client, provider):
    record = _insert()
    provider.statuses = [{"status": "completed"}]
    body = client.get("/api/video-progress", params={"video_id": "video_123"}).json()
    assert body["status"] == "completed"
    assert body["progress"] == 100
    assert body["video_url"].startswith("http://testserver/media/")
    assert _reload(record.id).status == "completed"


def test_progress_keeps_record_in_progress_when_download_fails(client, provider):
    record = _insert()
    provider.statuses = [{"status": "completed"}]
    provider.content_status = 500
    body = client.get("/api/video-progress", params={"video_id": "video_123"}).json()
    assert body["status"] == "in_progress"
    assert _reload(record.id).video_url == ""


def test_progress_falls_back_to_stored_state(client, provider):
    _insert()
    provider.statuses = [502]
    body = client.get("/api/video-progress", params={"video_id": "video_123"}).json()
    assert body["status"] == "in_progress"
    assert body["provider_status"] is None


def test_progress_ignores_non_json_status(client, provider):
    _insert()
    provider.handler = lambda request: httpx.Response(200, text="<html>gateway</html>")
    resp = client.get("/api/video-progress", params={"video_id": "video_123"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "in_progress"
    assert resp.json()["provider_status"] is None


def test_list_and_stats(client):
    _insert("video_a")
    _insert("video_b", status="completed", video_url="http://testserver/media/videos/b.mp4")

    videos = client.get("/api/videos").json()["videos"]
    assert {v["video_id"] for v in videos} == {"video_a", "video_b"}
    assert client.get("/api/videos", params={"limit": 500}).status_code == 422

    stats = client.get("/api/videos/stats").json()
    assert stats["total_videos"] == 2
    assert stats["completed_videos"] == 1
    assert stats["in_progress_videos"] == 1


@pytest.mark.parametrize("error, status_code, detail", [
    (DatabaseTimeoutError("slow"), 504, "Database timeout - please try again"),
    (DatabaseConnectionError("down"), 503, "Database connection failed - please try again"),
])
def test_database_errors_map_to_http(client, monkeypatch, error, status_code, detail):
    async def broken(**kwargs):
        raise error

    monkeypatch.setattr(video_store, "list_videos", broken)
    resp = client.get("/api/videos")
    assert resp.status_code == status_code
    assert resp.json() == {"detail": detail}
