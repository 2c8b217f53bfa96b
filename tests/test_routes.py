import pytest
from flask import Flask

import app as app_module
import error_middleware
from app import create_app
from errors import FetchError, GeometryError
from routes.v1.video import add_banner as add_banner_routes
from services.banner_types import BatchOverlayResult, OverlayResult, PlatformResult
from services.cleanup_service import CleanupService


class FakeRunner:
    def __init__(self, error=None):
        self.error = error
        self.requests = []

    def run(self, request, job_id=None):
        self.requests.append((request, job_id))
        if self.error:
            raise self.error
        return OverlayResult(job_id=job_id, platform_tag=request.platform_tag,
                             label_name=request.label_name, published_url="http://testserver/storage/a.mp4")

    def run_batch(self, request, job_id=None):
        self.requests.append((request, job_id))
        if self.error:
            raise self.error
        return BatchOverlayResult(job_id=job_id, label_name=request.label_name, results=[
            PlatformResult(platform_tag=tag, published_url=f"http://testserver/storage/{index}.mp4")
            for index, tag in enumerate(request.platform_tags)
        ])


@pytest.fixture
def runner(monkeypatch):
    fake = FakeRunner()
    monkeypatch.setattr(add_banner_routes, "banner_runner", fake)
    return fake


@pytest.fixture
def client():
    return create_app().test_client()


SINGLE_PAYLOAD = {
    "video_url": "https://cdn.example.com/source.mp4",
    "avatar_name": "Sarah",
    "platform": "tiktok",
}


@pytest.mark.parametrize("path", ["/add-banner", "/v1/video/add_banner"])
def test_add_banner(client, runner, path):
    response = client.post(path, json=SINGLE_PAYLOAD)

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["platform"] == "TIKTOK"
    assert body["avatar_name"] == "Sarah"
    assert body["video_url"] == "http://testserver/storage/a.mp4"
    request, job_id = runner.requests[0]
    assert request.platform_tag == "TIKTOK"
    assert body["job_id"] == job_id
    assert response.headers.get("X-Request-ID")


def test_add_banner_passes_config_and_duration(client, runner):
    payload = dict(SINGLE_PAYLOAD, duration=12.5, banner_config={"font_size": 40, "show_background": True})

    assert client.post("/add-banner", json=payload).status_code == 200

    request, _ = runner.requests[0]
    assert request.duration_override_seconds == 12.5
    assert request.banner_config.font_size == 40
    assert request.banner_config.show_background is True
    assert request.banner_config.y_percent is None


@pytest.mark.parametrize("payload", [
    {"video_url": "https://cdn.example.com/source.mp4", "platform": "tiktok"},
    dict(SINGLE_PAYLOAD, banner_config={"unknown": 1}),
    dict(SINGLE_PAYLOAD, banner_config={"y_percent": 1.5}),
    dict(SINGLE_PAYLOAD, banner_config={"y_percent": -0.1}),
    dict(SINGLE_PAYLOAD, banner_config={"font_size_percent": 2}),
    dict(SINGLE_PAYLOAD, duration=0),
    dict(SINGLE_PAYLOAD, video_url="ftp://cdn.example.com/source.mp4"),
])
def test_add_banner_rejects_invalid_payload(client, runner, payload):
    response = client.post("/add-banner", json=payload)

    assert response.status_code == 400
    assert response.get_json()["success"] is False
    assert runner.requests == []


def test_blank_avatar_name_is_rejected(client, runner):
    response = client.post("/add-banner", json=dict(SINGLE_PAYLOAD, avatar_name="   "))

    assert response.status_code == 400
    assert response.get_json()["error"] == "Failed to process video"


def test_job_failure_response(client, monkeypatch):
    monkeypatch.setattr(add_banner_routes, "banner_runner",
                        FakeRunner(error=FetchError(message="Download failed after 5 attempts")))

    response = client.post("/add-banner", json=SINGLE_PAYLOAD)

    assert response.status_code == 500
    body = response.get_json()
    assert body["success"] is False
    assert body["error"] == "Failed to process video"
    assert body["error_code"] == "fetch_error"
    assert body["details"] == "Download failed after 5 attempts"
    assert body["job_id"]


def test_geometry_failure_is_unprocessable(client, monkeypatch):
    monkeypatch.setattr(add_banner_routes, "banner_runner", FakeRunner(error=GeometryError(message="bad duration")))

    response = client.post("/add-banner", json=SINGLE_PAYLOAD)

    assert response.status_code == 422


@pytest.mark.parametrize("path", ["/add-banners-batch", "/v1/video/add_banners_batch"])
def test_add_banners_batch(client, runner, path):
    payload = {
        "video_url": "https://cdn.example.com/source.mp4",
        "avatar_name": "Sarah",
        "platforms": ["tiktok", "Instagram", "tiktok"],
    }

    response = client.post(path, json=payload)

    assert response.status_code == 200
    body = response.get_json()
    assert body["success"] is True
    assert body["avatar_name"] == "Sarah"
    assert [r["platform"] for r in body["results"]] == ["TIKTOK", "INSTAGRAM", "TIKTOK"]


def test_batch_requires_platforms(client, runner):
    payload = {"video_url": "https://cdn.example.com/source.mp4", "avatar_name": "Sarah", "platforms": []}

    assert client.post("/add-banners-batch", json=payload).status_code == 400
    assert runner.requests == []


def test_batch_failure_response(client, monkeypatch):
    monkeypatch.setattr(add_banner_routes, "banner_runner", FakeRunner(error=FetchError(message="gone")))
    payload = {"video_url": "https://cdn.example.com/source.mp4", "avatar_name": "Sarah", "platforms": ["x"]}

    response = client.post("/add-banners-batch", json=payload)

    assert response.status_code == 500
    assert response.get_json()["error"] == "Failed to process videos"


def test_index_and_version(client):
    assert "/add-banner" in client.get("/").get_json()["endpoints"]["banner"]
    assert client.get("/version").get_json()["version"]


def test_health_reports_checks(client):
    response = client.get("/health")

    assert response.status_code in (200, 503)
    assert set(response.get_json()["checks"]) >= {"storage", "ffmpeg", "ffprobe", "disk"}


def test_storage_serves_published_files(client, isolated_dirs):
    (isolated_dirs["storage"] / "clip.mp4").write_bytes(b"video")

    response = client.get("/storage/clip.mp4")

    assert response.status_code == 200
    assert response.data == b"video"
    assert client.get("/storage/missing.mp4").status_code == 404


def test_unknown_route_is_json_404(client):
    response = client.get("/nope")

    assert response.status_code == 404
    assert response.get_json()["status"] == "error"


def test_health_includes_cleanup_status(client, monkeypatch):
    service = CleanupService(interval_minutes=5, max_file_age_hours=1)
    service.run_now()
    monkeypatch.setattr(app_module, "cleanup_service", service)

    cleanup = client.get("/health").get_json()["checks"]["cleanup"]

    assert cleanup["run_count"] == 1
    assert cleanup["last_result"]["files_removed"] == 0


def test_caller_request_id_is_echoed(client):
    response = client.get("/version", headers={"X-Request-ID": "abc"})

    assert response.headers["X-Request-ID"] == "abc"


def test_crash_below_flask_is_json_500():
    app = Flask("crashing")
    middleware = error_middleware.ErrorHandlingMiddleware(app)

    def crash(environ, start_response):
        raise RuntimeError("boom")

    middleware.wsgi_app = crash

    response = app.test_client().get("/", headers={"X-Request-ID": "req-1"})

    assert response.status_code == 500
    assert response.headers["X-Request-ID"] == "req-1"
    body = response.get_json()
    assert body["error"] == "internal_error"
    assert body["request_id"] == "req-1"
