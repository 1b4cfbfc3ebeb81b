"""
API tests through FastAPI's TestClient.

Every test gets its own app built from explicit settings pointing at
tmp_path, so local storage and uploaded files never touch the repo.
"""

import time

import boto3
import pytest
from fastapi.testclient import TestClient

from showcase.config.settings import Settings
from showcase.main import create_app

API_KEY = "test-key"
AUTH = {"X-API-Key": API_KEY}


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        local_storage_path=str(tmp_path / "local-storage.json"),
        upload_dir=str(tmp_path / "uploaded-video"),
        api_keys=API_KEY,
        _env_file=None,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def client(tmp_path):
    with TestClient(create_app(make_settings(tmp_path))) as client:
        yield client


@pytest.fixture
def remote_client(tmp_path):
    settings = make_settings(
        tmp_path,
        store_backend="remote",
        snowflake_mock_mode=True,
        r2_mock_mode=True,
        collection_poll_interval_seconds=0.05,
    )
    with TestClient(create_app(settings)) as client:
        yield client


def add_video(client, name, url=None, **kwargs):
    data = {"name": name}
    if url:
        data["url"] = url
    return client.post("/api/v1/videos", data=data, headers=AUTH, **kwargs)


def wait_for_count(client, count, timeout=2.0):
    deadline = time.monotonic() + timeout
    while True:
        body = client.get("/api/v1/videos").json()
        if body["count"] == count or time.monotonic() > deadline:
            return body
        time.sleep(0.02)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class TestHealth:

    def test_health_reports_backend(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["details"]["backend"] == "local"

    def test_ready_when_store_loaded(self, client):
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_not_ready_when_remote_config_missing(self, tmp_path, monkeypatch):
        # no R2 credentials; the boto3 client itself is never called
        monkeypatch.setattr(boto3, "client", lambda *args, **kwargs: object())
        settings = make_settings(
            tmp_path,
            store_backend="remote",
            snowflake_mock_mode=True,
            r2_mock_mode=False,
            r2_endpoint_url="http://localhost:9000",
        )
        with TestClient(create_app(settings)) as client:
            response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["checks"][0]["name"] == "configuration"


# ---------------------------------------------------------------------------
# Upload endpoint
# ---------------------------------------------------------------------------

class TestUploadEndpoint:

    def test_upload_test_endpoint(self, client):
        assert client.get("/api/upload-test").json() == {"status": "ok"}

    def test_upload_saves_file_under_original_name(self, client, tmp_path):
        response = client.post(
            "/api/upload",
            files={"file": ("intro.mp4", b"video-bytes", "video/mp4")},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Upload successful"
        [info] = body["files"]["file"]
        assert info["newFilename"] == "intro.mp4"
        assert info["size"] == len(b"video-bytes")
        assert (tmp_path / "uploaded-video" / "intro.mp4").read_bytes() == b"video-bytes"

    def test_uploaded_file_is_served(self, client):
        client.post("/api/upload", files={"file": ("intro.mp4", b"video-bytes", "video/mp4")})

        response = client.get("/uploaded-video/intro.mp4")

        assert response.status_code == 200
        assert response.content == b"video-bytes"

    def test_directory_components_are_stripped(self, client, tmp_path):
        response = client.post(
            "/api/upload",
            files={"file": ("../../escape.txt", b"x", "text/plain")},
        )

        assert response.json()["files"]["file"][0]["newFilename"] == "escape.txt"
        assert (tmp_path / "uploaded-video" / "escape.txt").exists()

    def test_oversized_file_is_rejected_and_removed(self, tmp_path):
        settings = make_settings(tmp_path, max_upload_size_mb=1)
        with TestClient(create_app(settings)) as client:
            response = client.post(
                "/api/upload",
                files={"file": ("big.bin", b"0" * (1024 * 1024 + 1), "application/octet-stream")},
            )

        assert response.status_code == 500
        assert "exceeds maximum size" in response.json()["error"]
        assert not (tmp_path / "uploaded-video" / "big.bin").exists()


# ---------------------------------------------------------------------------
# Videos (local backend)
# ---------------------------------------------------------------------------

class TestVideos:

    def test_empty_list(self, client):
        body = client.get("/api/v1/videos").json()

        assert body == {"videos": [], "count": 0, "loaded": True, "error": None}

    def test_add_by_url_returns_record(self, client):
        response = add_video(client, "Intro", url="/videos/intro.mp4")

        assert response.status_code == 201
        video = response.json()["video"]
        assert video["name"] == "Intro"
        assert video["order"] == 0
        assert client.get(f"/api/v1/videos/{video['id']}").json() == video

    def test_add_with_file_creates_blob_reference(self, client):
        response = add_video(
            client, "Clip",
            files={"file": ("clip.mp4", b"video-bytes", "video/mp4")},
        )

        assert response.status_code == 201
        assert response.json()["video"]["url"].startswith("blob:")

    def test_add_without_url_or_file_is_rejected(self, client):
        response = add_video(client, "Nothing")

        assert response.status_code == 400
        assert "url or a file" in response.json()["detail"]

    def test_mutations_require_api_key(self, client):
        response = client.post("/api/v1/videos", data={"name": "A", "url": "/a.mp4"})
        assert response.status_code == 403

        response = client.post(
            "/api/v1/videos",
            data={"name": "A", "url": "/a.mp4"},
            headers={"X-API-Key": "wrong"},
        )
        assert response.status_code == 403

    def test_get_unknown_video_is_404(self, client):
        assert client.get("/api/v1/videos/missing").status_code == 404

    def test_update_video(self, client):
        video = add_video(client, "Old", url="/a.mp4").json()["video"]

        response = client.patch(f"/api/v1/videos/{video['id']}", json={"name": "New"}, headers=AUTH)

        assert response.status_code == 204
        assert client.get(f"/api/v1/videos/{video['id']}").json()["name"] == "New"

    def test_update_without_fields_is_rejected(self, client):
        video = add_video(client, "Old", url="/a.mp4").json()["video"]

        response = client.patch(f"/api/v1/videos/{video['id']}", json={}, headers=AUTH)

        assert response.status_code == 400

    @pytest.mark.parametrize("field", ["name", "url"])
    def test_update_cannot_null_required_fields(self, client, field):
        video = add_video(client, "Old", url="/a.mp4").json()["video"]

        response = client.patch(f"/api/v1/videos/{video['id']}", json={field: None}, headers=AUTH)

        assert response.status_code == 422
        listing = client.get("/api/v1/videos")
        assert listing.status_code == 200
        assert listing.json()["videos"] == [video]

    def test_update_can_clear_thumbnail(self, client):
        video = client.post(
            "/api/v1/videos",
            data={"name": "Old", "url": "/a.mp4", "thumbnail": "/a.jpg"},
            headers=AUTH,
        ).json()["video"]

        response = client.patch(f"/api/v1/videos/{video['id']}", json={"thumbnail": None}, headers=AUTH)

        assert response.status_code == 204
        assert client.get(f"/api/v1/videos/{video['id']}").json()["thumbnail"] is None

    def test_update_unknown_video_is_404(self, client):
        response = client.patch("/api/v1/videos/missing", json={"name": "x"}, headers=AUTH)

        assert response.status_code == 404

    def test_delete_video_renumbers(self, client):
        first = add_video(client, "First", url="/1.mp4").json()["video"]
        add_video(client, "Second", url="/2.mp4")

        response = client.delete(f"/api/v1/videos/{first['id']}", headers=AUTH)

        assert response.status_code == 204
        body = client.get("/api/v1/videos").json()
        assert [(v["name"], v["order"]) for v in body["videos"]] == [("Second", 0)]

    def test_delete_unknown_video_is_404(self, client):
        assert client.delete("/api/v1/videos/missing", headers=AUTH).status_code == 404

    def test_reorder(self, client):
        for name in ("A", "B", "C"):
            add_video(client, name, url=f"/{name}.mp4")

        response = client.post(
            "/api/v1/videos/reorder",
            json={"from_index": 2, "to_index": 0},
            headers=AUTH,
        )

        assert response.status_code == 200
        videos = response.json()["videos"]
        assert [v["name"] for v in videos] == ["C", "A", "B"]
        assert [v["order"] for v in videos] == [0, 1, 2]

    def test_reorder_out_of_range_is_400(self, client):
        add_video(client, "A", url="/a.mp4")

        response = client.post(
            "/api/v1/videos/reorder",
            json={"from_index": 0, "to_index": 3},
            headers=AUTH,
        )

        assert response.status_code == 400

    def test_collection_survives_restart(self, tmp_path):
        settings = make_settings(tmp_path)
        with TestClient(create_app(settings)) as client:
            add_video(client, "Kept", url="/kept.mp4")

        with TestClient(create_app(settings)) as client:
            body = client.get("/api/v1/videos").json()

        assert [v["name"] for v in body["videos"]] == ["Kept"]


# ---------------------------------------------------------------------------
# Videos (remote backend, mock services)
# ---------------------------------------------------------------------------

class TestRemoteVideos:

    def test_add_is_confirmed_then_delivered(self, remote_client):
        response = add_video(
            remote_client, "Clip",
            files={"file": ("clip.mp4", b"video-bytes", "video/mp4")},
        )

        assert response.status_code == 201
        assert response.json() == {"created": True, "video": None}

        body = wait_for_count(remote_client, 1)
        assert body["count"] == 1
        assert body["videos"][0]["url"].startswith("mock://storage/videos/")

    def test_delete(self, remote_client):
        add_video(remote_client, "Clip", url="https://cdn.example.com/clip.mp4")
        video = wait_for_count(remote_client, 1)["videos"][0]

        response = remote_client.delete(f"/api/v1/videos/{video['id']}", headers=AUTH)

        assert response.status_code == 204
        assert wait_for_count(remote_client, 0)["count"] == 0

    def test_reorder_is_conflict(self, remote_client):
        response = remote_client.post(
            "/api/v1/videos/reorder",
            json={"from_index": 0, "to_index": 0},
            headers=AUTH,
        )

        assert response.status_code == 409
