"""Tests for the HTTP surface over projects and the storage budget."""

import pytest
from fastapi.testclient import TestClient

from truecrime_studio.api.deps import build_storage_context, get_storage_context
from truecrime_studio.core.config import Settings
from truecrime_studio.main import app
from truecrime_studio.schemas.storage import UploadResult
from truecrime_studio.services.blob_offload import MediaOffloader
from truecrime_studio.services.kv_store import InMemoryKeyValueStore, StorageError


class ReadOnlyAfterSeedStore(InMemoryKeyValueStore):
    def __init__(self) -> None:
        super().__init__()
        self.read_only = False

    def set_item(self, key, value):
        if self.read_only:
            raise StorageError("disk is read-only")
        super().set_item(key, value)


class RecordingGateway:
    def __init__(self) -> None:
        self.deleted = []

    def upload_blob(self, data, mime_type, suggested_name):
        return UploadResult(url=f"https://cdn.example/{suggested_name}", path=suggested_name, size=len(data))

    def delete_blob(self, path):
        self.deleted.append(path)


def make_context(capacity_bytes: int = 10_000, store_capacity=None, store=None, offloader=None):
    settings = Settings(store_backend="memory", storage_quota_bytes=capacity_bytes)
    if store is None:
        store = InMemoryKeyValueStore(capacity_bytes=store_capacity)
    return build_storage_context(settings, store=store, offloader=offloader)


@pytest.fixture
def context():
    return make_context()


@pytest.fixture
def client(context):
    app.dependency_overrides[get_storage_context] = lambda: context
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_project_lifecycle(client):
    created = client.put("/api/projects", json={"name": "Lakeside", "scriptText": "Narration"})
    assert created.status_code == 200
    body = created.json()
    project_id = body["id"]
    assert project_id.startswith("project-")
    assert body["scriptText"] == "Narration"
    assert body["createdAt"] is not None

    updated = client.put("/api/projects", json={**body, "currentPhase": 3})
    assert updated.status_code == 200
    assert updated.json()["createdAt"] == body["createdAt"]

    listed = client.get("/api/projects").json()
    assert [p["id"] for p in listed] == [project_id]
    assert listed[0]["currentPhase"] == 3

    assert client.get(f"/api/projects/{project_id}").status_code == 200
    assert client.delete(f"/api/projects/{project_id}").json() == {"deleted": True, "id": project_id}
    assert client.get(f"/api/projects/{project_id}").status_code == 404
    assert client.delete(f"/api/projects/{project_id}").status_code == 404


def test_save_reports_insufficient_storage():
    context = make_context(store_capacity=100)
    app.dependency_overrides[get_storage_context] = lambda: context
    try:
        response = TestClient(app).put("/api/projects", json={"name": "Big", "scriptText": "x" * 500})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 507


def test_storage_status_and_metadata(client, context):
    client.put("/api/projects", json={"name": "Lakeside", "scriptText": "n" * 2000})

    status = client.get("/api/storage/status").json()
    assert status["status"] == "healthy"
    assert status["capacity_bytes"] == 10_000
    assert status["used_bytes"] == context.monitor.get_usage().used_bytes

    metadata = client.get("/api/storage/projects").json()
    assert len(metadata) == 1
    assert metadata[0]["name"] == "Lakeside"
    assert metadata[0]["size_bytes"] > 2000


def test_optimize_strips_previews(client, context):
    client.put(
        "/api/projects",
        json={
            "name": "Storyboarded",
            "storyboardData": {"scenes": [{"sceneId": "s1", "previewImage": "data:image/png;base64," + "A" * 1000}]},
        },
    )

    response = client.post("/api/storage/optimize")

    assert response.status_code == 200
    assert response.json()["optimized"] == 1
    stored = context.repository.get_all()[0]
    assert stored.storyboard_data.scenes[0].preview_image is None


def test_optimize_single_project(client):
    project_id = client.put("/api/projects", json={"name": "One"}).json()["id"]

    assert client.post(f"/api/storage/projects/{project_id}/optimize").status_code == 200
    assert client.post("/api/storage/projects/project-404/optimize").status_code == 404


def test_cleanup_evicts_oldest(client, context):
    first = client.put("/api/projects", json={"name": "Old", "scriptText": "o" * 3000}).json()
    second = client.put("/api/projects", json={"name": "New", "scriptText": "n" * 3000}).json()
    context.store.set_item("user_preferences", "p" * 2500)

    response = client.post("/api/storage/cleanup", json={"target_percentage": 70})

    assert response.status_code == 200
    report = response.json()["report"]
    assert report["evicted_ids"] == [first["id"]]
    assert report["exhausted"] is False
    remaining = [p["id"] for p in client.get("/api/projects").json()]
    assert remaining == [second["id"]]


def test_optimize_single_project_reports_failed_write():
    store = ReadOnlyAfterSeedStore()
    context = make_context(store=store)
    app.dependency_overrides[get_storage_context] = lambda: context
    try:
        client = TestClient(app)
        project_id = client.put(
            "/api/projects",
            json={
                "name": "Storyboarded",
                "storyboardData": {"scenes": [{"sceneId": "s1", "previewImage": "data:image/png;base64," + "A" * 1000}]},
            },
        ).json()["id"]
        store.read_only = True

        response = client.post(f"/api/storage/projects/{project_id}/optimize")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 507
    stored = context.repository.get(project_id)
    assert stored.storyboard_data.scenes[0].preview_image.startswith("data:image/png")


def test_deleting_a_project_releases_offloaded_media():
    gateway = RecordingGateway()
    context = make_context(offloader=MediaOffloader(gateway))
    app.dependency_overrides[get_storage_context] = lambda: context
    try:
        client = TestClient(app)
        project_id = client.put(
            "/api/projects",
            json={
                "name": "Offloaded",
                "voiceoverData": {"audioUrl": "https://cdn.example/a.mp3", "audioPath": "a.mp3"},
                "storyboardData": {
                    "scenes": [{"sceneId": "s1", "previewImage": "https://cdn.example/s1.png", "previewImagePath": "s1.png"}]
                },
            },
        ).json()["id"]

        response = client.delete(f"/api/projects/{project_id}")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert gateway.deleted == ["a.mp3", "s1.png"]


def test_cleanup_releases_offloaded_media_of_evicted_projects():
    gateway = RecordingGateway()
    context = make_context(offloader=MediaOffloader(gateway))
    app.dependency_overrides[get_storage_context] = lambda: context
    try:
        client = TestClient(app)
        client.put(
            "/api/projects",
            json={
                "name": "Old",
                "scriptText": "o" * 3000,
                "voiceoverData": {"audioUrl": "https://cdn.example/old.mp3", "audioPath": "old.mp3"},
            },
        )
        client.put("/api/projects", json={"name": "New", "scriptText": "n" * 3000})
        context.store.set_item("user_preferences", "p" * 2500)

        response = client.post("/api/storage/cleanup", json={"target_percentage": 70})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert gateway.deleted == ["old.mp3"]
