"""
Tests for generation tracking and the HTTP API.

Repository and tracker tests use a throwaway SQLite file; API tests run the
FastAPI app through TestClient with the kie.ai client swapped for one backed
by httpx.MockTransport.
"""

import time

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from helpers import Recorder, envelope, status_payload
from kie_media.api.deps import get_kie_client
from kie_media.core.errors import ValidationError
from kie_media.db import generations_repo
from kie_media.db.connection import close_db, connect_db
from kie_media.main import app
from kie_media.services.generations import active_trackers, start_generation, track_generation

RESULT_URL = "https://cdn.kie.test/out/image.png"


@pytest_asyncio.fixture
async def db(tmp_path):
    await connect_db(str(tmp_path / "generations.db"))
    yield
    await close_db()


class TestGenerationsRepo:
    @pytest.mark.asyncio
    async def test_create_and_fetch(self, db):
        generation_id = await generations_repo.create_generation(
            "test/scenario", {"text": "hi"}, "task-1"
        )

        record = await generations_repo.fetch_generation(generation_id)

        assert generation_id.startswith("gen_")
        assert record["status"] == "submitted"
        assert record["input"] == {"text": "hi"}
        assert record["result"] is None

    @pytest.mark.asyncio
    async def test_update_json_columns(self, db):
        generation_id = await generations_repo.create_generation("test/scenario", {}, "task-1")

        await generations_repo.update_generation(
            generation_id, status="failed", error={"message": "boom", "code": 500}
        )

        record = await generations_repo.fetch_generation(generation_id)
        assert record["status"] == "failed"
        assert record["error"] == {"message": "boom", "code": 500}

    @pytest.mark.asyncio
    async def test_events_in_order(self, db):
        generation_id = await generations_repo.create_generation("test/scenario", {}, "task-1")
        await generations_repo.record_event(generation_id, "info", "first")
        await generations_repo.record_event(generation_id, "warn", "second", {"k": 1})

        events = await generations_repo.fetch_events(generation_id)

        assert [event["message"] for event in events] == ["first", "second"]
        assert events[1]["meta"] == {"k": 1}

    @pytest.mark.asyncio
    async def test_missing_generation(self, db):
        assert await generations_repo.fetch_generation("gen_missing") is None


class TestTracker:
    @pytest.mark.asyncio
    async def test_success_is_recorded(self, db, make_client):
        recorder = Recorder(
            statuses=[
                status_payload("queuing"),
                status_payload("generating"),
                status_payload("generating"),
                status_payload("success", [RESULT_URL]),
            ]
        )
        client = make_client(recorder)

        started = await start_generation(client, "test/scenario", {"text": "hi"})
        await active_trackers[started["generation_id"]]

        record = await generations_repo.fetch_generation(started["generation_id"])
        assert record["status"] == "succeeded"
        assert record["remote_state"] == "success"
        assert record["input"] == {"text": "hi", "choice": "a"}
        assert record["result"] == {"resultUrls": [RESULT_URL]}
        assert started["generation_id"] not in active_trackers
        messages = [
            event["message"]
            for event in await generations_repo.fetch_events(started["generation_id"])
        ]
        assert messages == ["task submitted", "task succeeded"]

    @pytest.mark.asyncio
    async def test_failure_is_recorded(self, db, make_client):
        recorder = Recorder(
            statuses=[status_payload("fail", fail_msg="content policy", fail_code="501")]
        )
        generation_id = await generations_repo.create_generation("test/scenario", {}, "task-9")

        await track_generation(make_client(recorder), generation_id, "task-9")

        record = await generations_repo.fetch_generation(generation_id)
        assert record["status"] == "failed"
        assert record["error"] == {"message": "content policy", "code": "501"}

    @pytest.mark.asyncio
    async def test_unavailable_status_is_recorded(self, db, make_client):
        recorder = Recorder(statuses=[status_payload("paused")])
        generation_id = await generations_repo.create_generation("test/scenario", {}, "task-9")

        await track_generation(make_client(recorder), generation_id, "task-9")

        record = await generations_repo.fetch_generation(generation_id)
        assert record["status"] == "failed"
        assert "paused" in record["error"]["message"]

    @pytest.mark.asyncio
    async def test_invalid_input_is_not_persisted(self, db, make_client):
        recorder = Recorder()

        with pytest.raises(ValidationError):
            await start_generation(make_client(recorder), "test/scenario", {})

        assert await generations_repo.fetch_generations() == []
        assert recorder.requests == []


@pytest.fixture
def api():
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def wait_for_status(api, generation_id: str, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        record = api.get(f"/generations/{generation_id}").json()
        if record["status"] not in ("submitted", "running") or time.monotonic() > deadline:
            return record
        time.sleep(0.01)


class TestApi:
    def test_health(self, api):
        response = api.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["generations_enabled"] is False

    def test_status(self, api):
        body = api.get("/status").json()
        assert body["catalog"]["models"] > 0
        assert "active" in body["trackers"]

    def test_list_models_by_category(self, api):
        models = api.get("/models", params={"category": "image"}).json()["models"]
        assert {model["id"] for model in models} >= {"google/nano-banana", "nano-banana-pro"}
        assert all(model["type"] == "image" for model in models)

    def test_list_models_rejects_unknown_category(self, api):
        assert api.get("/models", params={"category": "text"}).status_code == 422

    def test_get_model(self, api):
        body = api.get("/models/kling-2.6/text-to-video").json()
        assert body["id"] == "kling-2.6/text-to-video"
        assert body["input"]["prompt"] == {"type": "string", "max": 2500, "required": True}

    def test_get_unknown_model(self, api):
        assert api.get("/models/nope/model").status_code == 404

    def test_validate_fills_defaults(self, api):
        response = api.post("/models/google/nano-banana/validate", json={"prompt": "a banana"})
        assert response.status_code == 200
        assert response.json() == {
            "model": "google/nano-banana",
            "input": {"prompt": "a banana", "output_format": "png", "image_size": "1:1"},
        }

    def test_validate_reports_issues(self, api):
        response = api.post(
            "/models/google/nano-banana/validate", json={"output_format": "gif"}
        )
        assert response.status_code == 422
        issues = response.json()["detail"]["issues"]
        assert {(issue["field"], issue["rule"]) for issue in issues} == {
            ("prompt", "missing"),
            ("output_format", "not_in_enum"),
        }

    def test_validate_unknown_model(self, api):
        assert api.post("/models/nope/model/validate", json={}).status_code == 404

    def test_generation_without_api_key(self, api):
        response = api.post(
            "/generations", json={"model": "google/nano-banana", "input": {"prompt": "x"}}
        )
        assert response.status_code == 503

    def test_generation_lifecycle(self, api, make_client):
        recorder = Recorder(
            statuses=[status_payload("generating"), status_payload("success", [RESULT_URL])]
        )
        app.dependency_overrides[get_kie_client] = lambda: make_client(recorder)

        response = api.post(
            "/generations", json={"model": "test/scenario", "input": {"text": "hello"}}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["task_id"] == "task-1"
        assert body["status"] == "submitted"
        record = wait_for_status(api, body["generation_id"])
        assert record["status"] == "succeeded"
        assert record["result"] == {"resultUrls": [RESULT_URL]}
        assert [event["message"] for event in record["events"]] == [
            "task submitted",
            "task succeeded",
        ]
        listed = api.get("/generations").json()["generations"]
        assert body["generation_id"] in {item["generation_id"] for item in listed}

    def test_generation_invalid_input(self, api, make_client):
        recorder = Recorder()
        app.dependency_overrides[get_kie_client] = lambda: make_client(recorder)

        response = api.post(
            "/generations", json={"model": "test/scenario", "input": {"text": "far too long"}}
        )

        assert response.status_code == 422
        assert response.json()["detail"]["issues"][0]["rule"] == "too_long"
        assert recorder.requests == []

    def test_generation_rejected_by_service(self, api, make_client):
        recorder = Recorder(create=envelope(None, code=402, msg="insufficient credits"))
        app.dependency_overrides[get_kie_client] = lambda: make_client(recorder)

        response = api.post(
            "/generations", json={"model": "test/scenario", "input": {"text": "hello"}}
        )

        assert response.status_code == 502
        assert response.json()["detail"] == {"code": 402, "message": "insufficient credits"}

    def test_unknown_generation(self, api):
        assert api.get("/generations/gen_missing").status_code == 404

    def test_events_socket_greets(self, api):
        with api.websocket_connect("/events") as websocket:
            message = websocket.receive_json()
        assert message["type"] == "connected"
        assert isinstance(message["active_generations"], list)
