"""Test the playback progress API end to end.

Testing Strategy:
1. App: real application built by create_app with ENVIRONMENT=test
2. HTTP: httpx AsyncClient over ASGITransport, no network
3. Websocket: Starlette TestClient sharing one portal with HTTP calls
"""

import json
import time

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from playsync.config.settings import Settings
from playsync.main import create_app
from tests.fixtures.progress import make_position, make_scene, make_session


VIDEO = "video-42"
USER = "user-7"
PROGRESS_URL = f"/api/v1/playback/progress/{VIDEO}/{USER}"
SCENES_URL = f"/api/v1/playback/videos/{VIDEO}/scenes"

SCENES = [make_scene("intro", 0, 60), make_scene("chase", 60, 120), make_scene("finale", 120, 180)]


def update_body(position: float, *, surface_id: str = "surface-1", state: str = "active", session=None) -> dict:
    return {
        "surfaceId": surface_id,
        "position": make_position(position, duration=180).to_wire(),
        "session": (session or make_session()).to_wire(),
        "state": state,
    }


@pytest.fixture
def app() -> FastAPI:
    return create_app(Settings(ENVIRONMENT="test"))


@pytest.fixture
async def client(app: FastAPI):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


async def test_health(client: AsyncClient) -> None:
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


class TestScenes:
    async def test_set_and_list_scenes(self, client: AsyncClient) -> None:
        response = await client.put(SCENES_URL, json=[scene.to_wire() for scene in SCENES])
        assert response.status_code == 200
        assert [scene["sceneId"] for scene in response.json()] == ["intro", "chase", "finale"]

        response = await client.get(SCENES_URL)
        assert response.status_code == 200
        assert response.json()[1]["startTime"] == 60

    async def test_upcoming_scenes(self, client: AsyncClient) -> None:
        await client.put(SCENES_URL, json=[scene.to_wire() for scene in SCENES])

        response = await client.get(SCENES_URL, params={"position": 59})
        assert [scene["sceneId"] for scene in response.json()] == ["chase", "finale"]

        response = await client.get(SCENES_URL, params={"position": 0, "limit": 1})
        assert [scene["sceneId"] for scene in response.json()] == ["chase"]

        response = await client.get(SCENES_URL, params={"position": 125})
        assert response.json() == []

    async def test_unknown_video_has_no_scenes(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/playback/videos/unknown/scenes")
        assert response.status_code == 200
        assert response.json() == []

    async def test_invalid_scene_is_rejected(self, client: AsyncClient) -> None:
        response = await client.put(
            SCENES_URL, json=[{"sceneId": "broken", "title": "Broken", "startTime": 30, "endTime": 10}]
        )
        assert response.status_code == 422
        assert response.json()["error"]["category"] == "VALIDATION_ERROR"


class TestProgress:
    async def test_update_then_get(self, client: AsyncClient) -> None:
        await client.put(SCENES_URL, json=[scene.to_wire() for scene in SCENES])

        response = await client.put(PROGRESS_URL, json=update_body(90))
        assert response.status_code == 200
        body = response.json()
        assert body["videoId"] == VIDEO
        assert body["userId"] == USER
        assert body["state"] == "active"
        assert body["lastSceneId"] == "chase"
        assert body["position"]["progress"] == 50.0

        response = await client.get(PROGRESS_URL)
        assert response.status_code == 200
        assert response.json()["position"]["position"] == 90

    async def test_reported_state_is_kept(self, client: AsyncClient) -> None:
        response = await client.put(PROGRESS_URL, json=update_body(30, state="paused"))
        assert response.json()["state"] == "paused"

    async def test_missing_progress_is_not_found(self, client: AsyncClient) -> None:
        response = await client.get(PROGRESS_URL)
        assert response.status_code == 404
        error = response.json()["error"]
        assert error["category"] == "RESOURCE_NOT_FOUND"
        assert error["code"] == "NOT_FOUND"
        assert f"{VIDEO}/{USER}" in error["detail"]

    async def test_negative_position_is_rejected(self, client: AsyncClient) -> None:
        body = update_body(10)
        body["position"]["position"] = -5
        response = await client.put(PROGRESS_URL, json=body)

        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "INVALID_INPUT"
        assert any("position" in item["field"] for item in error["metadata"]["errors"])

    async def test_infinite_position_is_rejected(self, client: AsyncClient) -> None:
        body = json.dumps(update_body(10)).replace('"position": 10.0', '"position": Infinity')
        assert "Infinity" in body

        response = await client.put(PROGRESS_URL, content=body, headers={"Content-Type": "application/json"})
        assert response.status_code == 422

        response = await client.get(PROGRESS_URL)
        assert response.status_code == 404

    async def test_unknown_state_is_rejected(self, client: AsyncClient) -> None:
        response = await client.put(PROGRESS_URL, json=update_body(10, state="rewinding"))
        assert response.status_code == 422

    async def test_clear_progress(self, client: AsyncClient) -> None:
        await client.put(PROGRESS_URL, json=update_body(30))

        response = await client.delete(PROGRESS_URL, params={"reason": "user_action"})
        assert response.status_code == 204

        response = await client.get(PROGRESS_URL)
        assert response.status_code == 404

    async def test_clear_missing_progress(self, client: AsyncClient) -> None:
        response = await client.delete(PROGRESS_URL)
        assert response.status_code == 404


class TestSync:
    async def test_sync_to_another_device(self, client: AsyncClient) -> None:
        await client.put(SCENES_URL, json=[scene.to_wire() for scene in SCENES])
        await client.put(PROGRESS_URL, json=update_body(30))

        response = await client.post(f"{PROGRESS_URL}/sync", json={"surfaceId": "tv", "deviceId": "device-tv"})

        assert response.status_code == 200
        body = response.json()
        assert body["type"] == "progressSync"
        assert body["surfaceId"] == "tv"
        assert body["isResume"] is True
        assert body["sourceSession"]["deviceId"] == "device-desktop"
        assert [scene["sceneId"] for scene in body["nextScenes"]] == ["chase", "finale"]

    async def test_sync_without_progress(self, client: AsyncClient) -> None:
        response = await client.post(f"{PROGRESS_URL}/sync", json={"surfaceId": "tv"})
        assert response.status_code == 404


class TestProgressSocket:
    @pytest.fixture
    def sync_client(self, app: FastAPI):
        with TestClient(app) as client:
            yield client

    def wait_for_progress(self, client: TestClient) -> dict:
        for _ in range(50):
            response = client.get(PROGRESS_URL)
            if response.status_code == 200:
                return response.json()
            time.sleep(0.01)
        pytest.fail("Progress was never recorded")

    def test_outbound_messages_reach_their_surface(self, sync_client: TestClient) -> None:
        with sync_client.websocket_connect("/api/v1/playback/ws/surface-1") as websocket:
            response = sync_client.put(PROGRESS_URL, json=update_body(45))
            assert response.status_code == 200

            message = websocket.receive_json()
            assert message["type"] == "updateProgress"
            assert message["surfaceId"] == "surface-1"
            assert message["position"]["position"] == 45

    def test_inbound_update_is_recorded(self, sync_client: TestClient) -> None:
        session = make_session("sess-phone", "device-phone")
        with sync_client.websocket_connect("/api/v1/playback/ws/phone") as websocket:
            websocket.send_text("not json")
            websocket.send_json({"type": "updateProgress", "surfaceId": "phone", "videoId": VIDEO})
            websocket.send_json({"type": "rewind", "surfaceId": "phone"})
            websocket.send_json(
                {
                    "type": "updateProgress",
                    "surfaceId": "phone",
                    "videoId": VIDEO,
                    "userId": USER,
                    "position": make_position(75, duration=180).to_wire(),
                    "session": session.to_wire(),
                    "state": "paused",
                    "timestamp": "2025-01-15T10:00:00Z",
                }
            )
            body = self.wait_for_progress(sync_client)

        assert body["session"]["sessionId"] == "sess-phone"
        assert body["state"] == "paused"
