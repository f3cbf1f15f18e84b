############################################################
#
# videorelay - Async Video Generation Relay and Quota Ledger
#
# test_video_api.py: Unit tests for the HTTP surface
#
# Luke Sheneman
# Research Computing and Data Services (RCDS)
# Institute for Interdisciplinary Data Sciences (IIDS)
# University of Idaho
# sheneman@uidaho.edu
#
############################################################

"""Unit tests for the video and health endpoints."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from backend.app.api.auth import authenticate_request, get_relay_context
from backend.app.core.canonical_schemas import VideoRelayResult
from backend.app.core.errors import InsufficientQuota
from backend.app.db.models import Task, TaskPlatform, TaskStatus
from backend.app.db.session import get_async_db
from backend.app.main import create_app


async def _fake_db():
    yield MagicMock()


@pytest.fixture
def app(relay_ctx):
    app = create_app()
    app.dependency_overrides[get_async_db] = _fake_db
    app.dependency_overrides[get_relay_context] = lambda: relay_ctx
    return app


@pytest.fixture
def client(app):
    return TestClient(app)


def _task(task_id: str = "t-1") -> Task:
    return Task(
        task_id=task_id,
        platform=TaskPlatform.GENERIC,
        user_id=1,
        action="generate",
        model="wanx2.1-i2v-turbo",
        status=TaskStatus.SUBMITTED,
        progress="0%",
        quota=80000,
        submit_time=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


class TestCreateGeneration:
    """Tests for POST /v1/video/generations."""

    def test_success(self, client, i2v_request):
        result = VideoRelayResult(task_id="t-1", model="wanx2.1-i2v-turbo", quota=80000, duration_ratio=4.0)
        with patch("backend.app.api.video_api.VideoRelayService") as service_cls:
            service_cls.return_value.relay = AsyncMock(return_value=result)
            response = client.post("/v1/video/generations", json=i2v_request)

        assert response.status_code == 200
        assert response.json() == {
            "id": "t-1",
            "object": "video.generation",
            "model": "wanx2.1-i2v-turbo",
            "status": "submitted",
        }
        ctx, body = service_cls.return_value.relay.await_args.args
        assert ctx.user_id == 1
        assert body == i2v_request

    def test_relay_error_rendered(self, client, i2v_request):
        with patch("backend.app.api.video_api.VideoRelayService") as service_cls:
            service_cls.return_value.relay = AsyncMock(side_effect=InsufficientQuota("need more"))
            response = client.post("/v1/video/generations", json=i2v_request)

        assert response.status_code == 403
        assert response.json() == {
            "error": {
                "message": "need more",
                "type": "videorelay_error",
                "code": "insufficient_user_quota",
            }
        }

    def test_invalid_json(self, client):
        response = client.post(
            "/v1/video/generations",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_video_request"

    def test_missing_api_key(self, app, i2v_request):
        del app.dependency_overrides[get_relay_context]
        response = TestClient(app).post("/v1/video/generations", json=i2v_request)
        assert response.status_code == 401

    @pytest.mark.parametrize("sent_id", [None, "client-chosen-id"])
    def test_relay_context_shares_response_request_id(self, app, i2v_request, sent_id):
        user = MagicMock(id=1, is_active=True, deleted_at=None)
        user.group.name = "default"
        user.group.ratio = 1.0
        api_key = MagicMock(id=7)
        del app.dependency_overrides[get_relay_context]
        app.dependency_overrides[authenticate_request] = lambda: (user, api_key)
        result = VideoRelayResult(task_id="t-1", model="m", quota=1, duration_ratio=5.0)
        headers = {"X-Request-ID": sent_id} if sent_id else {}

        with patch("backend.app.api.video_api.VideoRelayService") as service_cls:
            service_cls.return_value.relay = AsyncMock(return_value=result)
            response = TestClient(app).post("/v1/video/generations", json=i2v_request, headers=headers)

        assert response.status_code == 200
        ctx = service_cls.return_value.relay.await_args.args[0]
        assert ctx.request_id == response.headers["x-request-id"]
        if sent_id:
            assert ctx.request_id == sent_id


class TestTaskLookup:
    """Tests for task retrieval."""

    def test_get_task(self, client):
        with patch(
            "backend.app.api.video_api.crud.get_task_by_task_id",
            new=AsyncMock(return_value=_task()),
        ) as lookup:
            response = client.get("/v1/video/generations/t-1")

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == "t-1"
        assert body["status"] == "submitted"
        assert body["platform"] == "generic"
        assert body["quota"] == 80000
        assert lookup.await_args.args[1:] == (1, "t-1")

    def test_get_missing_task(self, client):
        with patch(
            "backend.app.api.video_api.crud.get_task_by_task_id",
            new=AsyncMock(return_value=None),
        ):
            response = client.get("/v1/video/generations/nope")
        assert response.status_code == 404

    def test_list_tasks(self, client):
        with patch(
            "backend.app.api.video_api.crud.get_user_tasks",
            new=AsyncMock(return_value=[_task("a"), _task("b")]),
        ) as listing:
            response = client.get("/v1/video/generations?limit=2")

        assert response.status_code == 200
        assert [t["id"] for t in response.json()["data"]] == ["a", "b"]
        assert listing.await_args.kwargs["limit"] == 2


class TestHealth:
    """Tests for probes and metrics."""

    def test_liveness(self, client):
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_metrics(self, client):
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "videorelay_relay_requests_total" in response.text

    def test_request_id_echoed(self, client):
        response = client.get("/healthz", headers={"X-Request-ID": "abc"})
        assert response.headers["x-request-id"] == "abc"
