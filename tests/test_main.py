"""Tests for the HTTP service."""

import asyncio
import time
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from conftest import gemini_body
from threatforge.llm import FailingLLMAdapter, MalformedReply, StubLLMAdapter
from threatforge.main import (
    CLIENT_CLOSED_REQUEST,
    SERVICE_UNAVAILABLE_DETAIL,
    AnalyzeRequestBody,
    analyze,
    app,
    get_llm_adapter,
)
from threatforge.models import ArtifactRecord


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def use_adapter():
    """Serve requests with the given adapter."""

    def install(adapter):
        app.dependency_overrides[get_llm_adapter] = lambda: adapter
        return adapter

    return install


@pytest.fixture
def request_body():
    return {
        "project_name": "Shop",
        "artifacts": [
            {"name": "app.py", "content": "def login(): ..."},
            {"name": "main.tf", "content": 'resource "x" "y" {}', "size": 19},
        ],
    }


class TestServiceEndpoints:
    """Test informational endpoints."""

    def test_root(self, client):
        """Test the root endpoint."""
        response = client.get("/")

        assert response.status_code == 200
        assert response.json()["service"] == "ThreatForge"

    def test_health(self, client):
        """Test the health endpoint."""
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestAnalyzeEndpoint:
    """Test POST /api/v1/analyze."""

    def test_success(self, client, use_adapter, request_body, sample_body):
        """Test a successful analysis returns the result and summary."""
        stub = use_adapter(StubLLMAdapter([sample_body]))

        response = client.post("/api/v1/analyze", json=request_body)

        assert response.status_code == 200
        data = response.json()
        assert data["project_name"] == "Shop"
        assert data["assets"] == ["API Gateway", "Auth Service", "User Database"]
        assert len(data["threats"]) == 4
        assert "codeSnippet" in data["threats"][0]
        assert data["graph"]["edges"][-1] == {"from": "3", "to": "1", "label": "Auth Sync"}
        assert data["summary"]["high_risk_threats"] == 2
        assert "--- FILE: main.tf ---" in stub.get_last_call().prompt

    def test_blank_project_name(self, client, use_adapter, request_body):
        """Test a blank project name is rejected before any service call."""
        stub = use_adapter(StubLLMAdapter([gemini_body({"assets": [], "threats": []})]))
        request_body["project_name"] = "   "

        response = client.post("/api/v1/analyze", json=request_body)

        assert response.status_code == 422
        assert stub.call_count == 0

    def test_no_artifacts(self, client, use_adapter, request_body):
        """Test an empty artifact list is rejected."""
        stub = use_adapter(StubLLMAdapter([gemini_body({"assets": [], "threats": []})]))
        request_body["artifacts"] = []

        response = client.post("/api/v1/analyze", json=request_body)

        assert response.status_code == 422
        assert stub.call_count == 0

    def test_service_unavailable(self, client, use_adapter, request_body):
        """Test transport failure maps to 502 with the generic message."""
        use_adapter(FailingLLMAdapter())

        response = client.post("/api/v1/analyze", json=request_body)

        assert response.status_code == 502
        assert response.json()["detail"] == SERVICE_UNAVAILABLE_DETAIL

    def test_malformed_reply(self, client, use_adapter, request_body):
        """Test a malformed reply maps to the same 502."""
        use_adapter(StubLLMAdapter([MalformedReply("not JSON")]))

        response = client.post("/api/v1/analyze", json=request_body)

        assert response.status_code == 502
        assert response.json()["detail"] == SERVICE_UNAVAILABLE_DETAIL


class FakeRequest:
    """Just enough of a Starlette request for the disconnect watcher."""

    def __init__(self, disconnected: bool) -> None:
        self.disconnected = disconnected
        self.url = SimpleNamespace(path="/api/v1/analyze")

    async def is_disconnected(self) -> bool:
        return self.disconnected


class TestClientDisconnect:
    """Test cancellation driven by the client going away."""

    @pytest.mark.asyncio
    async def test_disconnect_cancels_analysis(self, sample_body):
        """Test a disconnected client cancels the exchange and gets 499."""
        stub = StubLLMAdapter([sample_body], latency_seconds=30)
        body = AnalyzeRequestBody(
            project_name="Shop",
            artifacts=[ArtifactRecord(name="app.py", content="def login(): ...")],
        )

        start = time.monotonic()
        response = await analyze(body, FakeRequest(disconnected=True), stub)

        assert response.status_code == CLIENT_CLOSED_REQUEST
        assert time.monotonic() - start < 5

    @pytest.mark.asyncio
    async def test_watcher_finished_after_request(self, sample_body):
        """Test the disconnect watcher task is reaped once the analysis ends."""
        body = AnalyzeRequestBody(
            project_name="Shop",
            artifacts=[ArtifactRecord(name="app.py", content="def login(): ...")],
        )

        data = await analyze(body, FakeRequest(disconnected=False), StubLLMAdapter([sample_body]))

        assert data["project_name"] == "Shop"
        assert asyncio.all_tasks() == {asyncio.current_task()}
