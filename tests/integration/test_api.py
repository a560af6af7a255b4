"""Integration tests for the FastAPI application.

Runs the real app (lifespan, middleware, SQLite stores, trigger) through
``TestClient``.  No LLM is configured, so classification and chat use the
keyword fallbacks and the results are deterministic.
"""

from __future__ import annotations

import time
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from src.config.settings import Settings
from src.main import create_app
from src.models.feedback import NewFeedback


def _settings(tmp_path: Path) -> Settings:
    return Settings(
        openai_api_key="",
        anthropic_api_key="",
        ollama_base_url="",
        feedback_db_path=str(tmp_path / "feedback.db"),
        workflow_db_path=str(tmp_path / "workflows.db"),
        workflow_resume_on_startup=False,
        log_level="WARNING",
    )


@pytest.fixture
def client(tmp_path: Path):
    with TestClient(create_app(_settings(tmp_path))) as test_client:
        yield test_client


def _wait_processed(client: TestClient, feedback_id: int, timeout: float = 5.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        body = client.get(f"/api/feedback/{feedback_id}").json()
        if body["processed"] or time.monotonic() > deadline:
            return body
        time.sleep(0.02)


def _post(client: TestClient, content: str, source: str = "email") -> dict:
    response = client.post(
        "/api/feedback", json={"source": source, "content": content, "author": "tester"}
    )
    assert response.status_code == 200
    return response.json()


# ======================================================================
# Feedback
# ======================================================================


class TestFeedbackEndpoints:
    def test_create_dispatches_and_classifies(self, client: TestClient) -> None:
        created = _post(client, "I love the new dashboard")

        assert created["success"] is True
        assert created["dispatch"] == "DISPATCHED_ASYNC"
        assert created["instance_id"] == f"feedback-{created['id']}"

        row = _wait_processed(client, created["id"])
        assert row["processed"] is True
        assert row["status"] == "processed"
        assert row["sentiment"] == "POSITIVE"
        assert row["sentiment_score"] == 0.8
        assert row["topics"] == "dashboard"

    def test_create_rejects_empty_content(self, client: TestClient) -> None:
        response = client.post("/api/feedback", json={"source": "email", "content": ""})
        assert response.status_code == 422

    def test_list_with_filters(self, client: TestClient) -> None:
        a = _post(client, "The app crashes on login", source="github")
        b = _post(client, "Great pricing", source="discord")
        _wait_processed(client, a["id"])
        _wait_processed(client, b["id"])

        everything = client.get("/api/feedback").json()
        github = client.get("/api/feedback", params={"source": "github"}).json()
        negative = client.get("/api/feedback", params={"sentiment": "negative"}).json()

        assert {r["id"] for r in everything} == {a["id"], b["id"]}
        assert [r["id"] for r in github] == [a["id"]]
        assert [r["id"] for r in negative] == [a["id"]]

    @pytest.mark.parametrize("params", [{"limit": 0}, {"limit": 501}, {"offset": -1}])
    def test_list_rejects_bad_paging(self, client: TestClient, params: dict) -> None:
        assert client.get("/api/feedback", params=params).status_code == 422

    def test_get_missing_feedback(self, client: TestClient) -> None:
        response = client.get("/api/feedback/9999")

        assert response.status_code == 404
        assert response.json() == {
            "error": "FeedbackNotFoundError",
            "message": "Feedback with id 9999 not found",
        }


# ======================================================================
# Analysis & backlog
# ======================================================================


class TestProcessingEndpoints:
    def test_analyze_reclassifies(self, client: TestClient) -> None:
        created = _post(client, "Found a bug in the dashboard API")
        _wait_processed(client, created["id"])

        response = client.post("/api/analyze", json={"id": created["id"]})

        assert response.status_code == 200
        body = response.json()
        assert body["processed"] is True
        assert body["sentiment"] == "NEGATIVE"
        assert body["topics"] == "bug, dashboard, api"

    def test_analyze_missing_row(self, client: TestClient) -> None:
        response = client.post("/api/analyze", json={"id": 4242})
        assert response.status_code == 404
        assert response.json()["error"] == "FeedbackNotFoundError"

    def test_analyze_rejects_invalid_id(self, client: TestClient) -> None:
        assert client.post("/api/analyze", json={"id": 0}).status_code == 422

    def test_process_pending_sweeps_backlog(self, client: TestClient) -> None:
        store = client.app.state.feedback_store
        ids = [
            client.portal.call(store.insert_feedback, NewFeedback(source="email", content=text))
            .id
            for text in ("mobile app is slow", "love it", "pricing?")
        ]

        response = client.post("/api/process-pending")
        client.portal.call(client.app.state.workflow_trigger.drain)

        assert response.status_code == 200
        assert response.json() == {"processed": 3, "dispatched": 3, "ran_inline": 0, "failed": 0}
        for fid in ids:
            assert client.get(f"/api/feedback/{fid}").json()["processed"] is True

        again = client.post("/api/process-pending").json()
        assert again["processed"] == 0


# ======================================================================
# Chat, stats, workflows, health
# ======================================================================


class TestReadEndpoints:
    def test_chat_uses_fallback_without_llm(self, client: TestClient) -> None:
        created = _post(client, "The app keeps crashing")
        _wait_processed(client, created["id"])

        response = client.post("/api/chat", json={"query": "Any complaints?"})

        assert response.status_code == 200
        assert response.json()["response"].startswith(
            "Based on recent feedback, there are 1 negative feedback items."
        )

    def test_chat_rejects_empty_query(self, client: TestClient) -> None:
        assert client.post("/api/chat", json={"query": ""}).status_code == 422

    def test_stats(self, client: TestClient) -> None:
        for text, source in [("great", "email"), ("great job", "email"), ("crash", "slack")]:
            _wait_processed(client, _post(client, text, source=source)["id"])

        stats = client.get("/api/stats").json()

        assert stats["total"] == 3
        assert stats["processed"] == 3
        assert stats["pending"] == 0
        assert {"key": "POSITIVE", "count": 2} in stats["by_sentiment"]
        assert stats["by_source"][0] == {"key": "email", "count": 2}
        assert sum(point["count"] for point in stats["recent_trends"]) == 3

    def test_workflow_status(self, client: TestClient) -> None:
        created = _post(client, "Login works again, thanks")
        _wait_processed(client, created["id"])
        client.portal.call(client.app.state.workflow_trigger.drain)

        body = client.get(f"/api/workflows/{created['instance_id']}").json()

        assert body["instance"]["phase"] == "DONE"
        assert body["instance"]["params"] == {"feedbackId": created["id"], "force": False}
        assert [s["step_name"] for s in body["steps"]] == [
            "retrieve-feedback",
            "analyze-sentiment",
            "extract-topics",
            "save-results",
        ]
        assert body["running"] is False

    def test_unknown_workflow(self, client: TestClient) -> None:
        response = client.get("/api/workflows/feedback-123456")
        assert response.status_code == 404
        assert response.json()["error"] == "WorkflowNotFoundError"

    def test_health(self, client: TestClient) -> None:
        body = client.get("/api/health").json()
        assert body["status"] == "healthy"
        assert body["version"]
        assert body["llm_provider"] is None
        assert body["running_workflows"] == 0


# ======================================================================
# Degraded application
# ======================================================================


def test_missing_components_return_503(tmp_path: Path) -> None:
    # Without entering the context manager the lifespan never runs.
    bare = TestClient(create_app(_settings(tmp_path)))

    stats = bare.get("/api/stats")
    health = bare.get("/api/health")

    assert stats.status_code == 503
    assert stats.json()["error"] == "StoreUnavailableError"
    assert health.json()["status"] == "degraded"


def test_dashboard_is_served(client: TestClient) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert "feedbackFlow" in response.text
