"""Tests for the HTTP and WebSocket surface."""

from __future__ import annotations

import json
import time
from collections.abc import Iterator
from pathlib import Path

import pytest
from conftest import FakeCapabilities
from fastapi.testclient import TestClient

from config.settings import AppConfig
from debate_engine.database import DatabaseManager
from debate_engine.documents import DocumentStore
from web import api
from web.session_manager import SessionManager


@pytest.fixture
def client(
    tmp_path: Path, app_config: AppConfig, monkeypatch: pytest.MonkeyPatch
) -> Iterator[TestClient]:
    """A test client backed by fake capabilities and a temporary database."""
    documents_dir = tmp_path / "documents"
    documents_dir.mkdir()
    (documents_dir / "paper.json").write_text(
        json.dumps(
            {
                "title": "Sampling Bias in Field Studies",
                "abstract": "We examine how sampling choices shape conclusions.",
                "fullText": "Section 1. Methods.",
            }
        ),
        encoding="utf-8",
    )
    (documents_dir / "blank.json").write_text(
        json.dumps({"title": "Nothing here", "abstract": "", "full_text": ""}),
        encoding="utf-8",
    )

    manager = SessionManager(
        app_config,
        FakeCapabilities(),
        DatabaseManager(tmp_path / "debates.db"),
        DocumentStore(documents_dir),
    )
    monkeypatch.setattr(api, "session_manager", manager)
    with TestClient(api.app) as test_client:
        yield test_client


def _wait_for(client: TestClient, url: str, statuses: set[str], timeout: float = 10.0) -> dict:
    deadline = time.monotonic() + timeout
    while True:
        data = client.get(url).json()
        if data["status"] in statuses or time.monotonic() > deadline:
            return data
        time.sleep(0.05)


def test_health(client: TestClient) -> None:
    """The service reports itself alive."""
    assert client.get("/v1/api/health").json() == {"isAlive": True}


def test_unknown_document_is_404(client: TestClient) -> None:
    """Debates on unknown documents are rejected."""
    response = client.post("/v1/api/debates", json={"document_id": "missing"})
    assert response.status_code == 404


def test_empty_document_is_422(client: TestClient) -> None:
    """Documents without abstract or text cannot be debated."""
    response = client.post("/v1/api/debates", json={"document_id": "blank"})
    assert response.status_code == 422
    assert "no abstract or full text" in response.json()["detail"]


def test_invalid_debater_count_is_rejected(client: TestClient) -> None:
    """Request validation enforces at least two debaters."""
    response = client.post("/v1/api/debates", json={"document_id": "paper", "num_debaters": 1})
    assert response.status_code == 422


def test_debate_runs_to_completion(client: TestClient) -> None:
    """A created debate can be polled until completed and is listed afterwards."""
    response = client.post(
        "/v1/api/debates",
        json={"document_id": "paper", "question": "Is the sample adequate?", "num_debaters": 2},
    )
    assert response.status_code == 200
    created = response.json()
    assert created["status"] == "initializing"

    data = _wait_for(client, f"/v1/api/debates/{created['id']}", {"completed", "error"})

    assert data["status"] == "completed"
    assert data["verdict"]["ranking"][0]["debater_id"] == "debater-1"
    assert data["transcript"]["metadata"]["total_exchanges"] == 2 + 2 * 4
    assert data["report"]["markdown"].startswith("# Debate Report")

    listed = client.get("/v1/api/debates", params={"status": "completed"}).json()
    assert [d["id"] for d in listed["debates"]] == [created["id"]]


def test_progress_stream_replays_history(client: TestClient) -> None:
    """A late WebSocket subscriber receives the events it missed."""
    created = client.post(
        "/v1/api/debates", json={"document_id": "paper", "num_debaters": 2}
    ).json()
    _wait_for(client, f"/v1/api/debates/{created['id']}", {"completed", "error"})

    with client.websocket_connect(f"/v1/ws/debates/{created['id']}") as websocket:
        hello = websocket.receive_json()
        assert hello == {"type": "connected", "debate_id": created["id"], "status": "completed"}
        events = [websocket.receive_json() for _ in range(5)]

    assert all(e["session_id"] == created["id"] for e in events)
    assert events[0]["type"] == "activity"
    assert events[0]["payload"]["status"] == "generating_postures"


def test_cancel_unknown_debate_is_404(client: TestClient) -> None:
    """Cancelling an unknown id fails cleanly."""
    assert client.post("/v1/api/debates/nope/cancel").status_code == 404
    assert client.get("/v1/api/debates/nope").status_code == 404


def test_generate_questions(client: TestClient) -> None:
    """Candidate questions are cleaned and capped."""
    response = client.post(
        "/v1/api/questions", json={"document_id": "paper", "max_questions": 2}
    )
    assert response.status_code == 200
    assert len(response.json()["questions"]) == 2


def test_enhanced_debate_needs_two_questions(client: TestClient) -> None:
    """A multi-question run with one question is a bad request."""
    response = client.post(
        "/v1/api/enhanced-debates",
        json={"document_id": "paper", "questions": ["Only one?", " "]},
    )
    assert response.status_code == 400


def test_enhanced_debate_report(client: TestClient) -> None:
    """A completed multi-question run serves a markdown report."""
    created = client.post(
        "/v1/api/enhanced-debates",
        json={"document_id": "paper", "questions": ["Is it valid?", "Does it generalize?"]},
    ).json()

    data = _wait_for(client, f"/v1/api/enhanced-debates/{created['id']}", {"completed", "error"})
    assert data["status"] == "completed"
    assert data["report"]["final_ranking"][0]["posture"] == "Critical Analyst"
    assert set(data["sessions"]) == {"0", "1"}

    report = client.get(f"/v1/api/enhanced-debates/{created['id']}/report.md")
    assert report.status_code == 200
    assert report.headers["content-type"].startswith("text/markdown")
    assert report.text.startswith("# Multi-Question Debate Report")
