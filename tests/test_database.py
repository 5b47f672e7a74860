"""Tests for SQLite session persistence."""

from __future__ import annotations

import asyncio
from pathlib import Path

from conftest import FakeCapabilities

from config.settings import AppConfig
from debate_engine.database import DatabaseManager
from debate_engine.engine import DebateEngine
from debate_engine.models import DocumentContext, Session
from debate_engine.types import SessionStatus


def _completed_session(
    db: DatabaseManager,
    capabilities: FakeCapabilities,
    app_config: AppConfig,
    document: DocumentContext,
) -> Session:
    engine = DebateEngine(app_config, capabilities, db)

    async def scenario() -> Session:
        machine = engine.create_session(document.id, "Is the sampling adequate?")
        return await engine.run(machine, document)

    return asyncio.run(scenario())


def test_completed_session_round_trips(
    tmp_path: Path,
    fake_capabilities: FakeCapabilities,
    app_config: AppConfig,
    document: DocumentContext,
) -> None:
    """The stored snapshot rebuilds the full session."""
    db = DatabaseManager(tmp_path / "debates.db")
    session = _completed_session(db, fake_capabilities, app_config, document)

    loaded = db.load_session(session.id)

    assert loaded is not None
    assert loaded.status is SessionStatus.COMPLETED
    assert loaded.question == "Is the sampling adequate?"
    assert [p.debater_id for p in loaded.postures] == ["debater-1", "debater-2", "debater-3"]
    assert loaded.topics == session.topics
    assert set(loaded.arguments) == set(session.arguments)
    assert loaded.transcript is not None and session.transcript is not None
    assert [r.round_number for r in loaded.transcript.rounds] == [1, 2, 3]
    assert loaded.transcript.to_dict() == session.transcript.to_dict()
    assert loaded.verdict is not None and session.verdict is not None
    assert loaded.verdict.to_dict() == session.verdict.to_dict()
    assert loaded.report is not None and session.report is not None
    assert loaded.report.markdown == session.report.markdown


def test_resave_replaces_children(
    tmp_path: Path,
    fake_capabilities: FakeCapabilities,
    app_config: AppConfig,
    document: DocumentContext,
) -> None:
    """Saving again does not duplicate postures or exchanges."""
    db = DatabaseManager(tmp_path / "debates.db")
    session = _completed_session(db, fake_capabilities, app_config, document)

    db.save_session(session)
    loaded = db.load_session(session.id)

    assert loaded is not None and loaded.transcript is not None
    assert len(loaded.postures) == 3
    assert loaded.transcript.count_exchanges() == loaded.transcript.metadata.total_exchanges


def test_list_sessions_filters_by_status(
    tmp_path: Path,
    fake_capabilities: FakeCapabilities,
    app_config: AppConfig,
    document: DocumentContext,
) -> None:
    """Listing reports status and winner and honours the filter."""
    db = DatabaseManager(tmp_path / "debates.db")
    completed = _completed_session(db, fake_capabilities, app_config, document)
    pending = Session(document_id="doc-2")
    db.save_session(pending)

    everything = db.list_sessions()
    done = db.list_sessions(status=SessionStatus.COMPLETED)

    assert {s["id"] for s in everything} == {completed.id, pending.id}
    assert [s["id"] for s in done] == [completed.id]
    assert done[0]["winner"] == "debater-1"
    assert db.get_session_count() == 2


def test_missing_and_deleted_sessions(tmp_path: Path) -> None:
    """Unknown ids load as None; delete removes the row."""
    db = DatabaseManager(tmp_path / "debates.db")
    session = Session(document_id="doc-1")
    db.save_session(session)

    assert db.load_session("nope") is None
    assert db.delete_session(session.id) is True
    assert db.load_session(session.id) is None
    assert db.delete_session(session.id) is False
