"""Tests for single-question report assembly."""

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeCapabilities

from config.settings import AppConfig
from debate_engine.engine import DebateEngine
from debate_engine.models import DocumentContext, Session
from debate_engine.report import build_report, reasoning_points


def test_reasoning_points_split_paragraphs() -> None:
    """Blank lines separate points; bullets and wrapping are flattened."""
    text = "- First point\n  continues here.\n\n* Second point.\n\n\n"
    assert reasoning_points(text) == ["First point continues here.", "Second point."]


def test_report_requires_verdict() -> None:
    """Reports are only built for judged sessions."""
    with pytest.raises(ValueError):
        build_report(Session(document_id="doc"))


def test_report_is_deterministic(
    fake_capabilities: FakeCapabilities, app_config: AppConfig, document: DocumentContext
) -> None:
    """Rebuilding a report from the same session yields identical output."""
    engine = DebateEngine(app_config, fake_capabilities)

    async def scenario() -> Session:
        return await engine.run(engine.create_session(document.id, "Is it valid?"), document)

    session = asyncio.run(scenario())
    report = build_report(session)

    assert report.to_dict() == build_report(session).to_dict()
    assert report.question == "Is it valid?"
    assert [r["perspective"] for r in report.ranked_postures][0] == "Critical Analyst"
    assert report.key_claims["debater-1"][0] == "Methodology: Critical Analyst claim on Methodology"
    assert "## Scores" in report.markdown
    assert "### Round 2: Cross-Examination" in report.markdown
