"""Tests for multi-question debates and consolidation."""

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeCapabilities

from config.settings import AppConfig
from debate_engine.engine import DebateEngine
from debate_engine.enhanced import (
    ConsolidatedResults,
    EnhancedDebateOrchestrator,
    EnhancedRunStatus,
    OmittedQuestion,
    QuestionDebateResult,
    final_ranking,
)
from debate_engine.events import ProgressEmitter
from debate_engine.exceptions import JudgeFailure
from debate_engine.models import DocumentContext, Posture, Session, Transcript
from debate_engine.types import ExchangeType, ProgressEventData, SessionStatus
from judges.base import Verdict

QUESTIONS = [
    "Is the sampling adequate?",
    "Do the results generalize?",
    "What alternative explanations remain?",
]


def _question_index(transcript: Transcript) -> int | None:
    exchanges = transcript.exchanges()
    return exchanges[0].question_index if exchanges else None


def _orchestrator(
    capabilities: FakeCapabilities,
    app_config: AppConfig,
    *,
    judge_timeout: float = 0.05,
    question_concurrency: int = 1,
) -> EnhancedDebateOrchestrator:
    config = app_config.model_copy(
        update={
            "capabilities": app_config.capabilities.model_copy(
                update={"judge_timeout_seconds": judge_timeout}
            ),
            "debate": app_config.debate.model_copy(
                update={"cross_examination_rounds": 1, "question_concurrency": question_concurrency}
            ),
        }
    )
    return EnhancedDebateOrchestrator(DebateEngine(config, capabilities))


def test_timed_out_question_is_omitted(app_config: AppConfig, document: DocumentContext) -> None:
    """Question 2's judge times out twice; ranking comes from questions 1 and 3."""

    async def slow_on_second(transcript: Transcript, postures: list[Posture]) -> Verdict | None:
        if _question_index(transcript) == 1:
            await asyncio.sleep(5)
        return None

    capabilities = FakeCapabilities(judge_hook=slow_on_second)
    orchestrator = _orchestrator(capabilities, app_config)
    run = orchestrator.create_run(document.id, QUESTIONS)
    events: list[ProgressEventData] = []

    async def collect(event: ProgressEventData) -> None:
        events.append(event)

    emitter = ProgressEmitter(run.id)
    emitter.subscribe(collect)

    report = asyncio.run(orchestrator.run(run, document, emitter))

    assert report is not None
    assert run.status is EnhancedRunStatus.COMPLETED
    assert [r.question_index for r in report.results] == [0, 2]
    assert [(o.question_index, o.question) for o in report.omitted_questions] == [
        (1, QUESTIONS[1])
    ]
    assert "Judge could not produce a verdict" in report.omitted_questions[0].reason
    assert run.sessions[1].snapshot().status is SessionStatus.ERROR

    assert [r.posture for r in report.final_ranking] == [
        "Critical Analyst",
        "Methodological Advocate",
        "Integrative Synthesizer",
    ]
    assert all(r.questions_scored == 2 for r in report.final_ranking)
    assert report.final_ranking[0].average_score == 90.0
    assert "## Omitted Questions" in report.markdown

    for result in report.results:
        assert all(
            e.question_index == result.question_index for e in result.transcript.exchanges()
        )
    question_events = [e for e in events if e["type"] in ("question", "response", "round")]
    assert question_events
    assert all("question_index" in e for e in question_events)


def test_personas_are_generated_once_and_pinned(
    fake_capabilities: FakeCapabilities, app_config: AppConfig, document: DocumentContext
) -> None:
    """One persona call seeded by the first question, then the same labels for every question."""
    orchestrator = _orchestrator(fake_capabilities, app_config)
    run = orchestrator.create_run(document.id, QUESTIONS[:2])

    report = asyncio.run(orchestrator.run(run, document))

    posture_calls = [args for name, args in fake_capabilities.calls if name == "generate_postures"]
    assert posture_calls[0] == (QUESTIONS[0], 3)
    assert [q for q, _ in posture_calls[1:]] == QUESTIONS[:2]

    assert report is not None
    labels = [[p.perspective_template for p in r.postures] for r in report.results]
    assert labels[0] == labels[1] == run.perspectives


def test_insights_are_deduplicated(
    fake_capabilities: FakeCapabilities, app_config: AppConfig, document: DocumentContext
) -> None:
    """Identical insights from several questions appear once."""
    orchestrator = _orchestrator(fake_capabilities, app_config)
    run = orchestrator.create_run(document.id, QUESTIONS[:2])

    report = asyncio.run(orchestrator.run(run, document))

    assert report is not None
    assert report.consolidated_insights == ["Insight from Critical Analyst"]
    assert report.consolidated_controversial_points == ["Sample size"]


def test_every_question_failing_errors_the_run(app_config: AppConfig, document: DocumentContext) -> None:
    """With nothing to consolidate the run ends in error."""

    async def broken(transcript: Transcript, postures: list[Posture]) -> Verdict | None:
        raise RuntimeError("judge offline")

    orchestrator = _orchestrator(FakeCapabilities(judge_hook=broken), app_config)
    run = orchestrator.create_run(document.id, QUESTIONS[:2])

    report = asyncio.run(orchestrator.run(run, document))

    assert report is None
    assert run.status is EnhancedRunStatus.ERROR
    assert run.error_detail


def test_at_least_two_questions_required(
    fake_capabilities: FakeCapabilities, app_config: AppConfig, document: DocumentContext
) -> None:
    """A single (or blank) question list is rejected."""
    orchestrator = _orchestrator(fake_capabilities, app_config)
    with pytest.raises(ValueError, match="at least 2"):
        orchestrator.create_run(document.id, ["Only one?", "   "])


def test_consolidated_results_reject_duplicates() -> None:
    """Each question index is consolidated at most once."""
    results = ConsolidatedResults()

    async def scenario() -> None:
        await results.add_omission(OmittedQuestion(0, "q", "failed"))
        await results.add_omission(OmittedQuestion(0, "q", "failed again"))

    with pytest.raises(ValueError):
        asyncio.run(scenario())


def test_final_ranking_without_results_is_empty() -> None:
    """Perspectives never scored are not ranked."""
    assert final_ranking([], ["Critical Analyst"]) == []


class SlowPostures(FakeCapabilities):
    """Persona generation that takes long enough to be cancelled."""

    async def generate_postures(self, document_context, question, n, perspectives=None):
        await asyncio.sleep(0.3)
        return await super().generate_postures(document_context, question, n, perspectives)


def test_cancel_during_persona_generation_stops_the_run(
    app_config: AppConfig, document: DocumentContext
) -> None:
    """No session is created and nothing is debated after an early cancel."""
    capabilities = SlowPostures()
    orchestrator = _orchestrator(capabilities, app_config)
    run = orchestrator.create_run(document.id, QUESTIONS)

    async def scenario():
        task = asyncio.create_task(orchestrator.run(run, document))
        await asyncio.sleep(0.05)
        await orchestrator.cancel(run)
        return await task

    report = asyncio.run(scenario())

    assert report is None
    assert run.status is EnhancedRunStatus.ERROR
    assert run.error_detail == "Cancelled by user"
    assert run.report is None
    assert run.sessions == {}
    assert capabilities.count("generate_argument") == 0
    assert capabilities.count("judge") == 0


def test_cancel_after_a_finished_question_discards_the_run(
    app_config: AppConfig, document: DocumentContext
) -> None:
    """Cancellation is all-or-nothing even when some questions already completed."""
    capabilities = FakeCapabilities()
    orchestrator = _orchestrator(capabilities, app_config, judge_timeout=2.0)
    run = orchestrator.create_run(document.id, QUESTIONS)
    judged = 0

    async def cancel_on_second(transcript: Transcript, postures: list[Posture]) -> Verdict | None:
        nonlocal judged
        judged += 1
        if judged == 2:
            await orchestrator.cancel(run)
        return None

    capabilities.judge_hook = cancel_on_second

    report = asyncio.run(orchestrator.run(run, document))

    assert report is None
    assert run.status is EnhancedRunStatus.ERROR
    assert run.error_detail == "Cancelled by user"
    assert run.report is None
    assert run.sessions[0].snapshot().status is SessionStatus.COMPLETED
    assert run.sessions[1].snapshot().status is SessionStatus.ERROR
    assert run.sessions[2].snapshot().status is SessionStatus.ERROR
    assert capabilities.count("judge") == 2


def test_concurrent_questions_consolidate_in_order(
    app_config: AppConfig, document: DocumentContext
) -> None:
    """Pipelines running side by side all land, ordered by question index."""
    active = 0
    max_active = 0

    async def overlapping(transcript: Transcript, postures: list[Posture]) -> Verdict | None:
        nonlocal active, max_active
        active += 1
        max_active = max(max_active, active)
        await asyncio.sleep(0.05)
        active -= 1
        return None

    capabilities = FakeCapabilities(judge_hook=overlapping, answer_delay=0.01)
    orchestrator = _orchestrator(
        capabilities, app_config, judge_timeout=2.0, question_concurrency=3
    )
    run = orchestrator.create_run(document.id, QUESTIONS)

    report = asyncio.run(orchestrator.run(run, document))

    assert report is not None
    assert run.status is EnhancedRunStatus.COMPLETED
    assert max_active > 1
    assert [r.question_index for r in report.results] == [0, 1, 2]
    assert [r.question for r in report.results] == QUESTIONS
    assert report.omitted_questions == []

    for result in report.results:
        rounds = result.transcript.rounds
        assert [r.round_number for r in rounds] == list(range(1, len(rounds) + 1))
        assert all(e.question_index == result.question_index for e in result.transcript.exchanges())
        for debate_round in rounds[1:]:
            asked: set[tuple[str, str]] = set()
            for exchange in debate_round.exchanges:
                if exchange.type is ExchangeType.QUESTION:
                    asked.add((exchange.from_debater, exchange.to_debater or ""))
                elif exchange.type is ExchangeType.ANSWER:
                    assert (exchange.to_debater or "", exchange.from_debater) in asked
            stamps = [e.timestamp for e in debate_round.exchanges]
            assert stamps == sorted(stamps)


def test_result_needs_a_verdict() -> None:
    """A session without a verdict cannot be consolidated."""
    session = Session(document_id="doc-1", question="Why?", question_index=0)
    session.transcript = Transcript()

    with pytest.raises(JudgeFailure, match="without transcript and verdict"):
        QuestionDebateResult.from_session(session)
