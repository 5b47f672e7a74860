"""Multi-question debates with consolidated ranking and reporting."""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from judges.base import Verdict

from .capabilities import CancellationToken
from .engine import DebateEngine
from .events import ProgressEmitter
from .exceptions import ConsolidationOmission, DebateError, InsufficientContext, JudgeFailure
from .models import Argument, DocumentContext, Posture, Session, Transcript
from .report import reasoning_points
from .state_machine import CANCELLED_DETAIL, SessionStateMachine
from .types import ExchangeType, ProgressEventType, SessionStatus

logger = logging.getLogger(__name__)

MIN_QUESTIONS = 2


class EnhancedRunStatus(Enum):
    """Lifecycle of a multi-question run."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class QuestionDebateResult:
    """Outcome of one successfully judged question."""

    question_index: int
    question: str
    session_id: str
    postures: list[Posture]
    topics: list[str]
    arguments: list[Argument]
    transcript: Transcript
    verdict: Verdict

    @classmethod
    def from_session(cls, session: Session) -> "QuestionDebateResult":
        if session.transcript is None or session.verdict is None:
            raise JudgeFailure(f"Session {session.id} completed without transcript and verdict")
        return cls(
            question_index=session.question_index or 0,
            question=session.question or "",
            session_id=session.id,
            postures=list(session.postures),
            topics=list(session.topics),
            arguments=[
                session.arguments[p.debater_id]
                for p in session.postures
                if p.debater_id in session.arguments
            ],
            transcript=session.transcript,
            verdict=session.verdict,
        )

    def perspective_scores(self) -> dict[str, float]:
        """Weighted score per perspective label for the debaters that were judged."""
        labels = {p.debater_id: p.perspective_template for p in self.postures}
        return {
            labels[entry.debater_id]: entry.weighted_score
            for entry in self.verdict.ranking
            if entry.debater_id in labels
        }

    @property
    def winner(self) -> str:
        labels = {p.debater_id: p.perspective_template for p in self.postures}
        winner_id = self.verdict.winner_id
        return labels.get(winner_id, winner_id) if winner_id else "-"

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_index": self.question_index,
            "question": self.question,
            "session_id": self.session_id,
            "postures": [p.to_dict() for p in self.postures],
            "topics": list(self.topics),
            "arguments": [a.to_dict() for a in self.arguments],
            "transcript": self.transcript.to_dict(),
            "verdict": self.verdict.to_dict(),
            "winner": self.winner,
        }


@dataclass
class OmittedQuestion:
    question_index: int
    question: str
    reason: str


@dataclass
class RankedPosture:
    posture: str
    average_score: float
    questions_scored: int


class ConsolidatedResults:
    """Append-only collection of per-question outcomes, safe under concurrent completion."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._results: list[QuestionDebateResult] = []
        self._omitted: list[OmittedQuestion] = []

    async def add_result(self, result: QuestionDebateResult) -> None:
        async with self._lock:
            self._ensure_new(result.question_index)
            self._results.append(result)

    async def add_omission(self, omission: OmittedQuestion) -> None:
        async with self._lock:
            self._ensure_new(omission.question_index)
            self._omitted.append(omission)

    def _ensure_new(self, question_index: int) -> None:
        recorded = {r.question_index for r in self._results}
        recorded.update(o.question_index for o in self._omitted)
        if question_index in recorded:
            raise ValueError(f"Question {question_index} already consolidated")

    @property
    def results(self) -> list[QuestionDebateResult]:
        return sorted(self._results, key=lambda r: r.question_index)

    @property
    def omitted(self) -> list[OmittedQuestion]:
        return sorted(self._omitted, key=lambda o: o.question_index)


def _union(groups: list[list[str]]) -> list[str]:
    seen: set[str] = set()
    merged: list[str] = []
    for group in groups:
        for item in group:
            cleaned = item.strip()
            if cleaned and cleaned not in seen:
                seen.add(cleaned)
                merged.append(cleaned)
    return merged


def final_ranking(
    results: list[QuestionDebateResult], perspectives: list[str]
) -> list[RankedPosture]:
    """Mean weighted score per perspective over the questions where it was judged."""
    collected: dict[str, list[float]] = {label: [] for label in perspectives}
    for result in results:
        for label, score in result.perspective_scores().items():
            collected.setdefault(label, []).append(score)

    order = {label: i for i, label in enumerate(collected)}
    ranked = [
        RankedPosture(
            posture=label,
            average_score=round(sum(scores) / len(scores), 6),
            questions_scored=len(scores),
        )
        for label, scores in collected.items()
        if scores
    ]
    ranked.sort(key=lambda r: (-r.average_score, order[r.posture]))
    return ranked


@dataclass
class EnhancedReport:
    """Consolidated outcome of a multi-question run."""

    questions: list[str]
    results: list[QuestionDebateResult]
    final_ranking: list[RankedPosture]
    consolidated_insights: list[str]
    consolidated_controversial_points: list[str]
    omitted_questions: list[OmittedQuestion]
    overall_summary: str
    markdown: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "questions": list(self.questions),
            "results": [r.to_dict() for r in self.results],
            "final_ranking": [
                {
                    "posture": r.posture,
                    "average_score": r.average_score,
                    "questions_scored": r.questions_scored,
                }
                for r in self.final_ranking
            ],
            "consolidated_insights": list(self.consolidated_insights),
            "consolidated_controversial_points": list(self.consolidated_controversial_points),
            "omitted_questions": [
                {"question_index": o.question_index, "question": o.question, "reason": o.reason}
                for o in self.omitted_questions
            ],
            "overall_summary": self.overall_summary,
            "markdown": self.markdown,
        }


@dataclass
class EnhancedRun:
    """A multi-question run and its per-question sessions."""

    document_id: str
    questions: list[str]
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: EnhancedRunStatus = EnhancedRunStatus.PENDING
    perspectives: list[str] = field(default_factory=list)
    sessions: dict[int, SessionStateMachine] = field(default_factory=dict)
    report: EnhancedReport | None = None
    error_detail: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    # Shared by persona generation and checked before every later stage
    cancel_token: CancellationToken = field(default_factory=CancellationToken, repr=False)

    @property
    def cancelled(self) -> bool:
        return self.cancel_token.cancelled

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "questions": list(self.questions),
            "status": self.status.value,
            "perspectives": list(self.perspectives),
            "sessions": {
                str(index): {
                    "session_id": machine.snapshot().id,
                    "status": machine.snapshot().status.value,
                    "error": machine.snapshot().error_detail,
                }
                for index, machine in sorted(self.sessions.items())
            },
            "report": self.report.to_dict() if self.report else None,
            "error": self.error_detail,
            "created_at": self.created_at.isoformat(),
        }


class EnhancedDebateOrchestrator:
    """Runs the debate pipeline over several questions with shared personas."""

    def __init__(self, engine: DebateEngine):
        self.engine = engine

    def create_run(self, document_id: str, questions: list[str]) -> EnhancedRun:
        cleaned = [q.strip() for q in questions if q.strip()]
        if len(cleaned) < MIN_QUESTIONS:
            raise ValueError(
                f"Multi-question debates need at least {MIN_QUESTIONS} questions, got {len(cleaned)}"
            )
        return EnhancedRun(document_id=document_id, questions=cleaned)

    async def run(
        self,
        run: EnhancedRun,
        document_context: DocumentContext,
        emitter: ProgressEmitter | None = None,
    ) -> EnhancedReport | None:
        """Debate every question and consolidate; returns None when the run errors."""
        emitter = emitter or ProgressEmitter(run.id)
        if not document_context.has_content:
            raise InsufficientContext(document_context.id)
        if run.cancelled:
            await self._abandon(run, emitter)
            return None

        run.status = EnhancedRunStatus.RUNNING
        await emitter.emit(
            ProgressEventType.ACTIVITY,
            {
                "status": run.status.value,
                "previous_status": EnhancedRunStatus.PENDING.value,
                "message": f"Debating {len(run.questions)} questions",
            },
        )

        try:
            run.perspectives = await self.engine.generate_perspectives(
                document_context, run.questions[0], cancel_token=run.cancel_token
            )
        except DebateError as e:
            if run.cancelled:
                await self._abandon(run, emitter)
            else:
                await self._fail(run, emitter, f"Persona generation failed: {e}")
            return None

        if run.cancelled:
            await self._abandon(run, emitter)
            return None

        consolidated = ConsolidatedResults()
        slots = asyncio.Semaphore(self.engine.config.debate.question_concurrency)
        # Sessions exist up front so cancellation can reach every question
        for index, question in enumerate(run.questions):
            run.sessions[index] = self.engine.create_session(
                run.document_id,
                question,
                num_debaters=len(run.perspectives),
                question_index=index,
                parent_emitter=emitter,
            )

        await asyncio.gather(
            *(
                self._run_question(run, index, document_context, consolidated, slots)
                for index in range(len(run.questions))
            )
        )

        # Cancellation is all-or-nothing: finished questions are not consolidated
        if run.cancelled:
            await self._abandon(run, emitter)
            return None

        results = consolidated.results
        if not results:
            await self._fail(run, emitter, "Every question failed; no ranking could be produced")
            return None

        run.report = self._consolidate(run, results, consolidated.omitted)
        run.status = EnhancedRunStatus.COMPLETED
        await emitter.emit(
            ProgressEventType.ACTIVITY,
            {
                "status": run.status.value,
                "previous_status": EnhancedRunStatus.RUNNING.value,
                "message": f"{len(results)} of {len(run.questions)} questions consolidated",
            },
        )
        return run.report

    async def cancel(self, run: EnhancedRun) -> None:
        """Stop the whole run; a completed run is left as it is."""
        if run.status is EnhancedRunStatus.COMPLETED:
            return
        run.cancel_token.cancel(CANCELLED_DETAIL)
        run.status = EnhancedRunStatus.ERROR
        run.error_detail = CANCELLED_DETAIL
        for machine in run.sessions.values():
            await machine.cancel()

    async def _abandon(self, run: EnhancedRun, emitter: ProgressEmitter) -> None:
        run.status = EnhancedRunStatus.ERROR
        run.error_detail = run.cancel_token.reason or CANCELLED_DETAIL
        run.report = None
        logger.info(f"Enhanced run {run.id} cancelled")
        await emitter.emit(
            ProgressEventType.ERROR, {"status": run.status.value, "message": run.error_detail}
        )

    async def _fail(self, run: EnhancedRun, emitter: ProgressEmitter, detail: str) -> None:
        run.status = EnhancedRunStatus.ERROR
        run.error_detail = detail
        logger.error(f"Enhanced run {run.id} failed: {detail}")
        await emitter.emit(
            ProgressEventType.ERROR, {"status": run.status.value, "message": detail}
        )

    async def _run_question(
        self,
        run: EnhancedRun,
        index: int,
        document_context: DocumentContext,
        consolidated: ConsolidatedResults,
        slots: asyncio.Semaphore,
    ) -> None:
        try:
            result = await self._debate_question(run, index, document_context, slots)
        except ConsolidationOmission as e:
            logger.warning(str(e))
            await consolidated.add_omission(
                OmittedQuestion(e.question_index, run.questions[e.question_index], e.reason)
            )
            return
        await consolidated.add_result(result)

    async def _debate_question(
        self,
        run: EnhancedRun,
        index: int,
        document_context: DocumentContext,
        slots: asyncio.Semaphore,
    ) -> QuestionDebateResult:
        """Debate one question; raises ConsolidationOmission unless it completed."""
        machine = run.sessions[index]
        async with slots:
            if machine.status is SessionStatus.INITIALIZING and not machine.cancel_token.cancelled:
                snapshot = await self.engine.run(machine, document_context, run.perspectives)
            else:
                snapshot = machine.snapshot()

        if snapshot.status is not SessionStatus.COMPLETED:
            raise ConsolidationOmission(index, snapshot.error_detail or "did not complete")
        try:
            return QuestionDebateResult.from_session(snapshot)
        except JudgeFailure as e:
            raise ConsolidationOmission(index, str(e)) from e

    def _consolidate(
        self,
        run: EnhancedRun,
        results: list[QuestionDebateResult],
        omitted: list[OmittedQuestion],
    ) -> EnhancedReport:
        ranking = final_ranking(results, run.perspectives)
        insights = _union(
            [r.verdict.insights or reasoning_points(r.verdict.reasoning) for r in results]
        )
        controversial = _union([r.verdict.controversial_points for r in results])

        best = ranking[0]
        summary = (
            f"This multi-question debate explored {len(run.questions)} questions about the document; "
            f"{len(results)} were judged"
            + (f" and {len(omitted)} omitted after failures" if omitted else "")
            + f'. The posture "{best.posture}" emerged as the strongest position with an '
            f"average weighted score of {best.average_score:.1f}."
        )

        report = EnhancedReport(
            questions=list(run.questions),
            results=results,
            final_ranking=ranking,
            consolidated_insights=insights,
            consolidated_controversial_points=controversial,
            omitted_questions=omitted,
            overall_summary=summary,
        )
        report.markdown = render_enhanced_markdown(report)
        return report


def render_enhanced_markdown(report: EnhancedReport) -> str:
    lines = ["# Multi-Question Debate Report", "", "## Overall Summary", "", report.overall_summary, ""]

    lines += ["## Final Ranking (Across All Questions)", ""]
    for position, entry in enumerate(report.final_ranking, start=1):
        lines.append(
            f"{position}. **{entry.posture}** - {entry.average_score:.1f} "
            f"(over {entry.questions_scored} question{'s' if entry.questions_scored != 1 else ''})"
        )
    lines.append("")

    lines += ["## Consolidated Insights", ""]
    lines += [f"- {insight}" for insight in report.consolidated_insights] or ["- None recorded"]
    lines.append("")

    lines += ["## Controversial Points", ""]
    lines += [f"- {point}" for point in report.consolidated_controversial_points] or [
        "- None recorded"
    ]
    lines.append("")

    if report.omitted_questions:
        lines += ["## Omitted Questions", ""]
        for omitted in report.omitted_questions:
            lines.append(f"- Question {omitted.question_index + 1}: {omitted.question} ({omitted.reason})")
        lines.append("")

    lines += ["---", ""]
    for result in report.results:
        labels = {p.debater_id: p.perspective_template for p in result.postures}
        lines += [f"## Question {result.question_index + 1}: {result.question}", ""]

        lines += ["### Postures", ""]
        lines += [f"{i}. {p.perspective_template}" for i, p in enumerate(result.postures, start=1)]
        lines.append("")

        lines += ["### Topics Debated", ""]
        lines += [f"- {topic}" for topic in result.topics]
        lines.append("")

        lines += ["### Initial Arguments", ""]
        for argument in result.arguments:
            lines += [f"#### {labels.get(argument.debater_id, argument.debater_id)}", ""]
            for item in argument.per_topic:
                lines += [f"**{item.topic}**", ""]
                if item.claim:
                    lines += [f"*Claim:* {item.claim}", ""]
                if item.reasoning:
                    lines += [item.reasoning, ""]
            if argument.overall_position:
                lines += [f"*Overall Position:* {argument.overall_position}", ""]

        lines += ["### Debate Rounds", ""]
        for debate_round in result.transcript.rounds[1:]:
            lines += [f"#### Round {debate_round.round_number}", ""]
            for exchange in debate_round.exchanges:
                speaker = labels.get(exchange.from_debater, exchange.from_debater)
                target = labels.get(exchange.to_debater or "", exchange.to_debater or "")
                if exchange.is_error:
                    lines += [f"*{speaker} ({exchange.type.value}) failed: {exchange.error}*", ""]
                elif exchange.type is ExchangeType.QUESTION:
                    lines += [f"**{speaker}** asks **{target}**:", f'> "{exchange.content}"', ""]
                else:
                    lines += [f"**{speaker}** responds:", f"> {exchange.content}", ""]

        lines += ["### Winner for this Question", "", f"**{result.winner}**", "", "---", ""]

    return "\n".join(lines)
