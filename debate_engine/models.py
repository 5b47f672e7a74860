"""Data models for the debate engine."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any

from .types import ExchangeType, RoundType, SessionStatus

if TYPE_CHECKING:
    from judges.base import Verdict


def _new_id() -> str:
    return uuid.uuid4().hex


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class DocumentContext:
    """Read-only view of the source document a debate is about."""

    id: str
    title: str = ""
    abstract: str = ""
    full_text: str = ""

    @property
    def has_content(self) -> bool:
        return bool(self.abstract.strip() or self.full_text.strip())

    def excerpt(self, limit: int = 12000) -> str:
        """Title, abstract and (truncated) full text for prompting."""
        parts = []
        if self.title:
            parts.append(f"# {self.title}")
        if self.abstract.strip():
            parts.append(f"## Abstract\n{self.abstract.strip()}")
        body = self.full_text.strip()
        if body:
            if len(body) > limit:
                body = body[:limit] + "\n[...truncated]"
            parts.append(f"## Full Text\n{body}")
        return "\n\n".join(parts)


@dataclass
class Posture:
    """A debater's perspective over the session's shared topics."""

    debater_id: str
    index: int
    perspective_template: str
    topics: list[str] = field(default_factory=list)
    guiding_questions: list[str] = field(default_factory=list)
    initial_position: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "debater_id": self.debater_id,
            "index": self.index,
            "perspective_template": self.perspective_template,
            "topics": list(self.topics),
            "guiding_questions": list(self.guiding_questions),
            "initial_position": self.initial_position,
        }


@dataclass
class TopicArgument:
    """Claim and reasoning for one shared topic."""

    topic: str
    claim: str
    reasoning: str = ""
    citations: list[str] = field(default_factory=list)


@dataclass
class Argument:
    """A debater's structured initial argument."""

    debater_id: str
    per_topic: list[TopicArgument] = field(default_factory=list)
    overall_position: str = ""

    def render(self) -> str:
        """Plain-text form used as exposition exchange content."""
        lines = []
        for item in self.per_topic:
            lines.append(f"[{item.topic}] {item.claim}")
            if item.reasoning:
                lines.append(item.reasoning)
            if item.citations:
                lines.append("Sources: " + "; ".join(item.citations))
        if self.overall_position:
            lines.append(f"Overall position: {self.overall_position}")
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "debater_id": self.debater_id,
            "per_topic": [
                {
                    "topic": t.topic,
                    "claim": t.claim,
                    "reasoning": t.reasoning,
                    "citations": list(t.citations),
                }
                for t in self.per_topic
            ],
            "overall_position": self.overall_position,
        }


@dataclass
class Exchange:
    """A single utterance in the transcript."""

    type: ExchangeType
    from_debater: str
    content: str
    to_debater: str | None = None
    topics: list[str] = field(default_factory=list)
    error: str | None = None
    question_index: int | None = None
    id: str = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "from": self.from_debater,
            "to": self.to_debater,
            "content": self.content,
            "topics": list(self.topics),
            "timestamp": self.timestamp.isoformat(),
            "error": self.error,
        }
        if self.question_index is not None:
            data["question_index"] = self.question_index
        return data


@dataclass
class Round:
    """An exposition or cross-examination round."""

    round_number: int
    round_type: RoundType
    exchanges: list[Exchange] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "round_number": self.round_number,
            "round_type": self.round_type.value,
            "exchanges": [e.to_dict() for e in self.exchanges],
        }


@dataclass
class TranscriptMetadata:
    """Timing, counters and failure markers for a transcript."""

    start_time: datetime = field(default_factory=datetime.now)
    end_time: datetime | None = None
    total_exchanges: int = 0
    partial_debate: bool = False
    failure_round: int | None = None
    error_message: str | None = None


@dataclass
class Transcript:
    """Ordered rounds of a debate session."""

    metadata: TranscriptMetadata = field(default_factory=TranscriptMetadata)
    rounds: list[Round] = field(default_factory=list)

    def start_round(self, round_type: RoundType) -> Round:
        """Append the next round; numbering is contiguous from 1."""
        debate_round = Round(round_number=len(self.rounds) + 1, round_type=round_type)
        self.rounds.append(debate_round)
        return debate_round

    def exchanges(self) -> list[Exchange]:
        return [exchange for r in self.rounds for exchange in r.exchanges]

    def count_exchanges(self) -> int:
        return sum(len(r.exchanges) for r in self.rounds)

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadata": {
                "start_time": _iso(self.metadata.start_time),
                "end_time": _iso(self.metadata.end_time),
                "total_exchanges": self.metadata.total_exchanges,
                "partial_debate": self.metadata.partial_debate,
                "failure_round": self.metadata.failure_round,
                "error_message": self.metadata.error_message,
            },
            "rounds": [r.to_dict() for r in self.rounds],
        }


@dataclass
class DebateReport:
    """Deterministic summary of a completed single-question debate."""

    question: str | None
    topics: list[str]
    postures: list[str]
    summary: str
    ranked_postures: list[dict[str, Any]]
    insights: list[str]
    controversial_points: list[str]
    key_claims: dict[str, list[str]]
    markdown: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "question": self.question,
            "topics": list(self.topics),
            "postures": list(self.postures),
            "summary": self.summary,
            "ranked_postures": list(self.ranked_postures),
            "insights": list(self.insights),
            "controversial_points": list(self.controversial_points),
            "key_claims": {k: list(v) for k, v in self.key_claims.items()},
            "markdown": self.markdown,
        }


@dataclass
class Session:
    """A single debate run over one document and (optionally) one question."""

    document_id: str
    question: str | None = None
    num_debaters: int = 3
    cross_examination_rounds: int = 2
    id: str = field(default_factory=_new_id)
    status: SessionStatus = SessionStatus.INITIALIZING
    current_round: int = 0
    question_index: int | None = None
    postures: list[Posture] = field(default_factory=list)
    topics: list[str] = field(default_factory=list)
    arguments: dict[str, Argument] = field(default_factory=dict)
    transcript: Transcript | None = None
    verdict: Verdict | None = None
    report: DebateReport | None = None
    error_detail: str | None = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "document_id": self.document_id,
            "question": self.question,
            "status": self.status.value,
            "current_round": self.current_round,
            "num_debaters": self.num_debaters,
            "cross_examination_rounds": self.cross_examination_rounds,
            "postures": [p.to_dict() for p in self.postures],
            "topics": list(self.topics),
            "arguments": [a.to_dict() for a in self.arguments.values()],
            "transcript": self.transcript.to_dict() if self.transcript else None,
            "verdict": self.verdict.to_dict() if self.verdict else None,
            "report": self.report.to_dict() if self.report else None,
            "error": self.error_detail,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if self.question_index is not None:
            data["question_index"] = self.question_index
        return data
