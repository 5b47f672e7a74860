from typing import Any

from pydantic import BaseModel

from debate_engine.enhanced import EnhancedRun
from debate_engine.models import Session


class DebateResponse(BaseModel):
    """Response model for a debate session snapshot."""

    id: str
    document_id: str
    question: str | None = None
    question_index: int | None = None
    status: str
    current_round: int
    num_debaters: int
    cross_examination_rounds: int
    error: str | None = None
    topics: list[str] = []
    postures: list[dict[str, Any]] = []
    transcript: dict[str, Any] | None = None
    verdict: dict[str, Any] | None = None
    report: dict[str, Any] | None = None

    @classmethod
    def from_session(cls, session: Session) -> "DebateResponse":
        data = session.to_dict()
        return cls(
            id=data["id"],
            document_id=data["document_id"],
            question=data["question"],
            question_index=session.question_index,
            status=data["status"],
            current_round=data["current_round"],
            num_debaters=data["num_debaters"],
            cross_examination_rounds=data["cross_examination_rounds"],
            error=data["error"],
            topics=data["topics"],
            postures=data["postures"],
            transcript=data["transcript"],
            verdict=data["verdict"],
            report=data["report"],
        )


class EnhancedDebateResponse(BaseModel):
    """Response model for a multi-question run."""

    id: str
    document_id: str
    status: str
    questions: list[str]
    perspectives: list[str] = []
    sessions: dict[str, dict[str, Any]] = {}
    error: str | None = None
    report: dict[str, Any] | None = None

    @classmethod
    def from_run(cls, run: EnhancedRun) -> "EnhancedDebateResponse":
        data = run.to_dict()
        return cls(
            id=data["id"],
            document_id=data["document_id"],
            status=data["status"],
            questions=data["questions"],
            perspectives=data["perspectives"],
            sessions=data["sessions"],
            error=data["error"],
            report=data["report"],
        )
