"""Base classes and interfaces for judging systems."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from config.settings import JudgingConfig
    from debate_engine.models import Posture, Transcript

WEIGHT_TOLERANCE = 1e-6
SCORE_MIN = 0.0
SCORE_MAX = 100.0


@dataclass(frozen=True)
class Criterion:
    """A weighted judging criterion."""

    name: str
    weight: float
    description: str = ""


DEFAULT_CRITERIA: tuple[Criterion, ...] = (
    Criterion("Evidence Quality", 0.30, "Strength and relevance of evidence presented"),
    Criterion("Logical Coherence", 0.25, "Clarity and consistency of argumentation"),
    Criterion("Topic Coverage", 0.25, "Comprehensiveness in addressing assigned topics"),
    Criterion("Response Quality", 0.20, "Directness and substance of answers to questions"),
)


def validate_criteria(criteria: list[Criterion] | tuple[Criterion, ...]) -> None:
    """Raise ValueError unless criteria are non-empty, uniquely named and sum to 1."""
    if not criteria:
        raise ValueError("At least one judging criterion is required")
    names = [c.name for c in criteria]
    if len(set(names)) != len(names):
        raise ValueError(f"Criterion names must be unique: {names}")
    if any(c.weight < 0 for c in criteria):
        raise ValueError("Criterion weights must be non-negative")
    total = sum(c.weight for c in criteria)
    if abs(total - 1.0) > WEIGHT_TOLERANCE:
        raise ValueError(f"Criterion weights must sum to 1.0, got {total:.6f}")


def criteria_from_config(judging: JudgingConfig) -> list[Criterion]:
    criteria = [Criterion(c.name, c.weight, c.description) for c in judging.criteria]
    validate_criteria(criteria)
    return criteria


@dataclass
class RankingEntry:
    """Position of one debater in a verdict's ranking."""

    debater_id: str
    weighted_score: float
    rank: int


@dataclass
class Verdict:
    """Complete judge decision with per-criterion scores and ranking."""

    judge_id: str
    confidence: float
    scores: dict[str, dict[str, float]]  # debater_id -> criterion name -> 0..100
    criteria: list[Criterion]
    verdict: str
    reasoning: str
    ranking: list[RankingEntry] = field(default_factory=list)
    insights: list[str] = field(default_factory=list)
    controversial_points: list[str] = field(default_factory=list)

    def weighted_scores(self) -> dict[str, float]:
        return {entry.debater_id: entry.weighted_score for entry in self.ranking}

    @property
    def winner_id(self) -> str | None:
        return self.ranking[0].debater_id if self.ranking else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "judge_id": self.judge_id,
            "confidence": self.confidence,
            "scores": {d: dict(s) for d, s in self.scores.items()},
            "criteria": [
                {"name": c.name, "weight": c.weight, "description": c.description}
                for c in self.criteria
            ],
            "verdict": self.verdict,
            "reasoning": self.reasoning,
            "ranking": [
                {
                    "debater_id": r.debater_id,
                    "weighted_score": r.weighted_score,
                    "rank": r.rank,
                }
                for r in self.ranking
            ],
            "insights": list(self.insights),
            "controversial_points": list(self.controversial_points),
        }


class BaseJudge(ABC):
    """Abstract base class for all judges."""

    @abstractmethod
    async def evaluate_debate(
        self,
        transcript: Transcript,
        postures: list[Posture],
        topics: list[str],
        criteria: list[Criterion],
    ) -> Verdict:
        """Evaluate a finished transcript and return a verdict."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Judge name/identifier."""
        pass
