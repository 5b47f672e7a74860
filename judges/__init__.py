"""Judging system implementations."""

from .base import BaseJudge, Criterion, RankingEntry, Verdict, DEFAULT_CRITERIA
from .ai_judge import AIJudge
from .scoring import rank_debaters, weighted_score

__all__ = [
    "BaseJudge",
    "Criterion",
    "RankingEntry",
    "Verdict",
    "DEFAULT_CRITERIA",
    "AIJudge",
    "rank_debaters",
    "weighted_score",
]
