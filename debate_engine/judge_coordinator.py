"""Judge invocation, verdict validation and deterministic ranking."""

import logging

from judges.base import (
    DEFAULT_CRITERIA,
    SCORE_MAX,
    SCORE_MIN,
    Criterion,
    Verdict,
    validate_criteria,
)
from judges.scoring import rank_debaters

from .capabilities import CapabilityInvoker, DebateCapabilities
from .exceptions import CapabilityError, JudgeFailure
from .models import Posture, Transcript

logger = logging.getLogger(__name__)


def _dedupe(items: list[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for item in items:
        cleaned = item.strip()
        if cleaned and cleaned not in seen:
            seen.add(cleaned)
            unique.append(cleaned)
    return unique


class JudgeCoordinator:
    """Obtains a verdict for the viable debaters of a finished transcript."""

    def __init__(
        self,
        capabilities: DebateCapabilities,
        invoker: CapabilityInvoker,
        criteria: list[Criterion] | None = None,
        *,
        timeout: float | None = None,
        tiebreak: str = "Evidence Quality",
    ):
        self.capabilities = capabilities
        self.invoker = invoker
        self.criteria = list(criteria) if criteria is not None else list(DEFAULT_CRITERIA)
        validate_criteria(self.criteria)
        self.timeout = timeout
        self.tiebreak = tiebreak

    async def evaluate(
        self, transcript: Transcript, viable: list[Posture], topics: list[str]
    ) -> Verdict:
        """Judge the transcript; raises JudgeFailure once the retry is spent."""
        viable = sorted(viable, key=lambda p: p.index)

        async def attempt() -> Verdict:
            raw = await self.capabilities.judge(transcript, viable, topics, self.criteria)
            return self._finalize(raw, viable)

        try:
            verdict = await self.invoker.call("judge", attempt, timeout=self.timeout)
        except CapabilityError as e:
            raise JudgeFailure(f"Judge could not produce a verdict: {e}") from e

        logger.info(
            f"Verdict: {verdict.winner_id} ranked first "
            f"({verdict.ranking[0].weighted_score:.2f}), confidence {verdict.confidence:.2f}"
        )
        return verdict

    def _finalize(self, raw: Verdict, viable: list[Posture]) -> Verdict:
        """Restrict scores to viable debaters, clamp them, and rank."""
        scores: dict[str, dict[str, float]] = {}
        missing: list[str] = []
        for posture in viable:
            debater_scores = raw.scores.get(posture.debater_id)
            if debater_scores is None:
                missing.append(posture.debater_id)
                continue
            absent = [c.name for c in self.criteria if c.name not in debater_scores]
            if absent:
                missing.append(f"{posture.debater_id} ({', '.join(absent)})")
                continue
            scores[posture.debater_id] = {
                c.name: min(SCORE_MAX, max(SCORE_MIN, float(debater_scores[c.name])))
                for c in self.criteria
            }
        if missing:
            raise CapabilityError("judge", f"incomplete scoring for {'; '.join(missing)}")

        dropped = set(raw.scores) - set(scores)
        if dropped:
            logger.debug(f"Ignoring judge scores for non-viable debaters: {sorted(dropped)}")

        ranking = rank_debaters(
            scores,
            self.criteria,
            [p.debater_id for p in viable],
            self.tiebreak,
        )
        return Verdict(
            judge_id=raw.judge_id,
            confidence=min(1.0, max(0.0, float(raw.confidence))),
            scores=scores,
            criteria=list(self.criteria),
            verdict=raw.verdict.strip(),
            reasoning=raw.reasoning.strip(),
            ranking=ranking,
            insights=_dedupe(raw.insights),
            controversial_points=_dedupe(raw.controversial_points),
        )
