"""Weighted scoring and deterministic ranking of debaters."""

from collections.abc import Sequence

from .base import Criterion, RankingEntry

# Weighted scores are compared at this precision so float noise never decides a tie
SCORE_PRECISION = 6


def weighted_score(scores: dict[str, float], criteria: Sequence[Criterion]) -> float:
    """Sum of criterion score times weight; a missing criterion counts as zero."""
    return round(
        sum(scores.get(c.name, 0.0) * c.weight for c in criteria), SCORE_PRECISION
    )


def tiebreak_criterion_name(
    criteria: Sequence[Criterion], preferred: str = "Evidence Quality"
) -> str:
    names = [c.name for c in criteria]
    if preferred in names:
        return preferred
    return names[0]


def rank_debaters(
    scores: dict[str, dict[str, float]],
    criteria: Sequence[Criterion],
    debater_order: Sequence[str],
    tiebreak: str = "Evidence Quality",
) -> list[RankingEntry]:
    """Rank debaters into a total order.

    Order is weighted score descending, then the tie-break criterion score
    descending, then the debater's position in ``debater_order`` ascending.
    Debaters absent from ``debater_order`` are not ranked.
    """
    tiebreak_name = tiebreak_criterion_name(criteria, tiebreak)
    index = {debater_id: i for i, debater_id in enumerate(debater_order)}
    candidates = [debater_id for debater_id in scores if debater_id in index]

    def sort_key(debater_id: str) -> tuple[float, float, int]:
        debater_scores = scores[debater_id]
        return (
            -weighted_score(debater_scores, criteria),
            -debater_scores.get(tiebreak_name, 0.0),
            index[debater_id],
        )

    ordered = sorted(candidates, key=sort_key)
    return [
        RankingEntry(
            debater_id=debater_id,
            weighted_score=weighted_score(scores[debater_id], criteria),
            rank=position,
        )
        for position, debater_id in enumerate(ordered, start=1)
    ]
