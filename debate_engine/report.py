"""Single-question debate reports."""

import re

from judges.base import Verdict

from .models import Argument, DebateReport, Posture, Session, Transcript
from .types import ExchangeType, RoundType


def reasoning_points(reasoning: str) -> list[str]:
    """Split free-form judge reasoning into paragraph-sized points."""
    paragraphs = [p.strip() for p in re.split(r"\n\s*\n", reasoning) if p.strip()]
    points = []
    for paragraph in paragraphs:
        lines = [line.strip(" -*\t") for line in paragraph.splitlines() if line.strip(" -*\t")]
        points.append(" ".join(lines))
    return points


def _label(postures: list[Posture]) -> dict[str, str]:
    return {p.debater_id: p.perspective_template for p in postures}


def _key_claims(arguments: dict[str, Argument]) -> dict[str, list[str]]:
    return {
        debater_id: [f"{item.topic}: {item.claim}" for item in argument.per_topic if item.claim]
        for debater_id, argument in arguments.items()
    }


def build_report(session: Session) -> DebateReport:
    """Assemble the report of a judged session; output depends only on its inputs."""
    verdict = session.verdict
    transcript = session.transcript
    if verdict is None or transcript is None:
        raise ValueError(f"Session {session.id} has no verdict to report on")

    labels = _label(session.postures)
    ranked = [
        {
            "debater_id": entry.debater_id,
            "perspective": labels.get(entry.debater_id, entry.debater_id),
            "score": entry.weighted_score,
            "rank": entry.rank,
        }
        for entry in verdict.ranking
    ]
    insights = verdict.insights or reasoning_points(verdict.reasoning)
    key_claims = _key_claims(session.arguments)

    winner = ranked[0]
    summary = (
        f"{len(session.postures)} postures debated {len(session.topics)} shared topics over "
        f"{len(transcript.rounds)} rounds ({transcript.count_exchanges()} exchanges). "
        f'"{winner["perspective"]}" ranked first with a weighted score of {winner["score"]:.1f}.'
    )
    if verdict.verdict:
        summary += f" {verdict.verdict}"

    report = DebateReport(
        question=session.question,
        topics=list(session.topics),
        postures=[p.perspective_template for p in session.postures],
        summary=summary,
        ranked_postures=ranked,
        insights=insights,
        controversial_points=list(verdict.controversial_points),
        key_claims=key_claims,
        markdown="",
    )
    report.markdown = render_markdown(report, verdict, transcript, labels)
    return report


def render_markdown(
    report: DebateReport, verdict: Verdict, transcript: Transcript, labels: dict[str, str]
) -> str:
    lines = ["# Debate Report", ""]
    if report.question:
        lines += [f"**Question:** {report.question}", ""]
    lines += ["## Summary", "", report.summary, ""]

    lines += ["## Ranked Postures", ""]
    for entry in report.ranked_postures:
        lines.append(f"{entry['rank']}. **{entry['perspective']}** - {entry['score']:.1f}")
    lines.append("")

    criteria = [c.name for c in verdict.criteria]
    lines += ["## Scores", ""]
    lines.append("| Posture | " + " | ".join(criteria) + " | Weighted |")
    lines.append("|" + "---|" * (len(criteria) + 2))
    for entry in report.ranked_postures:
        scores = verdict.scores[entry["debater_id"]]
        cells = " | ".join(f"{scores[name]:.0f}" for name in criteria)
        lines.append(f"| {entry['perspective']} | {cells} | {entry['score']:.1f} |")
    lines.append("")

    lines += ["## Key Insights", ""]
    lines += [f"- {insight}" for insight in report.insights] or ["- None recorded"]
    lines.append("")

    lines += ["## Controversial Points", ""]
    lines += [f"- {point}" for point in report.controversial_points] or ["- None recorded"]
    lines.append("")

    lines += ["## Topics", ""]
    lines += [f"- {topic}" for topic in report.topics]
    lines.append("")

    lines += ["## Transcript", ""]
    for debate_round in transcript.rounds:
        title = "Exposition" if debate_round.round_type is RoundType.EXPOSITION else "Cross-Examination"
        lines += [f"### Round {debate_round.round_number}: {title}", ""]
        for exchange in debate_round.exchanges:
            speaker = labels.get(exchange.from_debater, exchange.from_debater)
            if exchange.is_error:
                lines += [f"*{speaker} ({exchange.type.value}) failed: {exchange.error}*", ""]
                continue
            if exchange.type is ExchangeType.QUESTION:
                target = labels.get(exchange.to_debater or "", exchange.to_debater)
                lines += [f"**{speaker}** asks **{target}**:", f"> {exchange.content}", ""]
            elif exchange.type is ExchangeType.ANSWER:
                lines += [f"**{speaker}** responds:", f"> {exchange.content}", ""]
            else:
                lines += [f"**{speaker}**", "", exchange.content, ""]

    lines += ["## Verdict", "", verdict.verdict or "-", "", f"Confidence: {verdict.confidence:.2f}", ""]
    return "\n".join(lines)
