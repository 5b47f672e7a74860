"""AI-powered debate judge using language models."""

import logging
import uuid

from debate_engine.models import Posture, Transcript
from debate_engine.utils import extract_json_object, string_list
from models.manager import ModelManager

from .base import BaseJudge, Criterion, Verdict

logger = logging.getLogger(__name__)


class AIJudge(BaseJudge):
    """AI judge using a dedicated language model for evaluation."""

    def __init__(self, model_manager: ModelManager, model_id: str = "judge"):
        self.model_manager = model_manager
        self.model_id = model_id
        self.judge_id = f"ai-judge-{uuid.uuid4().hex[:8]}"

    @property
    def name(self) -> str:
        return f"AI Judge ({self.model_id})"

    async def evaluate_debate(
        self,
        transcript: Transcript,
        postures: list[Posture],
        topics: list[str],
        criteria: list[Criterion],
    ) -> Verdict:
        """Evaluate the debate using the AI judge model."""
        logger.info(f"{self.name} evaluating {len(postures)} debaters")

        messages = [
            {"role": "system", "content": self._get_judge_system_prompt()},
            {
                "role": "user",
                "content": self._create_evaluation_prompt(transcript, postures, topics, criteria),
            },
        ]
        response = await self.model_manager.generate_response(self.model_id, messages)
        return self._parse_evaluation(response, postures, criteria)

    def _format_transcript(self, transcript: Transcript, postures: list[Posture]) -> str:
        """Render rounds for the judge; failed exchanges are shown as missing."""
        labels = {p.debater_id: p.perspective_template for p in postures}
        lines = []
        for debate_round in transcript.rounds:
            title = debate_round.round_type.value.replace("_", "-").title()
            lines.append(f"\n### Round {debate_round.round_number}: {title}")
            for exchange in debate_round.exchanges:
                speaker = f"{labels.get(exchange.from_debater, 'Non-scored debater')} ({exchange.from_debater})"
                header = f"**[{exchange.type.value.upper()}]** From: {speaker}"
                if exchange.to_debater:
                    header += f" | To: {exchange.to_debater}"
                lines.append(header)
                if exchange.is_error:
                    lines.append("(no content - this contribution failed and carries no evidence)")
                else:
                    lines.append(exchange.content)
        return "\n".join(lines)

    def _get_judge_system_prompt(self) -> str:
        """Get system prompt for the AI judge."""
        return """You are an expert debate judge evaluating a structured academic debate about a research paper.

        JUDGING PRINCIPLES:
        1. Evaluate each debater against every criterion on a 0-100 scale
        2. Judge the arguments, not the perspective labels
        3. Missing or failed contributions earn no credit
        4. Be objective, thorough, and fair in your assessment

        You must respond with a structured JSON evaluation that can be parsed programmatically."""

    def _create_evaluation_prompt(
        self,
        transcript: Transcript,
        postures: list[Posture],
        topics: list[str],
        criteria: list[Criterion],
    ) -> str:
        """Create the evaluation prompt for the judge."""
        posture_text = "\n".join(
            f"### {p.perspective_template} ({p.debater_id})\n"
            f"**Position**: {p.initial_position}\n"
            f"**Guiding Questions**: {'; '.join(p.guiding_questions)}"
            for p in postures
        )
        criteria_text = "\n".join(
            f"- **{c.name}** (weight: {c.weight * 100:.0f}%): {c.description}" for c in criteria
        )
        example_scores = ",\n".join(
            f'    "{p.debater_id}": {{'
            + ", ".join(f'"{c.name}": <0-100>' for c in criteria)
            + "}"
            for p in postures
        )

        return f"""# Debate Evaluation

## Shared Topics
{', '.join(topics)}

## Postures
{posture_text}

## Debate Transcript
{self._format_transcript(transcript, postures)}

## Evaluation Criteria
{criteria_text}

## Required Output Format

Provide your evaluation as JSON with this exact structure:

{{
  "scores": {{
{example_scores}
  }},
  "reasoning": "Detailed natural language explanation of strengths and weaknesses of each debater",
  "confidence": <0.0-1.0>,
  "verdict": "Summary verdict identifying which analysis was most compelling and why",
  "insights": ["key insight surfaced by the debate", "..."],
  "controversial_points": ["point the debaters could not agree on", "..."]
}}

CRITICAL INSTRUCTIONS:
- Score EVERY debater listed above on EVERY criterion
- Use the debater ids ({', '.join(p.debater_id for p in postures)}) as keys
- Provide valid JSON only, no additional text"""

    def _parse_evaluation(
        self, evaluation: str, postures: list[Posture], criteria: list[Criterion]
    ) -> Verdict:
        """Parse AI evaluation response into a verdict without ranking."""
        logger.debug(f"Raw judge evaluation: {evaluation[:500]}")
        data = extract_json_object(evaluation)

        raw_scores = data.get("scores")
        if not isinstance(raw_scores, dict):
            raise ValueError("Judge response has no 'scores' object")

        # Accept perspective labels in place of debater ids
        by_label = {p.perspective_template.lower(): p.debater_id for p in postures}
        criterion_names = {c.name.lower(): c.name for c in criteria}
        scores: dict[str, dict[str, float]] = {}
        for key, values in raw_scores.items():
            debater_id = key if key in {p.debater_id for p in postures} else by_label.get(str(key).lower())
            if debater_id is None or not isinstance(values, dict):
                logger.debug(f"Ignoring judge scores under unknown key {key!r}")
                continue
            scores[debater_id] = {
                criterion_names[str(name).lower()]: float(value)
                for name, value in values.items()
                if str(name).lower() in criterion_names
            }

        try:
            confidence = float(data.get("confidence", 0.5))
        except (TypeError, ValueError):
            confidence = 0.5

        return Verdict(
            judge_id=self.judge_id,
            confidence=confidence,
            scores=scores,
            criteria=list(criteria),
            verdict=str(data.get("verdict", "")),
            reasoning=str(data.get("reasoning", "")),
            insights=string_list(data.get("insights")),
            controversial_points=string_list(data.get("controversial_points")),
        )
