"""Language-model implementation of the debate capabilities."""

import logging
from typing import Any

from config.settings import AppConfig
from judges.ai_judge import AIJudge
from judges.base import BaseJudge, Criterion, Verdict
from models.manager import ModelManager

from .models import Argument, DocumentContext, Exchange, Posture, TopicArgument, Transcript
from .utils import extract_json_object, string_list

logger = logging.getLogger(__name__)

PRIOR_EXCHANGE_LIMIT = 12


def _field(data: dict[str, Any], *names: str) -> Any:
    for name in names:
        if name in data:
            return data[name]
    return None


def format_prior_exchanges(
    exchanges: list[Exchange], labels: dict[str, str], limit: int = PRIOR_EXCHANGE_LIMIT
) -> str:
    """Recent successful exchanges as prompt context."""
    recent = [e for e in exchanges if not e.is_error][-limit:]
    if not recent:
        return "(no prior exchanges)"
    lines = []
    for exchange in recent:
        speaker = labels.get(exchange.from_debater, exchange.from_debater)
        target = f" to {labels.get(exchange.to_debater, exchange.to_debater)}" if exchange.to_debater else ""
        lines.append(f"[{exchange.type.value}] {speaker}{target}: {exchange.content}")
    return "\n\n".join(lines)


class LLMDebateCapabilities:
    """Debate capabilities backed by registered chat models.

    Expects models registered under ``debater`` and ``judge``; ``moderator``
    (postures and questions) falls back to the debater model.
    """

    def __init__(
        self,
        model_manager: ModelManager,
        judge: BaseJudge | None = None,
        *,
        debater_model: str = "debater",
        moderator_model: str = "moderator",
        judge_model: str = "judge",
    ):
        self.model_manager = model_manager
        self.debater_model = debater_model
        self.moderator_model = model_manager.resolve(moderator_model, debater_model)
        self.judge_impl = judge or AIJudge(model_manager, judge_model)
        self._labels: dict[str, str] = {}

    @classmethod
    def from_config(cls, config: AppConfig) -> "LLMDebateCapabilities":
        return cls(ModelManager.from_models(config.system, config.models))

    def _remember(self, *postures: Posture) -> None:
        for posture in postures:
            self._labels[posture.debater_id] = posture.perspective_template

    async def _ask_json(self, model_id: str, system: str, prompt: str) -> dict[str, Any]:
        response = await self.model_manager.generate_response(
            model_id,
            [{"role": "system", "content": system}, {"role": "user", "content": prompt}],
            json_mode=True,
        )
        return extract_json_object(response)

    async def _ask_text(self, model_id: str, system: str, prompt: str) -> str:
        return await self.model_manager.generate_response(
            model_id,
            [{"role": "system", "content": system}, {"role": "user", "content": prompt}],
        )

    async def generate_postures(
        self,
        document_context: DocumentContext,
        question: str | None,
        n: int,
        perspectives: list[str] | None = None,
    ) -> list[Posture]:
        if perspectives:
            perspective_text = "Use exactly these perspectives, in this order:\n" + "\n".join(
                f"{i + 1}. {p}" for i, p in enumerate(perspectives)
            )
        else:
            perspective_text = (
                f"Choose {n} clearly distinct analytical perspectives (for three debaters, e.g. "
                "Critical Analyst, Methodological Advocate, Integrative Synthesizer)."
            )
        focus = f"\n\n# Research Question\n{question}" if question else ""
        prompt = f"""Based on the following document, generate {n} distinct debate postures for a structured academic debate.

{document_context.excerpt()}{focus}

---

{perspective_text}

All postures argue over ONE shared list of 3-8 topics. For each posture provide an initial position (2-3 sentences) and 3-4 guiding questions.

Output as JSON:
{{
  "topics": ["topic1", "topic2", "topic3"],
  "postures": [
    {{
      "perspectiveTemplate": "Perspective name",
      "initialPosition": "Clear stance...",
      "guidingQuestions": ["question1", "question2", "question3"]
    }}
  ]
}}"""
        data = await self._ask_json(
            self.moderator_model,
            "You are an expert debate moderator creating diverse, balanced debate postures for academic discourse.",
            prompt,
        )
        raw_postures = data.get("postures")
        if not isinstance(raw_postures, list):
            raise ValueError("Posture response has no 'postures' list")
        shared_topics = string_list(data.get("topics"))

        return [
            Posture(
                debater_id="",
                index=i,
                perspective_template=str(_field(raw, "perspectiveTemplate", "perspective_template") or ""),
                topics=shared_topics or string_list(raw.get("topics")),
                guiding_questions=string_list(_field(raw, "guidingQuestions", "guiding_questions")),
                initial_position=str(_field(raw, "initialPosition", "initial_position") or ""),
            )
            for i, raw in enumerate(raw_postures)
            if isinstance(raw, dict)
        ]

    async def generate_questions(
        self, document_context: DocumentContext, max_questions: int
    ) -> list[str]:
        prompt = f"""Read the following document and propose 8-{max_questions} debate questions about it.

{document_context.excerpt()}

Requirements:
- Each question must be open-ended (not answerable with yes/no)
- Questions should probe methodology, evidence, implications and limitations
- Each question should support multiple defensible positions

Output as JSON: {{"questions": ["question 1", "question 2"]}}"""
        data = await self._ask_json(
            self.moderator_model,
            "You are a research analyst who frames contested, substantive questions about academic work.",
            prompt,
        )
        return string_list(data.get("questions"))

    async def generate_argument(
        self, posture: Posture, topics: list[str], document_context: DocumentContext
    ) -> Argument:
        self._remember(posture)
        topic_list = "\n".join(f"- {t}" for t in topics)
        prompt = f"""You are the {posture.perspective_template} in a structured debate.

Your position: {posture.initial_position}
Guiding questions: {'; '.join(posture.guiding_questions)}

# Document
{document_context.excerpt()}

Make one claim per topic, with reasoning grounded in the document:
{topic_list}

Output as JSON:
{{
  "per_topic": [{{"topic": "...", "claim": "...", "reasoning": "...", "citations": ["quoted passage or section"]}}],
  "overall_position": "one-paragraph summary of your stance"
}}"""
        data = await self._ask_json(
            self.debater_model,
            f"You are a rigorous academic debater arguing as the {posture.perspective_template}.",
            prompt,
        )
        per_topic = []
        for item in data.get("per_topic") or []:
            if not isinstance(item, dict) or not item.get("claim"):
                continue
            per_topic.append(
                TopicArgument(
                    topic=str(item.get("topic") or ""),
                    claim=str(item["claim"]),
                    reasoning=str(item.get("reasoning") or ""),
                    citations=string_list(item.get("citations")),
                )
            )
        return Argument(
            debater_id=posture.debater_id,
            per_topic=per_topic,
            overall_position=str(_field(data, "overall_position", "overallPosition") or ""),
        )

    async def generate_question(
        self,
        asker: Posture,
        askee: Posture,
        topics: list[str],
        prior_exchanges: list[Exchange],
    ) -> str:
        self._remember(asker, askee)
        prompt = f"""You are the {asker.perspective_template}, cross-examining the {askee.perspective_template}.

Shared topics: {', '.join(topics)}
Their position: {askee.initial_position}

Debate so far:
{format_prior_exchanges(prior_exchanges, self._labels)}

Ask ONE pointed, substantive question that tests the weakest part of their argument. Reply with the question only."""
        return await self._ask_text(
            self.debater_model,
            f"You are a sharp academic cross-examiner arguing as the {asker.perspective_template}.",
            prompt,
        )

    async def generate_answer(
        self,
        askee: Posture,
        question: str,
        document_context: DocumentContext,
        prior_exchanges: list[Exchange],
    ) -> str:
        self._remember(askee)
        prompt = f"""You are the {askee.perspective_template}. Your position: {askee.initial_position}

# Document
{document_context.excerpt(limit=6000)}

Debate so far:
{format_prior_exchanges(prior_exchanges, self._labels)}

Question put to you:
{question}

Answer directly and substantively in at most two paragraphs, citing the document where possible."""
        return await self._ask_text(
            self.debater_model,
            f"You are a rigorous academic debater arguing as the {askee.perspective_template}.",
            prompt,
        )

    async def judge(
        self,
        transcript: Transcript,
        postures: list[Posture],
        topics: list[str],
        criteria: list[Criterion],
    ) -> Verdict:
        return await self.judge_impl.evaluate_debate(transcript, postures, topics, criteria)
