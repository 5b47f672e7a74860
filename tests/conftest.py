"""Pytest configuration and shared fixtures.

Provides a scripted, in-memory implementation of the debate capabilities so
the orchestration can be exercised without a language model.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import pytest

from config.settings import (
    AppConfig,
    CapabilityConfig,
    DebateConfig,
    JudgingConfig,
    ModelConfig,
    SystemConfig,
)
from debate_engine.models import (
    Argument,
    DocumentContext,
    Exchange,
    Posture,
    TopicArgument,
    Transcript,
)
from judges.base import Criterion, Verdict

DEFAULT_TOPICS = ["Methodology", "Evidence", "Implications"]
DEFAULT_LABELS = ["Critical Analyst", "Methodological Advocate", "Integrative Synthesizer"]

type JudgeHook = Callable[[Transcript, list[Posture]], Awaitable[Verdict | None]]


class FakeCapabilities:
    """Deterministic capability backend with scriptable failures.

    - ``argument_failures``: debater id -> number of calls that raise first
    - ``question_failures``: (asker, askee) pairs whose questions always fail
    - ``answer_failures``: askee ids whose answers always fail
    - ``judge_hook``: runs before the default verdict; may raise, sleep or
      return a verdict of its own
    """

    def __init__(
        self,
        *,
        topics: list[str] | None = None,
        argument_failures: dict[str, int] | None = None,
        question_failures: set[tuple[str, str]] | None = None,
        answer_failures: set[str] | None = None,
        judge_hook: JudgeHook | None = None,
        answer_delay: float = 0.0,
    ):
        self.topics = topics or list(DEFAULT_TOPICS)
        self.argument_failures = dict(argument_failures or {})
        self.question_failures = question_failures or set()
        self.answer_failures = answer_failures or set()
        self.judge_hook = judge_hook
        self.answer_delay = answer_delay

        self.calls: list[tuple[str, tuple]] = []
        self.active_answers: dict[str, int] = {}
        self.max_parallel_answers: dict[str, int] = {}

    async def generate_postures(
        self,
        document_context: DocumentContext,
        question: str | None,
        n: int,
        perspectives: list[str] | None = None,
    ) -> list[Posture]:
        self.calls.append(("generate_postures", (question, n)))
        labels = perspectives or [
            DEFAULT_LABELS[i] if i < len(DEFAULT_LABELS) else f"Perspective {i + 1}"
            for i in range(n)
        ]
        return [
            Posture(
                debater_id="",
                index=i,
                perspective_template=labels[i],
                topics=list(self.topics),
                guiding_questions=[f"What does the {labels[i]} doubt?"],
                initial_position=f"{labels[i]} position on {question or 'the document'}",
            )
            for i in range(n)
        ]

    async def generate_questions(
        self, document_context: DocumentContext, max_questions: int
    ) -> list[str]:
        self.calls.append(("generate_questions", (max_questions,)))
        return [
            "How robust is the sampling method?",
            "how robust is the sampling method?",
            "  ",
            "What limits the generalizability of the results?",
            "Which alternative explanations remain open?",
        ]

    async def generate_argument(
        self, posture: Posture, topics: list[str], document_context: DocumentContext
    ) -> Argument:
        self.calls.append(("generate_argument", (posture.debater_id,)))
        remaining = self.argument_failures.get(posture.debater_id, 0)
        if remaining:
            self.argument_failures[posture.debater_id] = remaining - 1
            raise RuntimeError(f"backend refused argument for {posture.debater_id}")
        return Argument(
            debater_id=posture.debater_id,
            per_topic=[
                TopicArgument(
                    topic=topic,
                    claim=f"{posture.perspective_template} claim on {topic}",
                    reasoning=f"Because of section {i + 1}",
                    citations=[f"Section {i + 1}"],
                )
                for i, topic in enumerate(topics)
            ],
            overall_position=posture.initial_position,
        )

    async def generate_question(
        self,
        asker: Posture,
        askee: Posture,
        topics: list[str],
        prior_exchanges: list[Exchange],
    ) -> str:
        self.calls.append(("generate_question", (asker.debater_id, askee.debater_id)))
        if (asker.debater_id, askee.debater_id) in self.question_failures:
            raise RuntimeError("question backend unavailable")
        return f"{asker.debater_id} asks {askee.debater_id} about {topics[0]}?"

    async def generate_answer(
        self,
        askee: Posture,
        question: str,
        document_context: DocumentContext,
        prior_exchanges: list[Exchange],
    ) -> str:
        self.calls.append(("generate_answer", (askee.debater_id,)))
        active = self.active_answers.get(askee.debater_id, 0) + 1
        self.active_answers[askee.debater_id] = active
        self.max_parallel_answers[askee.debater_id] = max(
            self.max_parallel_answers.get(askee.debater_id, 0), active
        )
        try:
            if self.answer_delay:
                await asyncio.sleep(self.answer_delay)
            if askee.debater_id in self.answer_failures:
                raise RuntimeError("answer backend unavailable")
            return f"{askee.debater_id} answers: {question}"
        finally:
            self.active_answers[askee.debater_id] -= 1

    async def judge(
        self,
        transcript: Transcript,
        postures: list[Posture],
        topics: list[str],
        criteria: list[Criterion],
    ) -> Verdict:
        self.calls.append(("judge", tuple(p.debater_id for p in postures)))
        if self.judge_hook is not None:
            verdict = await self.judge_hook(transcript, postures)
            if verdict is not None:
                return verdict
        return Verdict(
            judge_id="fake-judge",
            confidence=0.8,
            scores={
                p.debater_id: {c.name: 90.0 - 10.0 * p.index for c in criteria}
                for p in postures
            },
            criteria=list(criteria),
            verdict=f"{postures[0].perspective_template} argued best.",
            reasoning="First point of reasoning.\n\nSecond point of reasoning.",
            insights=[f"Insight from {postures[0].perspective_template}"],
            controversial_points=["Sample size"],
        )

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)


@pytest.fixture
def app_config() -> AppConfig:
    """Configuration with short timeouts and no retry backoff."""
    return AppConfig(
        debate=DebateConfig(num_debaters=3, cross_examination_rounds=2),
        models={
            "debater": ModelConfig(name="test-debater", provider="openai"),
            "judge": ModelConfig(name="test-judge", provider="openai"),
        },
        judging=JudgingConfig(),
        capabilities=CapabilityConfig(
            timeout_seconds=2.0,
            judge_timeout_seconds=2.0,
            max_retries=1,
            retry_backoff_seconds=0.0,
        ),
        system=SystemConfig(),
    )


@pytest.fixture
def document() -> DocumentContext:
    """A document with an abstract and some full text."""
    return DocumentContext(
        id="doc-1",
        title="Sampling Bias in Field Studies",
        abstract="We examine how sampling choices shape field study conclusions.",
        full_text="Section 1. Methods.\nSection 2. Results.\nSection 3. Discussion.",
    )


@pytest.fixture
def empty_document() -> DocumentContext:
    """A document with neither abstract nor full text."""
    return DocumentContext(id="doc-empty", title="Untitled", abstract="  ", full_text="")


@pytest.fixture
def fake_capabilities() -> FakeCapabilities:
    """Capability backend where every call succeeds."""
    return FakeCapabilities()


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
