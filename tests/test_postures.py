"""Tests for posture and question generation."""

from __future__ import annotations

import asyncio

import pytest
from conftest import FakeCapabilities

from config.settings import AppConfig
from debate_engine.capabilities import CapabilityInvoker
from debate_engine.exceptions import CapabilityError, InsufficientContext
from debate_engine.models import DocumentContext, Posture
from debate_engine.postures import PostureGenerator, default_perspectives, merge_topics
from debate_engine.questions import QuestionGenerator


class DivergingTopics(FakeCapabilities):
    """Returns a different topic list per posture."""

    async def generate_postures(self, document_context, question, n, perspectives=None):
        postures = await super().generate_postures(document_context, question, n, perspectives)
        for i, posture in enumerate(postures):
            posture.topics = ["Evidence", f"Topic {i}"]
        return postures


class ShortCount(FakeCapabilities):
    """Returns one posture fewer than requested on the first call."""

    def __init__(self) -> None:
        super().__init__()
        self.short_calls = 1

    async def generate_postures(self, document_context, question, n, perspectives=None):
        postures = await super().generate_postures(document_context, question, n, perspectives)
        if self.short_calls:
            self.short_calls -= 1
            return postures[:-1]
        return postures


class DuplicateLabels(FakeCapabilities):
    async def generate_postures(self, document_context, question, n, perspectives=None):
        return [
            Posture(debater_id="", index=i, perspective_template="Skeptic", topics=["A"])
            for i in range(n)
        ]


def _generator(capabilities: FakeCapabilities, app_config: AppConfig) -> PostureGenerator:
    return PostureGenerator(capabilities, CapabilityInvoker(app_config.capabilities))


def test_postures_share_one_topic_list(
    fake_capabilities: FakeCapabilities, app_config: AppConfig, document: DocumentContext
) -> None:
    """Every posture argues the same topics with deterministic ids."""
    postures = asyncio.run(_generator(fake_capabilities, app_config).generate(document, None, 3))

    assert [p.debater_id for p in postures] == ["debater-1", "debater-2", "debater-3"]
    assert [p.index for p in postures] == [0, 1, 2]
    assert len({tuple(p.topics) for p in postures}) == 1
    assert len({p.perspective_template for p in postures}) == 3


def test_insufficient_context_before_any_call(
    fake_capabilities: FakeCapabilities, app_config: AppConfig, empty_document: DocumentContext
) -> None:
    """An empty document fails without calling the backend."""
    with pytest.raises(InsufficientContext):
        asyncio.run(_generator(fake_capabilities, app_config).generate(empty_document, None, 3))
    assert fake_capabilities.calls == []


def test_diverging_topics_are_merged(app_config: AppConfig, document: DocumentContext) -> None:
    """Diverging topic lists become one first-seen-order union."""
    postures = asyncio.run(_generator(DivergingTopics(), app_config).generate(document, None, 3))

    assert postures[0].topics == ["Evidence", "Topic 0", "Topic 1", "Topic 2"]
    assert all(p.topics == postures[0].topics for p in postures)


def test_wrong_posture_count_is_retried(app_config: AppConfig, document: DocumentContext) -> None:
    """A malformed first response is retried once."""
    capabilities = ShortCount()
    postures = asyncio.run(_generator(capabilities, app_config).generate(document, None, 3))

    assert len(postures) == 3
    assert capabilities.count("generate_postures") == 2


def test_duplicate_perspectives_fail(app_config: AppConfig, document: DocumentContext) -> None:
    """Perspectives must be distinct; no partial postures are returned."""
    with pytest.raises(CapabilityError, match="not distinct"):
        asyncio.run(_generator(DuplicateLabels(), app_config).generate(document, None, 2))


def test_fixed_perspectives_are_pinned(
    fake_capabilities: FakeCapabilities, app_config: AppConfig, document: DocumentContext
) -> None:
    """Supplied perspectives are used by index."""
    labels = ["Skeptic", "Advocate"]
    postures = asyncio.run(
        _generator(fake_capabilities, app_config).generate(document, "Why?", 2, labels)
    )
    assert [p.perspective_template for p in postures] == labels


def test_debater_count_bounds(
    fake_capabilities: FakeCapabilities, app_config: AppConfig, document: DocumentContext
) -> None:
    """Fewer than two debaters or a mismatched perspective list is rejected."""
    generator = _generator(fake_capabilities, app_config)
    with pytest.raises(ValueError):
        asyncio.run(generator.generate(document, None, 1))
    with pytest.raises(ValueError):
        asyncio.run(generator.generate(document, None, 3, ["only one"]))


def test_merge_topics_and_default_perspectives() -> None:
    """Helpers de-duplicate case-insensitively and extend labels past three."""
    assert merge_topics([["A", "b"], ["a", "C", " "]]) == ["A", "b", "C"]
    assert default_perspectives(4)[3] == "Perspective 4"


def test_questions_are_cleaned_and_capped(
    fake_capabilities: FakeCapabilities, app_config: AppConfig, document: DocumentContext
) -> None:
    """Blank and case-duplicate questions are dropped, then capped."""
    generator = QuestionGenerator(fake_capabilities, CapabilityInvoker(app_config.capabilities))

    questions = asyncio.run(generator.generate(document, max_questions=2))

    assert questions == [
        "How robust is the sampling method?",
        "What limits the generalizability of the results?",
    ]


def test_questions_need_document_content(
    fake_capabilities: FakeCapabilities, app_config: AppConfig, empty_document: DocumentContext
) -> None:
    """Question generation also requires an abstract or full text."""
    generator = QuestionGenerator(fake_capabilities, CapabilityInvoker(app_config.capabilities))
    with pytest.raises(InsufficientContext):
        asyncio.run(generator.generate(empty_document))
