"""Derivation of debater postures from document context."""

import logging

from .capabilities import CapabilityInvoker, DebateCapabilities
from .exceptions import CapabilityError, InsufficientContext
from .models import DocumentContext, Posture

logger = logging.getLogger(__name__)

PERSPECTIVE_TEMPLATES = [
    "Critical Analyst",
    "Methodological Advocate",
    "Integrative Synthesizer",
]

MIN_DEBATERS = 2


def default_perspectives(n: int) -> list[str]:
    """The built-in perspective labels, extended generically past the third."""
    return [
        PERSPECTIVE_TEMPLATES[i] if i < len(PERSPECTIVE_TEMPLATES) else f"Perspective {i + 1}"
        for i in range(n)
    ]


def debater_id_for(index: int) -> str:
    return f"debater-{index + 1}"


def merge_topics(topic_lists: list[list[str]]) -> list[str]:
    """Union of topic lists, case-insensitively de-duplicated in first-seen order."""
    seen: set[str] = set()
    merged: list[str] = []
    for topics in topic_lists:
        for topic in topics:
            cleaned = topic.strip()
            key = cleaned.lower()
            if cleaned and key not in seen:
                seen.add(key)
                merged.append(cleaned)
    return merged


class PostureGenerator:
    """Produces N distinct postures that all argue one shared topic list."""

    def __init__(self, capabilities: DebateCapabilities, invoker: CapabilityInvoker):
        self.capabilities = capabilities
        self.invoker = invoker

    async def generate(
        self,
        document_context: DocumentContext,
        question: str | None = None,
        n: int = 3,
        perspectives: list[str] | None = None,
    ) -> list[Posture]:
        """Generate ``n`` postures, optionally pinned to fixed perspective labels.

        Raises InsufficientContext before any capability call when the
        document has neither abstract nor full text.
        """
        if n < MIN_DEBATERS:
            raise ValueError(f"At least {MIN_DEBATERS} debaters are required, got {n}")
        if perspectives is not None and len(perspectives) != n:
            raise ValueError(
                f"Expected {n} fixed perspectives, got {len(perspectives)}"
            )
        if not document_context.has_content:
            raise InsufficientContext(document_context.id)

        async def attempt() -> list[Posture]:
            drafts = await self.capabilities.generate_postures(
                document_context, question, n, perspectives
            )
            return self._normalize(drafts, n, perspectives)

        postures = await self.invoker.call("generate_postures", attempt)
        logger.info(
            f"Generated {len(postures)} postures over {len(postures[0].topics)} shared topics"
        )
        return postures

    def _normalize(
        self, drafts: list[Posture], n: int, perspectives: list[str] | None
    ) -> list[Posture]:
        if len(drafts) != n:
            raise CapabilityError(
                "generate_postures", f"expected {n} postures, got {len(drafts)}"
            )

        topic_lists = [draft.topics for draft in drafts]
        topics = merge_topics(topic_lists)
        if not topics:
            raise CapabilityError("generate_postures", "no shared topics returned")
        if any(merge_topics([t]) != topics for t in topic_lists):
            logger.warning("Posture topic lists diverged; merged into one shared list")

        labels = []
        fallback = default_perspectives(n)
        for i, draft in enumerate(drafts):
            if perspectives is not None:
                labels.append(perspectives[i])
            else:
                labels.append(draft.perspective_template.strip() or fallback[i])
        if len({label.lower() for label in labels}) != n:
            raise CapabilityError(
                "generate_postures", f"perspectives are not distinct: {labels}"
            )

        return [
            Posture(
                debater_id=debater_id_for(i),
                index=i,
                perspective_template=labels[i],
                topics=list(topics),
                guiding_questions=[q.strip() for q in draft.guiding_questions if q.strip()],
                initial_position=draft.initial_position.strip(),
            )
            for i, draft in enumerate(drafts)
        ]
