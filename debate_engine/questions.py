"""Candidate debate question generation."""

import logging

from .capabilities import CapabilityInvoker, DebateCapabilities
from .exceptions import CapabilityError, InsufficientContext
from .models import DocumentContext

logger = logging.getLogger(__name__)


class QuestionGenerator:
    """Derives candidate research questions from a document."""

    def __init__(self, capabilities: DebateCapabilities, invoker: CapabilityInvoker):
        self.capabilities = capabilities
        self.invoker = invoker

    async def generate(
        self, document_context: DocumentContext, max_questions: int = 12
    ) -> list[str]:
        if not document_context.has_content:
            raise InsufficientContext(document_context.id)

        async def attempt() -> list[str]:
            raw = await self.capabilities.generate_questions(document_context, max_questions)
            questions = self._clean(raw, max_questions)
            if not questions:
                raise CapabilityError("generate_questions", "no questions returned")
            return questions

        questions = await self.invoker.call("generate_questions", attempt)
        logger.info(f"Generated {len(questions)} questions for document {document_context.id}")
        return questions

    @staticmethod
    def _clean(raw: list[str], limit: int) -> list[str]:
        seen: set[str] = set()
        questions: list[str] = []
        for question in raw:
            cleaned = question.strip()
            key = cleaned.lower()
            if cleaned and key not in seen:
                seen.add(key)
                questions.append(cleaned)
        return questions[:limit]
