"""Single-question debate pipeline."""

import asyncio
import logging

from config.settings import AppConfig
from judges.base import criteria_from_config

from .capabilities import CancellationToken, CapabilityInvoker, DebateCapabilities
from .events import ProgressEmitter
from .exceptions import DebateError, InsufficientContext
from .judge_coordinator import JudgeCoordinator
from .models import DocumentContext, Session, Transcript
from .postures import PostureGenerator
from .questions import QuestionGenerator
from .report import build_report
from .round_coordinator import RoundCoordinator
from .state_machine import SessionStateMachine, SessionStore
from .types import SessionStatus

logger = logging.getLogger(__name__)


class DebateEngine:
    """Runs debate sessions: postures, exposition, cross-examination, verdict, report."""

    def __init__(
        self,
        config: AppConfig,
        capabilities: DebateCapabilities,
        store: SessionStore | None = None,
    ):
        self.config = config
        self.capabilities = capabilities
        self.store = store
        self.criteria = criteria_from_config(config.judging)

    def create_session(
        self,
        document_id: str,
        question: str | None = None,
        *,
        num_debaters: int | None = None,
        cross_examination_rounds: int | None = None,
        question_index: int | None = None,
        parent_emitter: ProgressEmitter | None = None,
    ) -> SessionStateMachine:
        """Create a session in ``initializing`` and persist it."""
        session = Session(
            document_id=document_id,
            question=question,
            num_debaters=num_debaters or self.config.debate.num_debaters,
            cross_examination_rounds=(
                cross_examination_rounds
                if cross_examination_rounds is not None
                else self.config.debate.cross_examination_rounds
            ),
            question_index=question_index,
        )
        if parent_emitter is not None and question_index is not None:
            emitter = parent_emitter.for_question(session.id, question_index)
        else:
            emitter = ProgressEmitter(session.id, question_index)

        machine = SessionStateMachine(session, self.store, emitter, CancellationToken())
        if self.store is not None:
            self.store.save_session(machine.snapshot())
        logger.info(f"Created session {session.id} for document {document_id}")
        return machine

    async def run(
        self,
        machine: SessionStateMachine,
        document_context: DocumentContext,
        perspectives: list[str] | None = None,
    ) -> Session:
        """Drive a session to ``completed`` or ``error`` and return its snapshot.

        InsufficientContext propagates without leaving ``initializing``.
        """
        session = machine.session
        invoker = CapabilityInvoker(self.config.capabilities, machine.cancel_token)

        if not document_context.has_content:
            raise InsufficientContext(document_context.id)

        try:
            await machine.transition(SessionStatus.GENERATING_POSTURES, "Generating debate postures")
            postures = await PostureGenerator(self.capabilities, invoker).generate(
                document_context, session.question, session.num_debaters, perspectives
            )
            session.postures = postures
            session.topics = list(postures[0].topics)
            session.transcript = Transcript()

            await machine.transition(SessionStatus.DEBATING, "Debate started")
            coordinator = RoundCoordinator(
                self.capabilities,
                invoker,
                machine.emitter,
                max_concurrent_exchanges=self.config.debate.max_concurrent_exchanges,
                question_index=session.question_index,
                on_round_change=machine.set_current_round,
            )
            session.arguments, viable = await coordinator.run_exposition(
                session.transcript, postures, session.topics, document_context
            )
            await coordinator.run_cross_examination(
                session.transcript,
                viable,
                session.topics,
                document_context,
                session.cross_examination_rounds,
            )

            await machine.transition(SessionStatus.JUDGING, "Judging debate")
            judge = JudgeCoordinator(
                self.capabilities,
                invoker,
                self.criteria,
                timeout=self.config.capabilities.judge_timeout_seconds,
                tiebreak=self.config.judging.tiebreak_criterion,
            )
            session.verdict = await judge.evaluate(session.transcript, viable, session.topics)

            await machine.transition(SessionStatus.GENERATING_REPORT, "Generating report")
            session.report = build_report(session)

            await machine.transition(SessionStatus.COMPLETED, "Debate completed")
        except DebateError as e:
            await machine.fail(str(e))
        except asyncio.CancelledError:
            await machine.fail("Debate task was cancelled")
            raise
        except Exception as e:
            logger.exception(f"Unexpected failure in session {session.id}")
            await machine.fail(f"{type(e).__name__}: {e}")

        return machine.snapshot()

    async def generate_questions(
        self, document_context: DocumentContext, max_questions: int | None = None
    ) -> list[str]:
        invoker = CapabilityInvoker(self.config.capabilities)
        return await QuestionGenerator(self.capabilities, invoker).generate(
            document_context, max_questions or self.config.debate.max_questions
        )

    async def generate_perspectives(
        self,
        document_context: DocumentContext,
        question: str | None = None,
        n: int | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> list[str]:
        """Persona labels for a run, derived once and reused across its questions."""
        invoker = CapabilityInvoker(self.config.capabilities, cancel_token)
        postures = await PostureGenerator(self.capabilities, invoker).generate(
            document_context, question, n or self.config.debate.num_debaters
        )
        return [p.perspective_template for p in postures]
