"""Active debate sessions, background tasks and WebSocket fan-out."""

import asyncio
import logging
from typing import Any

from fastapi import WebSocket

from config.settings import AppConfig
from debate_engine.capabilities import DebateCapabilities, DocumentProvider
from debate_engine.database import DatabaseManager
from debate_engine.documents import DocumentStore
from debate_engine.engine import DebateEngine
from debate_engine.enhanced import EnhancedDebateOrchestrator, EnhancedRun, EnhancedRunStatus
from debate_engine.events import ProgressEmitter
from debate_engine.exceptions import InsufficientContext
from debate_engine.models import DocumentContext, Session
from debate_engine.state_machine import SessionStateMachine
from debate_engine.types import ProgressEventData

logger = logging.getLogger(__name__)


class SessionManager:
    """Manages active debates, enhanced runs and WebSocket connections."""

    def __init__(
        self,
        config: AppConfig,
        capabilities: DebateCapabilities,
        store: DatabaseManager | None = None,
        documents: DocumentProvider | None = None,
    ):
        self.config = config
        self.store = store
        self.documents = documents or DocumentStore(config.system.documents_dir)
        self.engine = DebateEngine(config, capabilities, store)
        self.orchestrator = EnhancedDebateOrchestrator(self.engine)

        self.sessions: dict[str, SessionStateMachine] = {}
        self.runs: dict[str, EnhancedRun] = {}
        self.emitters: dict[str, ProgressEmitter] = {}
        self.tasks: dict[str, asyncio.Task[Any]] = {}
        self.connections: dict[str, list[WebSocket]] = {}
        # Highest event sequence each socket has received, keyed by id(websocket)
        self.delivered: dict[int, int] = {}

    @classmethod
    def from_config(cls, config: AppConfig) -> "SessionManager":
        """Wire the model-backed capabilities, SQLite store and document directory."""
        from debate_engine.llm_capabilities import LLMDebateCapabilities

        return cls(
            config,
            LLMDebateCapabilities.from_config(config),
            DatabaseManager(config.system.database_path),
            DocumentStore(config.system.documents_dir),
        )

    async def fetch_context(self, document_id: str) -> DocumentContext:
        """Load a document and reject it before any session exists if it is empty."""
        context = await self.documents.fetch_document_context(document_id)
        if not context.has_content:
            raise InsufficientContext(document_id)
        return context

    async def generate_questions(
        self, document_id: str, max_questions: int | None = None
    ) -> list[str]:
        context = await self.fetch_context(document_id)
        return await self.engine.generate_questions(context, max_questions)

    async def create_debate(
        self,
        document_id: str,
        question: str | None = None,
        num_debaters: int | None = None,
        cross_examination_rounds: int | None = None,
    ) -> SessionStateMachine:
        """Create a session and start running it in the background."""
        context = await self.fetch_context(document_id)
        machine = self.engine.create_session(
            document_id,
            question,
            num_debaters=num_debaters,
            cross_examination_rounds=cross_examination_rounds,
        )
        session_id = machine.session.id
        self.sessions[session_id] = machine
        self._attach(session_id, machine.emitter)

        self.tasks[session_id] = asyncio.create_task(self._run_debate(machine, context))
        logger.info(f"Started debate {session_id} on document {document_id}")
        return machine

    async def _run_debate(self, machine: SessionStateMachine, context: DocumentContext) -> None:
        session_id = machine.session.id
        try:
            snapshot = await self.engine.run(machine, context)
            logger.info(f"Debate {session_id} finished with status {snapshot.status.value}")
        except asyncio.CancelledError:
            logger.info(f"Debate task {session_id} was cancelled")
            raise
        except Exception as e:
            logger.error(f"Debate {session_id} failed: {e}")
            await machine.fail(str(e))
        finally:
            self.tasks.pop(session_id, None)

    async def create_enhanced_debate(self, document_id: str, questions: list[str]) -> EnhancedRun:
        """Create a multi-question run and start it in the background."""
        run = self.orchestrator.create_run(document_id, questions)
        context = await self.fetch_context(document_id)
        emitter = ProgressEmitter(run.id)
        self.runs[run.id] = run
        self._attach(run.id, emitter)

        self.tasks[run.id] = asyncio.create_task(self._run_enhanced(run, context, emitter))
        logger.info(f"Started enhanced run {run.id} with {len(run.questions)} questions")
        return run

    async def _run_enhanced(
        self, run: EnhancedRun, context: DocumentContext, emitter: ProgressEmitter
    ) -> None:
        try:
            await self.orchestrator.run(run, context, emitter)
        except asyncio.CancelledError:
            logger.info(f"Enhanced run task {run.id} was cancelled")
            raise
        except Exception as e:
            logger.error(f"Enhanced run {run.id} failed: {e}")
            run.status = EnhancedRunStatus.ERROR
            run.error_detail = str(e)
        finally:
            self.tasks.pop(run.id, None)

    def get_session(self, session_id: str) -> Session | None:
        """Published snapshot from memory, then from the store."""
        machine = self.sessions.get(session_id)
        if machine is None:
            for run in self.runs.values():
                for candidate in run.sessions.values():
                    if candidate.session.id == session_id:
                        machine = candidate
                        break
        if machine is not None:
            return machine.snapshot()
        if self.store is not None:
            return self.store.load_session(session_id)
        return None

    def get_run(self, run_id: str) -> EnhancedRun | None:
        return self.runs.get(run_id)

    async def cancel_debate(self, debate_id: str) -> bool:
        """Cancel a session or an enhanced run; False when the id is unknown."""
        if debate_id in self.runs:
            await self.orchestrator.cancel(self.runs[debate_id])
            return True
        machine = self.sessions.get(debate_id)
        if machine is None:
            return False
        await machine.cancel()
        return True

    async def shutdown(self) -> None:
        """Cancel every running task."""
        tasks = list(self.tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _attach(self, debate_id: str, emitter: ProgressEmitter) -> None:
        async def forward(event: ProgressEventData) -> None:
            await self._broadcast_to_debate(debate_id, dict(event))

        self.emitters[debate_id] = emitter
        self.connections.setdefault(debate_id, [])
        emitter.subscribe(forward)

    def history(self, debate_id: str) -> list[ProgressEventData]:
        emitter = self.emitters.get(debate_id)
        return list(emitter.history) if emitter else []

    async def replay(self, debate_id: str, websocket: WebSocket) -> None:
        """Send the events a client missed, then register it for live ones.

        The socket joins the broadcast list only once a history pass finds
        nothing new, so replayed events precede live ones and none repeats.
        """
        delivered = 0
        while True:
            pending = [e for e in self.history(debate_id) if e["sequence"] > delivered]
            if not pending:
                break
            for event in pending:
                await websocket.send_json(dict(event))
                delivered = event["sequence"]

        self.delivered[id(websocket)] = delivered
        self.add_connection(debate_id, websocket)

    def status_of(self, debate_id: str) -> str | None:
        if debate_id in self.runs:
            return self.runs[debate_id].status.value
        session = self.get_session(debate_id)
        return session.status.value if session else None

    async def _broadcast_to_debate(self, debate_id: str, message: dict[str, Any]) -> None:
        """Broadcast message to all connected clients for a debate."""
        if debate_id not in self.connections:
            return

        dead_connections = []
        for websocket in list(self.connections[debate_id]):
            # Already sent during replay
            if message.get("sequence", 0) <= self.delivered.get(id(websocket), 0):
                continue
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.debug(f"WebSocket send failed: {e}")
                dead_connections.append(websocket)

        for conn in dead_connections:
            self.remove_connection(debate_id, conn)

    def add_connection(self, debate_id: str, websocket: WebSocket) -> None:
        """Add WebSocket connection for a debate."""
        self.connections.setdefault(debate_id, []).append(websocket)

    def remove_connection(self, debate_id: str, websocket: WebSocket) -> None:
        """Remove WebSocket connection."""
        self.delivered.pop(id(websocket), None)
        if debate_id in self.connections and websocket in self.connections[debate_id]:
            self.connections[debate_id].remove(websocket)
