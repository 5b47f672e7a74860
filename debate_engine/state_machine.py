"""Session lifecycle: status transitions, atomic publication and persistence."""

from __future__ import annotations

import asyncio
import copy
import logging
from datetime import datetime
from typing import Protocol

from .capabilities import CancellationToken
from .events import ProgressEmitter
from .exceptions import InvalidTransition
from .models import Session
from .types import ProgressEventType, SessionStatus

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.INITIALIZING: frozenset(
        {SessionStatus.GENERATING_POSTURES, SessionStatus.ERROR}
    ),
    SessionStatus.GENERATING_POSTURES: frozenset(
        {SessionStatus.DEBATING, SessionStatus.ERROR}
    ),
    SessionStatus.DEBATING: frozenset({SessionStatus.JUDGING, SessionStatus.ERROR}),
    SessionStatus.JUDGING: frozenset(
        {SessionStatus.GENERATING_REPORT, SessionStatus.ERROR}
    ),
    SessionStatus.GENERATING_REPORT: frozenset(
        {SessionStatus.COMPLETED, SessionStatus.ERROR}
    ),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.ERROR: frozenset(),
}

CANCELLED_DETAIL = "Cancelled by user"


class SessionStore(Protocol):
    """Persistence boundary written at every status transition."""

    def save_session(self, session: Session) -> None: ...


class SessionStateMachine:
    """Owns a session's status and what readers are allowed to see.

    The engine mutates ``session`` (the working copy) freely. Readers only see
    ``snapshot()``, which is replaced at transition boundaries after the
    persistence write has committed, so a completed snapshot always carries
    both transcript and verdict.
    """

    def __init__(
        self,
        session: Session,
        store: SessionStore | None = None,
        emitter: ProgressEmitter | None = None,
        cancel_token: CancellationToken | None = None,
    ):
        self.session = session
        self.store = store
        self.emitter = emitter or ProgressEmitter(session.id, session.question_index)
        self.cancel_token = cancel_token or CancellationToken()
        self._lock = asyncio.Lock()
        self._published = copy.deepcopy(session)

    @property
    def status(self) -> SessionStatus:
        return self.session.status

    def snapshot(self) -> Session:
        """Last published state; treat as read-only."""
        return self._published

    def set_current_round(self, round_number: int) -> None:
        self.session.current_round = round_number
        if self._published.status is SessionStatus.DEBATING:
            published = copy.copy(self._published)
            published.current_round = round_number
            self._published = published

    async def transition(self, target: SessionStatus, message: str = "") -> None:
        """Move to ``target``; raises InvalidTransition for anything else."""
        async with self._lock:
            current = self.session.status
            if target not in ALLOWED_TRANSITIONS[current]:
                raise InvalidTransition(
                    f"Session {self.session.id}: cannot go from {current.value} to {target.value}"
                )
            if target is SessionStatus.COMPLETED:
                self._seal_transcript()
            self._commit(target)

        logger.info(f"Session {self.session.id}: {current.value} -> {target.value}")
        await self.emitter.emit(
            ProgressEventType.ACTIVITY,
            {
                "status": target.value,
                "previous_status": current.value,
                "message": message or f"Status changed to {target.value}",
            },
        )

    def _seal_transcript(self) -> None:
        transcript = self.session.transcript
        if transcript is None or self.session.verdict is None:
            raise InvalidTransition(
                f"Session {self.session.id}: cannot complete without transcript and verdict"
            )
        transcript.metadata.end_time = datetime.now()
        transcript.metadata.total_exchanges = transcript.count_exchanges()

    def _commit(self, target: SessionStatus) -> None:
        previous = self.session.status
        self.session.status = target
        self.session.updated_at = datetime.now()
        candidate = copy.deepcopy(self.session)
        try:
            if self.store is not None:
                self.store.save_session(candidate)
        except Exception:
            self.session.status = previous
            raise
        self._published = candidate

    async def fail(self, detail: str) -> bool:
        """Move to ``error`` with a readable detail; no-op once terminal."""
        async with self._lock:
            current = self.session.status
            if current.is_terminal:
                logger.debug(
                    f"Session {self.session.id} already {current.value}; ignoring failure: {detail}"
                )
                return False

            self.session.error_detail = detail
            transcript = self.session.transcript
            if transcript is not None:
                transcript.metadata.partial_debate = True
                transcript.metadata.failure_round = self.session.current_round or None
                transcript.metadata.error_message = detail
                transcript.metadata.total_exchanges = transcript.count_exchanges()

            try:
                self._commit(SessionStatus.ERROR)
            except Exception as e:
                logger.error(f"Failed to persist error state for {self.session.id}: {e}")
                self.session.status = SessionStatus.ERROR
                self._published = copy.deepcopy(self.session)

        logger.error(f"Session {self.session.id} failed during {current.value}: {detail}")
        await self.emitter.emit(
            ProgressEventType.ERROR,
            {"status": SessionStatus.ERROR.value, "stage": current.value, "message": detail},
        )
        return True

    async def cancel(self, reason: str = CANCELLED_DETAIL) -> bool:
        """Stop new dispatch immediately and mark the session as errored."""
        self.cancel_token.cancel(reason)
        return await self.fail(reason)
