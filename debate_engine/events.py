"""Progress event emission for debate sessions."""

import itertools
import logging
from collections import deque
from collections.abc import Iterator
from typing import Any

from .types import ProgressCallback, ProgressEventData, ProgressEventType

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 500


class ProgressEmitter:
    """Fans typed progress events out to subscribers.

    Child emitters created with ``for_question`` share subscribers and history
    with their parent and stamp every event with the question index. Events
    carry a ``sequence`` number, increasing across the parent and its children.
    """

    def __init__(
        self,
        session_id: str,
        question_index: int | None = None,
        *,
        _subscribers: list[ProgressCallback] | None = None,
        _history: deque[ProgressEventData] | None = None,
        _sequence: Iterator[int] | None = None,
    ):
        self.session_id = session_id
        self.question_index = question_index
        self._subscribers = _subscribers if _subscribers is not None else []
        self.history: deque[ProgressEventData] = (
            _history if _history is not None else deque(maxlen=HISTORY_LIMIT)
        )
        self._sequence = _sequence if _sequence is not None else itertools.count(1)

    def subscribe(self, callback: ProgressCallback) -> None:
        self._subscribers.append(callback)

    def unsubscribe(self, callback: ProgressCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def for_question(self, session_id: str, question_index: int) -> "ProgressEmitter":
        return ProgressEmitter(
            session_id,
            question_index,
            _subscribers=self._subscribers,
            _history=self.history,
            _sequence=self._sequence,
        )

    async def emit(self, event_type: ProgressEventType, payload: dict[str, Any]) -> None:
        event: ProgressEventData = {
            "type": event_type.value,
            "session_id": self.session_id,
            "sequence": next(self._sequence),
            "payload": payload,
        }
        if self.question_index is not None:
            event["question_index"] = self.question_index
        self.history.append(event)

        for callback in list(self._subscribers):
            try:
                await callback(event)
            except Exception as e:
                logger.warning(f"Progress subscriber failed for {self.session_id}: {e}")
