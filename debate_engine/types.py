"""Shared types and enums for the debate engine."""

from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, NotRequired, TypedDict


class SessionStatus(Enum):
    """Lifecycle states of a debate session."""

    INITIALIZING = "initializing"
    GENERATING_POSTURES = "generating_postures"
    DEBATING = "debating"
    JUDGING = "judging"
    GENERATING_REPORT = "generating_report"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.ERROR)


class RoundType(Enum):
    """Kinds of debate rounds."""

    EXPOSITION = "exposition"
    CROSS_EXAMINATION = "cross_examination"


class ExchangeType(Enum):
    """Kinds of transcript exchanges."""

    EXPOSITION = "exposition"
    QUESTION = "question"
    ANSWER = "answer"


class ProgressEventType(Enum):
    """Progress event categories streamed to clients."""

    ACTIVITY = "activity"
    CONTENT = "content"
    ROUND = "round"
    QUESTION = "question"
    RESPONSE = "response"
    ERROR = "error"


class ProgressEventData(TypedDict):
    """Wire shape of a progress event."""

    type: str
    session_id: str
    sequence: int
    question_index: NotRequired[int]
    payload: dict[str, Any]


class ActivityPayload(TypedDict):
    """Payload of an activity event emitted on every status change."""

    status: str
    previous_status: str
    message: str


class RoundPayload(TypedDict):
    """Payload of a round boundary event."""

    round_number: int
    round_type: str
    phase: str  # "started" or "completed"
    exchange_count: int


class ContentPayload(TypedDict):
    """One already-segmented field of a generated argument."""

    debater_id: str
    field: str
    topic: NotRequired[str]
    text: str


# Callback type alias for progress subscribers
type ProgressCallback = Callable[[ProgressEventData], Awaitable[None]]
