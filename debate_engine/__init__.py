"""Debate orchestration and flow management."""

from .engine import DebateEngine
from .enhanced import ConsolidatedResults, EnhancedDebateOrchestrator, EnhancedRun
from .judge_coordinator import JudgeCoordinator
from .models import DocumentContext, Posture, Session, Transcript
from .postures import PostureGenerator
from .questions import QuestionGenerator
from .round_coordinator import RoundCoordinator
from .state_machine import SessionStateMachine
from .types import ProgressEventType, SessionStatus

__all__ = [
    "DebateEngine",
    "EnhancedDebateOrchestrator",
    "EnhancedRun",
    "ConsolidatedResults",
    "JudgeCoordinator",
    "DocumentContext",
    "Posture",
    "Session",
    "Transcript",
    "PostureGenerator",
    "QuestionGenerator",
    "RoundCoordinator",
    "SessionStateMachine",
    "ProgressEventType",
    "SessionStatus",
]
