"""Voice session state machine."""

from fintrack.voice.session.orchestrator import VoiceSession
from fintrack.voice.session.scheduler import TaskScheduler
from fintrack.voice.session.state import ERROR_MESSAGES, SessionContext, SessionStatus

__all__ = [
    "ERROR_MESSAGES",
    "SessionContext",
    "SessionStatus",
    "TaskScheduler",
    "VoiceSession",
]
