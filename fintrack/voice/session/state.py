"""Session status and the per-session context object."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from fintrack.voice.models import Intent, Prefill
from fintrack.voice.recognition.base import RecognitionEngine


class SessionStatus(str, Enum):
    """Lifecycle of one voice session.

    IDLE -> LISTENING -> (PROCESSING | AI_THINKING) -> QUERY_RESULT -> IDLE,
    with ERROR reachable from LISTENING and IDLE from anywhere on close.
    """

    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"
    AI_THINKING = "ai_thinking"
    QUERY_RESULT = "query_result"
    ERROR = "error"


class ErrorReason(str, Enum):
    UNSUPPORTED = "unsupported"
    PERMISSION_DENIED = "permission_denied"
    NETWORK = "network"
    START_FAILED = "start_failed"
    COMMAND_FAILED = "command_failed"


ERROR_MESSAGES: dict[ErrorReason, str] = {
    ErrorReason.UNSUPPORTED: "Seu navegador não suporta reconhecimento de voz. Use o Google Chrome.",
    ErrorReason.PERMISSION_DENIED: "Permissão de microfone negada. Habilite nas configurações do navegador.",
    ErrorReason.NETWORK: "Erro de rede. Verifique sua conexão com a internet.",
    ErrorReason.START_FAILED: "Falha ao iniciar o microfone. Tente novamente.",
    ErrorReason.COMMAND_FAILED: "Não foi possível executar o comando. Tente novamente.",
}


@dataclass
class SessionContext:
    """Mutable state of one open session.

    A new context is created on every open/retry. Callbacks capture the
    context they were scheduled for and bail out when it is no longer the
    orchestrator's live one, so a late callback can never touch a newer
    session.
    """

    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    status: SessionStatus = SessionStatus.IDLE
    transcript: str = ""
    interim_text: str = ""
    intent: Intent | None = None
    answer: str = ""
    error_message: str = ""
    prefill: Prefill | None = None
    is_open: bool = False
    is_processing: bool = False
    is_listening: bool = False
    engine: RecognitionEngine | None = field(default=None, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "status": self.status.value,
            "transcript": self.transcript,
            "interim_text": self.interim_text,
            "intent": self.intent.to_dict() if self.intent else None,
            "answer": self.answer,
            "error_message": self.error_message,
            "prefill": self.prefill.to_dict() if self.prefill else None,
            "is_open": self.is_open,
            "is_processing": self.is_processing,
            "is_listening": self.is_listening,
        }
