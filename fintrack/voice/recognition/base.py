"""Capability interfaces for speech recognition and synthesis.

The platform engines (browser Web Speech API, a desktop recognizer, test
fakes) live behind these small ABCs. The session orchestrator only ever
talks to them through this surface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from fintrack.voice.recognition.web_speech_config import WebSpeechConfig


class RecognitionErrorCode(str, Enum):
    """Error codes reported by recognition engines (Web Speech names)."""

    NO_SPEECH = "no-speech"
    ABORTED = "aborted"
    NOT_ALLOWED = "not-allowed"
    SERVICE_NOT_ALLOWED = "service-not-allowed"
    NETWORK = "network"
    AUDIO_CAPTURE = "audio-capture"
    OTHER = "other"

    @classmethod
    def parse(cls, value: str | RecognitionErrorCode) -> RecognitionErrorCode:
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


@dataclass(frozen=True)
class RecognitionFragment:
    """One recognized segment; interim fragments may still change."""

    transcript: str
    is_final: bool = False
    confidence: float = 0.0


class RecognitionHandler(ABC):
    """Receives lifecycle and result events from a running engine."""

    @abstractmethod
    def on_start(self) -> None:
        """Engine started capturing audio."""

    @abstractmethod
    def on_result(self, fragments: Sequence[RecognitionFragment]) -> None:
        """Every fragment recognized so far in this run, in order."""

    @abstractmethod
    def on_error(self, code: RecognitionErrorCode) -> None:
        """Engine reported an error; ``on_end`` usually follows."""

    @abstractmethod
    def on_end(self) -> None:
        """Engine stopped, for whatever reason."""


class RecognitionEngine(ABC):
    """A single-use recognition run."""

    @abstractmethod
    def start(self, config: WebSpeechConfig, handler: RecognitionHandler) -> None:
        """Start listening. May raise if the microphone cannot be opened."""

    @abstractmethod
    def abort(self) -> None:
        """Stop immediately. Must be safe to call at any time, including twice."""


# Returns None when the platform has no recognition capability
EngineFactory = Callable[[], Optional[RecognitionEngine]]


@dataclass
class Utterance:
    """Text to speak plus voice settings."""

    text: str
    language: str = "pt-BR"
    rate: float = 1.0
    pitch: float = 1.0
    voice: str | None = None


class SynthesisEngine(ABC):
    """Text-to-speech capability."""

    @abstractmethod
    def speak(self, utterance: Utterance, on_end: Callable[[], None]) -> None:
        """Queue an utterance; call ``on_end`` when it finishes (if the platform can tell)."""

    @abstractmethod
    def cancel(self) -> None:
        """Stop any in-flight utterance."""

    def voices(self) -> list[str]:
        """Names of the installed voices, if the platform exposes them."""
        return []


def pick_voice(available: Sequence[str], preferred: Sequence[str]) -> str | None:
    """First installed voice whose name contains one of the preferred names."""
    for name in preferred:
        for voice in available:
            if name.lower() in voice.lower():
                return voice
    return None
