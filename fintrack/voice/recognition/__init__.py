"""Speech recognition and synthesis capabilities."""

from fintrack.voice.recognition.base import (
    EngineFactory,
    RecognitionEngine,
    RecognitionErrorCode,
    RecognitionFragment,
    RecognitionHandler,
    SynthesisEngine,
    Utterance,
)
from fintrack.voice.recognition.web_speech_config import (
    WebSpeechConfig,
    process_web_speech_result,
)

__all__ = [
    "EngineFactory",
    "RecognitionEngine",
    "RecognitionErrorCode",
    "RecognitionFragment",
    "RecognitionHandler",
    "SynthesisEngine",
    "Utterance",
    "WebSpeechConfig",
    "process_web_speech_result",
]
