"""Web Speech API configuration and result processing.

The actual Web Speech API runs in the browser (JavaScript).
This module defines the config sent to the frontend and converts the
result events sent back into RecognitionFragments.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fintrack.voice import LOCALE
from fintrack.voice.config import RecognitionConfig
from fintrack.voice.recognition.base import RecognitionFragment


@dataclass
class WebSpeechConfig:
    """Configuration for the browser-side Web Speech API."""

    language: str = LOCALE
    continuous: bool = True
    interim_results: bool = True
    max_alternatives: int = 1

    @classmethod
    def from_config(cls, config: RecognitionConfig) -> WebSpeechConfig:
        return cls(
            language=config.language,
            continuous=config.continuous,
            interim_results=config.interim_results,
            max_alternatives=config.max_alternatives,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "lang": self.language,
            "continuous": self.continuous,
            "interimResults": self.interim_results,
            "maxAlternatives": self.max_alternatives,
        }


def process_web_speech_result(event: dict[str, Any]) -> list[RecognitionFragment]:
    """Convert a serialized SpeechRecognitionEvent into fragments.

    Expected format from the browser (one entry per result, best
    alternative first):
    {
        "results": [
            {"isFinal": true, "alternatives": [{"transcript": "gastei 50", "confidence": 0.9}]},
            {"isFinal": false, "alternatives": [{"transcript": " reais"}]}
        ]
    }

    A flat ``{"transcript": ..., "isFinal": ...}`` entry is accepted as well.
    """
    fragments = []
    for result in event.get("results", []):
        alternatives = result.get("alternatives") or [result]
        best = alternatives[0]
        fragments.append(RecognitionFragment(
            transcript=best.get("transcript", ""),
            is_final=bool(result.get("isFinal", False)),
            confidence=best.get("confidence", 0.0),
        ))
    return fragments
