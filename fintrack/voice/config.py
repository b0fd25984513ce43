from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from fintrack.voice import CONFIG_PATH, LOCALE

logger = logging.getLogger(__name__)


# =============================================================================
# VoiceConfig (args/voice.yaml)
# =============================================================================

class RecognitionConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    language: str = Field(default=LOCALE)
    continuous: bool = Field(default=True)
    interim_results: bool = Field(default=True)
    max_alternatives: int = Field(default=1, ge=1)
    start_delay_seconds: float = Field(default=0.4, ge=0)
    restart_delay_seconds: float = Field(default=0.25, ge=0)
    error_restart_delay_seconds: float = Field(default=0.5, ge=0)
    retry_delay_seconds: float = Field(default=0.3, ge=0)


class ExecutionConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    debounce_seconds: float = Field(default=0.9, ge=0)
    auto_execute_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    badge_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
    badge_min_chars: int = Field(default=3, ge=0)
    inactivity_timeout_seconds: Optional[float] = Field(default=6.0, ge=0)
    confirm_words: list[str] = Field(default_factory=lambda: ["ok", "okay"])


class SpeechConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    language: str = Field(default=LOCALE)
    rate: float = Field(default=1.7, gt=0)
    pitch: float = Field(default=1.0, gt=0)
    greet_on_open: bool = Field(default=True)
    greeting: str = Field(default="Olá, estou ouvindo.")
    confirmation: str = Field(default="Ok")
    preferred_voices: list[str] = Field(
        default_factory=lambda: ["Maria", "Francisca", "Letícia", "Daniela", "Google português do Brasil"]
    )
    speak_delay_seconds: float = Field(default=0.05, ge=0)
    close_after_speech_seconds: float = Field(default=0.8, ge=0)
    no_synthesis_close_seconds: float = Field(default=3.0, ge=0)
    fallback_min_seconds: float = Field(default=4.0, ge=0)
    fallback_seconds_per_word: float = Field(default=0.45, ge=0)
    fallback_grace_seconds: float = Field(default=1.0, ge=0)


class AssistantConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    enabled: bool = Field(default=True)
    model: str = Field(default="claude-haiku-4-5-20251001")
    api_key_env: str = Field(default="ANTHROPIC_API_KEY")
    max_tokens: int = Field(default=200, ge=1)
    temperature: float = Field(default=0.6, ge=0.0, le=1.0)
    timeout_seconds: float = Field(default=15.0, gt=0)
    upcoming_window_days: int = Field(default=15, ge=0)


class VoiceConfig(BaseModel):
    model_config = ConfigDict(extra="allow")
    recognition: RecognitionConfig = Field(default_factory=RecognitionConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    speech: SpeechConfig = Field(default_factory=SpeechConfig)
    assistant: AssistantConfig = Field(default_factory=AssistantConfig)


def load_voice_config(path: Path | str | None = None) -> VoiceConfig:
    """Load voice configuration.

    Resolution order: explicit ``path``, ``FINTRACK_VOICE_CONFIG``, then
    ``args/voice.yaml``. A missing file yields the defaults; an invalid file
    is logged and also yields the defaults, so a typo in YAML never takes the
    microphone down.
    """
    if path is None:
        path = os.environ.get("FINTRACK_VOICE_CONFIG") or CONFIG_PATH
    path = Path(path)

    if not path.exists():
        return VoiceConfig()

    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        return VoiceConfig.model_validate(raw)
    except (yaml.YAMLError, ValidationError) as e:
        logger.warning("Invalid voice config at %s, using defaults: %s", path, e)
        return VoiceConfig()
