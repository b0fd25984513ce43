"""Assistant fallback: remote answers with local degradation."""

from fintrack.voice.assistant.client import AssistantFallback, get_assistant
from fintrack.voice.assistant.context import build_financial_context
from fintrack.voice.assistant.local_answers import local_answer

__all__ = [
    "AssistantFallback",
    "build_financial_context",
    "get_assistant",
    "local_answer",
]
