"""Voice Assistant - spoken commands for FinTrack

Philosophy:
    Speaking is the fastest way to log a purchase or ask "how much did I
    spend this month?" while standing in a shop. The assistant never guesses
    silently: every parser has a deterministic fallback, and anything it cannot
    act on goes to a spoken answer instead of an error.

Components:
    models.py: Intent, QueryKey, drafts and prefill payloads
    snapshot.py: Read-only financial data snapshot (pydantic)
    config.py: args/voice.yaml settings
    parser/: Normalizer, intent classifier, commitment and transaction parsers
    queries/: Canned financial questions answered from a snapshot
    assistant/: Remote LLM fallback with local canned answers
    recognition/: Capability interfaces for speech recognition and synthesis
    session/: The listen/execute/respond state machine

Usage:
    from fintrack.voice.parser.intent_parser import classify
    from fintrack.voice.queries.resolver import resolve_query

    intent = classify("tenho contas vencidas?")
    answer = resolve_query(intent.query_key, snapshot)
"""

from pathlib import Path

# Path constants
PROJECT_ROOT = Path(__file__).parent.parent.parent
CONFIG_PATH = PROJECT_ROOT / "args" / "voice.yaml"

# Single supported locale
LOCALE = "pt-BR"

__all__ = [
    "CONFIG_PATH",
    "LOCALE",
    "PROJECT_ROOT",
]
