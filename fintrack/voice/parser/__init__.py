"""Voice command parsing: intent classification and parameter extraction."""

from fintrack.voice.parser.commitment_extractor import extract_commitment
from fintrack.voice.parser.intent_parser import classify, help_answer
from fintrack.voice.parser.transaction_parser import parse_transaction

__all__ = [
    "classify",
    "extract_commitment",
    "help_answer",
    "parse_transaction",
]
