"""Read-only answers to canned financial questions."""

from fintrack.voice.queries.formatting import format_brl
from fintrack.voice.queries.resolver import resolve_query

__all__ = [
    "format_brl",
    "resolve_query",
]
