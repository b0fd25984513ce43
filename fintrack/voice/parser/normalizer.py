"""Text normalization shared by every voice parser.

Speech engines are inconsistent about accents and casing ("relatórios",
"Relatorios"), so all matching happens on folded text.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Iterable

_PUNCTUATION = re.compile(r"[.,!?;:]")
_WHITESPACE = re.compile(r"\s+")


def strip_accents(text: str) -> str:
    """Remove combining diacritics: "lançamento" → "lancamento"."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def fold(text: str) -> str:
    """Lowercase and strip accents."""
    return strip_accents(text.lower())


def normalize(text: str) -> str:
    """Fold and collapse whitespace; the canonical form used for matching."""
    return _WHITESPACE.sub(" ", fold(text)).strip()


def clean_token(token: str) -> str:
    """Fold a single token and drop trailing/embedded punctuation."""
    return fold(_PUNCTUATION.sub("", token))


def tokenize(text: str) -> list[str]:
    """Split on whitespace, keeping the original spelling of each token."""
    return text.split()


def word_count(text: str) -> int:
    return len(tokenize(text))


def contains_any(text: str, phrases: Iterable[str]) -> bool:
    """Substring containment of any phrase in already-normalized text."""
    return any(phrase in text for phrase in phrases)


def first_match(text: str, phrases: Iterable[str]) -> str | None:
    for phrase in phrases:
        if phrase in text:
            return phrase
    return None


def fold_all(phrases: Iterable[str]) -> tuple[str, ...]:
    """Normalize a phrase table once, dropping duplicates created by folding."""
    seen: dict[str, None] = {}
    for phrase in phrases:
        seen.setdefault(normalize(phrase), None)
    return tuple(seen)


# "1.500,00" (grouped) or "200" / "49,90" / "49.90", optionally followed by a currency word
_AMOUNT = re.compile(
    r"\b(\d{1,3}(?:\.\d{3})+(?:,\d{1,2})?|\d+(?:[.,]\d{1,2})?)\s*(?:reais?|contos?|pilas?|bala)?"
)


def parse_number(raw: str) -> float:
    """Parse "1.500,50", "49,90" or "49.90"."""
    if raw.count(".") and (raw.count(".") > 1 or "," in raw or len(raw.split(".")[-1]) == 3):
        raw = raw.replace(".", "")
    return float(raw.replace(",", "."))


def find_amounts(text: str) -> list[float]:
    """Every numeric value mentioned in normalized text, in order."""
    return [parse_number(match.group(1)) for match in _AMOUNT.finditer(text)]
