"""Commitment parameter extraction from voice transcripts.

Turns "criar compromisso luz 200 dia 10" into a fully populated
CommitmentDraft. Nothing here raises on odd input: every field has a
deterministic fallback (amount 0, due today, description from the raw words,
no category).
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from datetime import date, timedelta

from dateutil.relativedelta import relativedelta

from fintrack.voice.models import CommitmentDraft
from fintrack.voice.parser.normalizer import (
    clean_token,
    find_amounts,
    fold_all,
    normalize,
    tokenize,
)
from fintrack.voice.snapshot import Category

AMOUNT_CEILING = 1_000_000
DEFAULT_DESCRIPTION = "Compromisso"
CATEGORY_SCORE_THRESHOLD = 50

# Leading phrases removed before building the description (first match only)
PREFIX_STRIPS = fold_all([
    "criar compromisso", "novo compromisso", "adicionar compromisso",
    "criar boleto", "novo boleto", "adicionar boleto",
    "criar conta a pagar", "nova conta a pagar",
    "lembrar pagar", "agendar pagamento", "agendar compromisso",
    "compromisso de", "vencimento de", "tenho que pagar", "devo pagar",
    "tenho um boleto de", "tenho uma conta de",
    "registrar compromisso", "marcar compromisso",
])

MONTHS = (
    "janeiro", "fevereiro", "marco", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
)

NOISE_TOKENS = frozenset(fold_all([
    "reais", "real", "conto", "contos", "pila", "pilas", "bala",
    "dia", "hoje", "ontem", "amanha", "amanhã", "vence", "vencendo",
    "de", "do", "da", "dos", "das", "o", "a", "os", "as",
    "um", "uma", "uns", "umas", "no", "na", "nos", "nas",
    "pro", "pra", "por", "para", "ao", "à",
    "ok", "okay", "pronto", "finalizar", "confirmar",
    "esse", "este", "essa", "esta", "mês", "mes", "semana",
    *MONTHS,
]))

# Table order matters: the first phrase found wins, not the largest value
WRITTEN_NUMBERS: tuple[tuple[str, int], ...] = (
    ("dois mil", 2000), ("um mil", 1000), ("quinhentos", 500), ("quatrocentos", 400),
    ("trezentos", 300), ("duzentos", 200), ("cento e cinquenta", 150), ("cem", 100),
    ("noventa", 90), ("oitenta", 80), ("setenta", 70), ("sessenta", 60),
    ("cinquenta", 50), ("quarenta", 40), ("trinta", 30), ("vinte e cinco", 25),
    ("vinte", 20), ("quinze", 15), ("quatorze", 14), ("treze", 13), ("doze", 12),
    ("onze", 11), ("dez", 10), ("nove", 9), ("oito", 8), ("sete", 7),
    ("seis", 6), ("cinco", 5), ("quatro", 4), ("tres", 3),
)

# keywords spotted in the utterance -> category names they point at
CATEGORY_HINTS: tuple[tuple[tuple[str, ...], tuple[str, ...]], ...] = tuple(
    (fold_all(keywords), fold_all(themes))
    for keywords, themes in (
        (["aluguel"], ["moradia", "habitação", "casa"]),
        (["luz", "energia"], ["moradia", "energia", "utilidades", "habitação"]),
        (["água"], ["moradia", "utilidades", "habitação", "agua"]),
        (["internet", "wifi"], ["moradia", "internet", "telecom", "habitação"]),
        (["gás"], ["moradia", "utilidades", "habitação"]),
        (["condomínio"], ["moradia", "condomínio", "habitação"]),
        (["cartão", "fatura"], ["dívida", "crédito", "cartão"]),
        (["escola", "faculdade", "mensalidade escolar"], ["educação", "escola"]),
        (["academia", "gym"], ["saúde", "academia"]),
        (["plano saude", "plano de saúde"], ["saúde"]),
        (["netflix", "spotify", "streaming"], ["lazer", "assinatura", "entretenimento"]),
        (["telefone", "celular"], ["telecom", "comunicação", "moradia"]),
        (["seguro"], ["seguro", "financeiro", "proteção"]),
        (["empréstimo", "financiamento"], ["dívida", "financiamento"]),
    )
)

_DAY_OF_MONTH = re.compile(r"\bdia\s+(\d{1,2})\b")
_NUMERIC_TOKEN = re.compile(r"^\d+([.,]\d{1,2})?$")
_DIGITS_ONLY = re.compile(r"^\d+$")


def extract_commitment(
    text: str,
    categories: Sequence[Category] | None = None,
    today: date | None = None,
) -> CommitmentDraft:
    """Build a CommitmentDraft from free speech.

    Args:
        text: Raw transcript
        categories: Candidate categories; only expense categories are eligible
        today: Reference date for relative due dates (defaults to today)
    """
    today = today or date.today()
    norm = normalize(text)

    return CommitmentDraft(
        description=extract_description(text),
        amount=extract_amount(norm),
        due_date=extract_due_date(norm, today),
        category_id=match_category(norm, categories or ()),
    )


def extract_amount(norm: str) -> float:
    """Largest plausible number, else the first written number, else 0."""
    best = 0.0
    for value in find_amounts(norm):
        if best < value < AMOUNT_CEILING:
            best = value
    if best:
        return best

    for word, value in WRITTEN_NUMBERS:
        if re.search(rf"\b{word}\b", norm):
            return float(value)
    return 0.0


def next_day_of_month(day: int, today: date) -> date:
    """Next date with the given day-of-month that is not before today.

    Days past the end of a month clamp to its last day.
    """
    candidate = today + relativedelta(day=day)
    if candidate < today:
        candidate = today + relativedelta(months=1, day=day)
    return candidate


def _month_mentioned(norm: str) -> int | None:
    for index, name in enumerate(MONTHS):
        if re.search(rf"\b{name}\b", norm):
            return index + 1
    return None


def extract_due_date(norm: str, today: date) -> date:
    """Resolve the due date.

    Priority: amanhã, próxima semana, fim do mês, then a month name (with an
    optional "dia N"), then a bare "dia N", otherwise today.
    """
    if "amanha" in norm:
        return today + timedelta(days=1)
    if "proxima semana" in norm:
        return today + timedelta(days=7)
    if "fim do mes" in norm:
        return today + relativedelta(day=31)

    day_match = _DAY_OF_MONTH.search(norm)
    day = int(day_match.group(1)) if day_match else None
    if day is not None and not 1 <= day <= 31:
        day = None

    month = _month_mentioned(norm)
    if month is not None:
        year = today.year + 1 if month < today.month else today.year
        return date(year, month, 1) + relativedelta(day=day or today.day)

    if day is not None:
        return next_day_of_month(day, today)
    return today


def _strip_prefix(tokens: list[str]) -> list[str]:
    folded = [clean_token(token) for token in tokens]
    for prefix in PREFIX_STRIPS:
        words = prefix.split()
        if folded[:len(words)] == words:
            return tokens[len(words):]
    return tokens


def extract_description(text: str) -> str:
    """Words left after removing trigger prefix, numbers and noise words."""
    tokens = _strip_prefix(tokenize(text.strip()))

    kept: list[str] = []
    skip_next = False
    for token in tokens:
        if skip_next:
            skip_next = False
            continue
        cleaned = clean_token(token)
        if cleaned in NOISE_TOKENS:
            # "dia 10": the number belongs to the date
            skip_next = cleaned == "dia"
            continue
        if cleaned.startswith(("r$", "$")):
            continue
        if _NUMERIC_TOKEN.match(cleaned) or len(token) <= 1:
            continue
        kept.append(token)

    description = " ".join(kept).strip()
    if len(description) < 2:
        words = [word for word in tokenize(text) if not _DIGITS_ONLY.match(word)]
        description = " ".join(words[:4])

    if not description:
        return DEFAULT_DESCRIPTION
    return description[0].upper() + description[1:].lower()


def _theme_score(name: str, themes: Sequence[str]) -> int:
    score = 0
    for theme in themes:
        if name == theme:
            return 100
        if theme in name or name in theme:
            score = 80
    return score


def match_category(norm: str, categories: Sequence[Category]) -> str | None:
    """Best-effort expense category for the utterance.

    Three stages, each tried only while nothing scored 50 or more:
    keyword themes (100 exact / 80 overlap, +5), category name in the
    text (80), then any name word of 4+ letters in the text (60).
    """
    eligible = [category for category in categories if category.accepts_expenses]
    if not eligible:
        return None

    best_score = 0
    best: Category | None = None

    for keywords, themes in CATEGORY_HINTS:
        if not any(keyword in norm for keyword in keywords):
            continue
        for category in eligible:
            score = _theme_score(normalize(category.name), themes)
            if score:
                score += 5
            if score > best_score:
                best_score, best = score, category

    if best_score < CATEGORY_SCORE_THRESHOLD:
        for category in eligible:
            name = normalize(category.name)
            if name and name in norm and best_score < 80:
                best_score, best = 80, category
                break

    if best_score < CATEGORY_SCORE_THRESHOLD:
        for category in eligible:
            words = [word for word in normalize(category.name).split() if len(word) >= 4]
            if any(word in norm for word in words) and best_score < 60:
                best_score, best = 60, category
                break

    return best.id if best else None
