"""pt-BR formatting helpers for spoken answers."""

from __future__ import annotations

import math
from datetime import date

MONTH_NAMES = (
    "janeiro", "fevereiro", "março", "abril", "maio", "junho",
    "julho", "agosto", "setembro", "outubro", "novembro", "dezembro",
)


def format_brl(value: float) -> str:
    """Format as Brazilian currency: 1234.5 -> "R$ 1.234,50"."""
    grouped = f"{abs(value):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    sign = "-" if value < 0 and grouped != "0,00" else ""
    return f"{sign}R$ {grouped}"


def month_name(day: date) -> str:
    return MONTH_NAMES[day.month - 1]


def day_and_month(day: date) -> str:
    """"5 de março"."""
    return f"{day.day} de {month_name(day)}"


def plural(count: int, singular: str, plural_form: str | None = None) -> str:
    """Word form for ``count``: plural(1, "meta") -> "meta", plural(2, "meta") -> "metas"."""
    if count == 1:
        return singular
    return plural_form or f"{singular}s"


def percent(part: float, whole: float) -> int:
    """Whole percentage of ``part`` over ``whole``; 0 when ``whole`` is not positive.

    Halves round up, so 12.5% is reported as 13%.
    """
    if whole <= 0:
        return 0
    return math.floor(part / whole * 100 + 0.5)
