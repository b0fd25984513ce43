"""Compact financial context shared with the remote assistant."""

from __future__ import annotations

from datetime import date, timedelta

from fintrack.voice.models import FinancialContext
from fintrack.voice.snapshot import FinancialSnapshot, TransactionType


def build_financial_context(
    snapshot: FinancialSnapshot,
    today: date | None = None,
    window_days: int = 15,
) -> FinancialContext:
    """Summarize the snapshot for the assistant prompt.

    ``available_capital`` is the all-time balance minus pending commitments
    due between today and ``window_days`` from now, floored at zero.
    """
    today = today or date.today()
    this_month = today.strftime("%Y-%m")

    income = expense = all_time = 0.0
    by_category: dict[str, float] = {}
    for tx in snapshot.transactions:
        signed = tx.amount if tx.type == TransactionType.INCOME else -tx.amount
        all_time += signed
        if not tx.day.startswith(this_month):
            continue
        if tx.type == TransactionType.INCOME:
            income += tx.amount
        else:
            expense += tx.amount
            name = snapshot.category_name(tx.category_id)
            if name:
                by_category[name] = by_category.get(name, 0.0) + tx.amount

    pending = [c for c in snapshot.commitments if c.is_pending]
    window_start = today.isoformat()
    window_end = (today + timedelta(days=window_days)).isoformat()
    upcoming = sum(c.amount for c in pending if window_start <= c.due_day <= window_end)

    top_category = max(by_category, key=by_category.get) if by_category else None

    return FinancialContext(
        monthly_income=income,
        monthly_expenses=expense,
        balance=income - expense,
        available_capital=max(0.0, all_time - upcoming),
        pending_commitments=len(pending),
        top_category=top_category,
    )


def describe_context(context: FinancialContext) -> str:
    """One-line summary prepended to the assistant prompt."""
    parts = [
        f"Receita mensal: R${context.monthly_income:.2f}",
        f"Gastos mensais: R${context.monthly_expenses:.2f}",
        f"Saldo: R${context.balance:.2f}",
        f"Capital parado (livre): R${context.available_capital:.2f}",
    ]
    if context.top_category:
        parts.append(f"Categoria com mais gastos: {context.top_category}")
    parts.append(f"Compromissos pendentes: {context.pending_commitments}")
    return f"[Dados Reais do Usuário: {' | '.join(parts)}]"
