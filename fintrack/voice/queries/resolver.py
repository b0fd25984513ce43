"""Answer canned financial questions from a snapshot.

Each QueryKey has one handler that reads the snapshot through a QueryWindow
(the date windows derived from a single "now") and returns a Portuguese
sentence. Handlers never return an empty string: every key has an explicit
sentence for the empty case.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable

from dateutil.relativedelta import relativedelta

from fintrack.voice.models import QueryKey
from fintrack.voice.queries.formatting import (
    day_and_month,
    format_brl,
    month_name,
    percent,
    plural,
)
from fintrack.voice.snapshot import Commitment, FinancialSnapshot, Transaction, TransactionType

logger = logging.getLogger(__name__)

GREETING_ANSWER = (
    "Olá! Sou o Assistente IA do FinTrack. Posso criar lançamentos financeiros, "
    "compromissos e metas por voz, navegar pelas páginas do sistema, e responder "
    "perguntas sobre suas finanças como saldo do mês, gastos, contas a vencer e "
    "muito mais. É só falar!"
)
NOT_FOUND_ANSWER = "Não consegui encontrar essa informação."
UNCATEGORIZED = "Sem categoria"
MAX_LISTED = 3


@dataclass(frozen=True)
class QueryWindow:
    """Snapshot plus the date windows of one resolution.

    Stored dates are ISO strings, so windows are compared as strings:
    ``YYYY-MM-DD`` for days and ``YYYY-MM`` prefixes for months.
    """

    snapshot: FinancialSnapshot
    today: date

    @property
    def today_iso(self) -> str:
        return self.today.isoformat()

    @property
    def this_month(self) -> str:
        return self.today.strftime("%Y-%m")

    @property
    def last_month(self) -> str:
        return (self.today - relativedelta(months=1)).strftime("%Y-%m")

    @property
    def week_start(self) -> str:
        return (self.today - timedelta(days=self.today.weekday())).isoformat()

    @property
    def week_end(self) -> str:
        return (self.today + timedelta(days=6 - self.today.weekday())).isoformat()

    @property
    def month(self) -> str:
        return month_name(self.today)

    def in_week(self, day: str) -> bool:
        return self.week_start <= day <= self.week_end

    def pending(self) -> list[Commitment]:
        return [c for c in self.snapshot.commitments if c.is_pending]

    def month_transactions(self, month: str | None = None) -> list[Transaction]:
        prefix = month or self.this_month
        return [t for t in self.snapshot.transactions if t.day.startswith(prefix)]

    def week_transactions(self) -> list[Transaction]:
        return [t for t in self.snapshot.transactions if self.in_week(t.day)]

    def newest_first(self) -> list[Transaction]:
        return sorted(self.snapshot.transactions, key=lambda t: t.created_at, reverse=True)


def _total(items: Iterable[Commitment | Transaction]) -> float:
    return sum(item.amount for item in items)


def _of_type(transactions: Iterable[Transaction], kind: TransactionType) -> list[Transaction]:
    return [t for t in transactions if t.type == kind]


def _names(commitments: Iterable[Commitment]) -> str:
    return ", ".join(c.description for c in commitments)


def _spoken_date(iso_day: str) -> str:
    try:
        return day_and_month(date.fromisoformat(iso_day))
    except ValueError:
        return iso_day


# =============================================================================
# Commitments
# =============================================================================

def _commitments_today(w: QueryWindow) -> str:
    items = [c for c in w.pending() if c.due_day == w.today_iso]
    if not items:
        return "Você não tem compromissos vencendo hoje. Tudo em dia!"
    n = len(items)
    return (
        f"Você tem {n} {plural(n, 'compromisso')} vencendo hoje: {_names(items)}. "
        f"Total: {format_brl(_total(items))}."
    )


def _commitments_overdue(w: QueryWindow) -> str:
    items = [c for c in w.pending() if c.due_day < w.today_iso]
    if not items:
        return "Parabéns! Você não tem compromissos em atraso."
    n = len(items)
    return (
        f"Atenção! Você tem {n} {plural(n, 'compromisso')} em atraso: {_names(items)}. "
        f"Total em atraso: {format_brl(_total(items))}."
    )


def _commitments_week(w: QueryWindow) -> str:
    items = [c for c in w.pending() if w.in_week(c.due_day)]
    if not items:
        return "Você não tem compromissos vencendo essa semana."
    n = len(items)
    listed = ", ".join(f"{c.description} no dia {c.due_day[8:10]}" for c in items)
    return (
        f"Essa semana você tem {n} {plural(n, 'compromisso')}: {listed}. "
        f"Total: {format_brl(_total(items))}."
    )


def _commitments_month(w: QueryWindow) -> str:
    items = [c for c in w.pending() if c.due_day.startswith(w.this_month)]
    if not items:
        return f"Você não tem compromissos pendentes em {w.month}."
    n = len(items)
    return (
        f"Em {w.month} você tem {n} {plural(n, 'compromisso')} {plural(n, 'pendente')}. "
        f"Total a pagar: {format_brl(_total(items))}."
    )


def _commitments_pending_total(w: QueryWindow) -> str:
    items = w.pending()
    if not items:
        return "Você não tem compromissos pendentes. Conta limpa!"
    n = len(items)
    return (
        f"Você tem {n} {plural(n, 'compromisso')} {plural(n, 'pendente')} no total, "
        f"somando {format_brl(_total(items))}."
    )


# =============================================================================
# Balance & cash flow
# =============================================================================

def _balance_month(w: QueryWindow) -> str:
    month_txs = w.month_transactions()
    if not month_txs:
        return f"Não há lançamentos em {w.month} ainda."
    income = _total(_of_type(month_txs, TransactionType.INCOME))
    expense = _total(_of_type(month_txs, TransactionType.EXPENSE))
    balance = income - expense
    word = "positivo" if balance >= 0 else "negativo"
    return (
        f"Seu saldo em {w.month} é {word}: {format_brl(abs(balance))}. "
        f"Receitas: {format_brl(income)} | Despesas: {format_brl(expense)}."
    )


def _balance_week(w: QueryWindow) -> str:
    week_txs = w.week_transactions()
    if not week_txs:
        return "Nenhum lançamento registrado essa semana."
    income = _total(_of_type(week_txs, TransactionType.INCOME))
    expense = _total(_of_type(week_txs, TransactionType.EXPENSE))
    balance = income - expense
    word = "positivo" if balance >= 0 else "negativo"
    return (
        f"Essa semana: receitas {format_brl(income)}, despesas {format_brl(expense)}, "
        f"saldo {word} de {format_brl(abs(balance))}."
    )


def _expenses_month(w: QueryWindow) -> str:
    expenses = _of_type(w.month_transactions(), TransactionType.EXPENSE)
    if not expenses:
        return f"Nenhuma despesa lançada em {w.month} ainda."
    total = _total(expenses)
    previous = _total(_of_type(w.month_transactions(w.last_month), TransactionType.EXPENSE))

    trend = ""
    if previous > 0:
        diff = total - previous
        direction = "a mais" if diff > 0 else "a menos"
        trend = f", {format_brl(abs(diff))} {direction} que no mês passado"

    n = len(expenses)
    return f"Você gastou {format_brl(total)} em {w.month}{trend}. Total de {n} {plural(n, 'lançamento')}."


def _expenses_week(w: QueryWindow) -> str:
    expenses = _of_type(w.week_transactions(), TransactionType.EXPENSE)
    if not expenses:
        return "Nenhuma despesa lançada essa semana."
    n = len(expenses)
    return f"Essa semana você gastou {format_brl(_total(expenses))} em {n} {plural(n, 'lançamento')}."


def _income_month(w: QueryWindow) -> str:
    incomes = _of_type(w.month_transactions(), TransactionType.INCOME)
    if not incomes:
        return f"Nenhuma receita lançada em {w.month} ainda."
    n = len(incomes)
    return f"Você recebeu {format_brl(_total(incomes))} em {w.month}, em {n} {plural(n, 'lançamento')}."


# =============================================================================
# Transactions
# =============================================================================

def _last_transaction(w: QueryWindow) -> str:
    if not w.snapshot.transactions:
        return "Você ainda não tem lançamentos cadastrados."
    last = w.newest_first()[0]
    kind = "receita" if last.type == TransactionType.INCOME else "despesa"
    return (
        f"Seu último lançamento foi uma {kind} de {format_brl(last.amount)}: "
        f"\"{last.description}\", em {_spoken_date(last.day)}."
    )


def _last_transactions(w: QueryWindow) -> str:
    if not w.snapshot.transactions:
        return "Você ainda não tem lançamentos cadastrados."
    listed = "; ".join(
        f"{'+' if t.type == TransactionType.INCOME else '-'}{format_brl(t.amount)} em {t.description}"
        for t in w.newest_first()[:MAX_LISTED]
    )
    return f"Seus últimos lançamentos: {listed}."


def _top_expenses(w: QueryWindow) -> str:
    expenses = _of_type(w.month_transactions(), TransactionType.EXPENSE)
    if not expenses:
        return f"Nenhuma despesa em {w.month} ainda."
    biggest = sorted(expenses, key=lambda t: t.amount, reverse=True)[:MAX_LISTED]
    listed = ", ".join(f"{t.description}: {format_brl(t.amount)}" for t in biggest)
    return f"Seus maiores gastos em {w.month}: {listed}."


def _top_category(w: QueryWindow) -> str:
    expenses = _of_type(w.month_transactions(), TransactionType.EXPENSE)
    if not expenses:
        return f"Nenhuma despesa em {w.month} ainda."
    by_category: dict[str, float] = {}
    for t in expenses:
        name = w.snapshot.category_name(t.category_id) or UNCATEGORIZED
        by_category[name] = by_category.get(name, 0.0) + t.amount
    ranked = sorted(by_category.items(), key=lambda item: item[1], reverse=True)[:MAX_LISTED]
    listed = ", ".join(f"{name}: {format_brl(total)}" for name, total in ranked)
    return f"Categorias com mais gastos em {w.month}: {listed}."


def _transaction_count(w: QueryWindow) -> str:
    month_txs = w.month_transactions()
    if not month_txs:
        return f"Nenhum lançamento em {w.month} ainda."
    n = len(month_txs)
    incomes = len(_of_type(month_txs, TransactionType.INCOME))
    expenses = len(_of_type(month_txs, TransactionType.EXPENSE))
    return (
        f"Em {w.month} você tem {n} {plural(n, 'lançamento')}: "
        f"{incomes} {plural(incomes, 'receita')} e {expenses} {plural(expenses, 'despesa')}."
    )


# =============================================================================
# Goals & budgets
# =============================================================================

def _savings_goals(w: QueryWindow) -> str:
    goals = w.snapshot.savings_goals
    if not goals:
        return "Você não tem metas de economia cadastradas."
    target = sum(g.target_amount for g in goals)
    current = sum(g.current_amount for g in goals)
    highlights = ", ".join(
        f"{g.description}: {percent(g.current_amount, g.target_amount)}%"
        for g in goals[:MAX_LISTED]
    )
    n = len(goals)
    return (
        f"Você tem {n} {plural(n, 'meta')} de economia. Progresso geral: "
        f"{format_brl(current)} de {format_brl(target)}, {percent(current, target)}% concluído. "
        f"Destaques: {highlights}."
    )


def budget_status_label(pct: int, alert_percent: float) -> str:
    if pct >= 100:
        return "ESTOURADO"
    if pct >= alert_percent:
        return "alerta"
    return "OK"


def _budget_status(w: QueryWindow) -> str:
    budgets = w.snapshot.budgets
    if not budgets:
        return "Você não tem orçamentos configurados. Acesse Cadastros para criar limites por categoria."
    month_expenses = _of_type(w.month_transactions(), TransactionType.EXPENSE)
    lines = []
    for budget in budgets[:MAX_LISTED]:
        name = w.snapshot.category_name(budget.category_id) or "Categoria"
        spent = _total(t for t in month_expenses if t.category_id == budget.category_id)
        pct = percent(spent, budget.limit_amount)
        status = budget_status_label(pct, budget.alert_percent)
        lines.append(
            f"{name}: {format_brl(spent)} de {format_brl(budget.limit_amount)}, {pct}% ({status})"
        )
    return f"Status dos orçamentos em {w.month}: {'; '.join(lines)}."


def _greeting(w: QueryWindow) -> str:
    return GREETING_ANSWER


QueryHandler = Callable[[QueryWindow], str]

HANDLERS: dict[QueryKey, QueryHandler] = {
    QueryKey.GREETING: _greeting,
    QueryKey.COMMITMENTS_TODAY: _commitments_today,
    QueryKey.COMMITMENTS_OVERDUE: _commitments_overdue,
    QueryKey.COMMITMENTS_WEEK: _commitments_week,
    QueryKey.COMMITMENTS_MONTH: _commitments_month,
    QueryKey.COMMITMENTS_PENDING_TOTAL: _commitments_pending_total,
    QueryKey.BALANCE_MONTH: _balance_month,
    QueryKey.BALANCE_WEEK: _balance_week,
    QueryKey.EXPENSES_MONTH: _expenses_month,
    QueryKey.EXPENSES_WEEK: _expenses_week,
    QueryKey.INCOME_MONTH: _income_month,
    QueryKey.LAST_TRANSACTION: _last_transaction,
    QueryKey.LAST_TRANSACTIONS: _last_transactions,
    QueryKey.SAVINGS_GOALS: _savings_goals,
    QueryKey.TOP_EXPENSES: _top_expenses,
    QueryKey.TOP_CATEGORY: _top_category,
    QueryKey.TRANSACTION_COUNT: _transaction_count,
    QueryKey.BUDGET_STATUS: _budget_status,
}


def resolve_query(
    key: QueryKey | str,
    snapshot: FinancialSnapshot,
    now: datetime | date | None = None,
) -> str:
    """Answer a canned question.

    Args:
        key: Query key (enum member or its string value)
        snapshot: Read-only financial data
        now: Reference instant, sampled once (defaults to now)

    Returns:
        A non-empty Portuguese sentence
    """
    if now is None:
        now = datetime.now()
    today = now.date() if isinstance(now, datetime) else now

    try:
        handler = HANDLERS[QueryKey(key)]
    except (KeyError, ValueError):
        logger.warning("No resolver for query key %r", key)
        return NOT_FOUND_ANSWER

    return handler(QueryWindow(snapshot=snapshot, today=today))
