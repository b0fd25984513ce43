"""Voice assistant data models.

Defines intents, query keys and the drafts handed to the app's forms:
    Transcript → Intent → (answer | CommitmentDraft | TransactionDraft | route)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any

from fintrack.voice.snapshot import TransactionType


class IntentType(str, Enum):
    """Voice command intent types."""

    NAVIGATE = "navigate"
    TRANSACTION = "transaction"
    COMMITMENT = "commitment"
    QUERY = "query"
    HELP = "help"
    UNKNOWN = "unknown"


class QueryKey(str, Enum):
    """Canned analytical questions answerable from a snapshot."""

    # Commitments
    COMMITMENTS_TODAY = "commitments_today"
    COMMITMENTS_OVERDUE = "commitments_overdue"
    COMMITMENTS_WEEK = "commitments_week"
    COMMITMENTS_MONTH = "commitments_month"
    COMMITMENTS_PENDING_TOTAL = "commitments_pending_total"

    # Balance & cash flow
    BALANCE_MONTH = "balance_month"
    BALANCE_WEEK = "balance_week"
    EXPENSES_MONTH = "expenses_month"
    EXPENSES_WEEK = "expenses_week"
    INCOME_MONTH = "income_month"

    # Transactions
    LAST_TRANSACTION = "last_transaction"
    LAST_TRANSACTIONS = "last_transactions"
    TOP_EXPENSES = "top_expenses"
    TOP_CATEGORY = "top_category"
    TRANSACTION_COUNT = "transaction_count"

    # Goals & budgets
    SAVINGS_GOALS = "savings_goals"
    BUDGET_STATUS = "budget_status"

    # Meta
    GREETING = "greeting"


@dataclass(frozen=True)
class Intent:
    """Classified purpose of an utterance.

    ``route`` is only set for NAVIGATE and ``query_key`` only for QUERY.
    """

    type: IntentType
    confidence: float = 0.0
    raw_text: str = ""
    route: str | None = None
    query_key: QueryKey | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "confidence": self.confidence,
            "route": self.route,
            "query_key": self.query_key.value if self.query_key else None,
            "raw_text": self.raw_text,
        }


@dataclass
class CommitmentDraft:
    """Commitment parameters extracted from speech. Every field is populated."""

    description: str
    amount: float
    due_date: date
    category_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "amount": self.amount,
            "due_date": self.due_date.isoformat(),
            "category_id": self.category_id,
        }


@dataclass
class TransactionDraft:
    """Expense/income draft produced from a spoken transaction."""

    type: TransactionType
    description: str
    amount: float
    date: date
    category_id: str = ""
    payment_method_id: str | None = None
    supplier_id: str | None = None
    confidence: float = 0.0
    needs_clarification: bool = False
    question: str = ""
    currency: str = "BRL"
    needs_review: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "description": self.description,
            "amount": self.amount,
            "date": self.date.isoformat(),
            "category_id": self.category_id,
            "payment_method_id": self.payment_method_id,
            "supplier_id": self.supplier_id,
            "confidence": self.confidence,
            "needs_clarification": self.needs_clarification,
            "question": self.question,
            "currency": self.currency,
            "needs_review": self.needs_review,
        }


@dataclass
class Prefill:
    """Payload handed to the navigation sink so the target form opens filled in."""

    kind: IntentType
    draft: CommitmentDraft | TransactionDraft
    open_form: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "voice_prefill": self.draft.to_dict(),
            "open_form": self.open_form,
        }


@dataclass
class FinancialContext:
    """Compact numbers shared with the remote assistant."""

    monthly_income: float = 0.0
    monthly_expenses: float = 0.0
    balance: float = 0.0
    available_capital: float = 0.0
    pending_commitments: int = 0
    top_category: str | None = None
    currency: str = "BRL"
    extras: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "monthly_income": self.monthly_income,
            "monthly_expenses": self.monthly_expenses,
            "balance": self.balance,
            "available_capital": self.available_capital,
            "pending_commitments": self.pending_commitments,
            "top_category": self.top_category,
            "currency": self.currency,
            **self.extras,
        }
