"""Read-only financial data snapshot.

The data store hands the voice assistant its whole state as one JSON
document (camelCase keys, ISO dates). These models validate that document;
nothing in the voice package ever writes back to it.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TransactionType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class CategoryType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    BOTH = "BOTH"


class CommitmentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"


class _Record(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)


class Category(_Record):
    id: str
    name: str
    type: CategoryType = CategoryType.EXPENSE

    @property
    def accepts_expenses(self) -> bool:
        return self.type in (CategoryType.EXPENSE, CategoryType.BOTH)


class Supplier(_Record):
    id: str
    name: str


class PaymentMethod(_Record):
    id: str
    name: str


class Transaction(_Record):
    id: str
    type: TransactionType
    date: str
    amount: float
    description: str = ""
    category_id: Optional[str] = Field(default=None, alias="categoryId")
    created_at: int = Field(default=0, alias="createdAt")

    @property
    def day(self) -> str:
        """Date as ``YYYY-MM-DD`` regardless of any time component."""
        return self.date[:10]


class Commitment(_Record):
    id: str
    description: str = ""
    due_date: str = Field(alias="dueDate")
    amount: float = 0.0
    category_id: Optional[str] = Field(default=None, alias="categoryId")
    status: CommitmentStatus = CommitmentStatus.PENDING

    @property
    def due_day(self) -> str:
        return self.due_date[:10]

    @property
    def is_pending(self) -> bool:
        return self.status == CommitmentStatus.PENDING


class SavingsGoal(_Record):
    id: str
    description: str = ""
    target_amount: float = Field(default=0.0, alias="targetAmount")
    current_amount: float = Field(default=0.0, alias="currentAmount")


class Budget(_Record):
    id: str
    category_id: str = Field(alias="categoryId")
    limit_amount: float = Field(default=0.0, alias="limitAmount")
    alert_percent: float = Field(default=80.0, alias="alertPercent")


class FinancialSnapshot(_Record):
    categories: list[Category] = Field(default_factory=list)
    suppliers: list[Supplier] = Field(default_factory=list)
    payment_methods: list[PaymentMethod] = Field(default_factory=list, alias="paymentMethods")
    transactions: list[Transaction] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)
    commitments: list[Commitment] = Field(default_factory=list)
    savings_goals: list[SavingsGoal] = Field(default_factory=list, alias="savingsGoals")

    @field_validator("*", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value

    def category_name(self, category_id: str | None) -> str | None:
        for category in self.categories:
            if category.id == category_id:
                return category.name
        return None
