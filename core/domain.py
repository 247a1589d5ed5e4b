from dataclasses import dataclass, field
from typing import Optional

INCOME = "income"
EXPENSE = "expense"


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    type: str                       # "income" or "expense"
    parent_id: Optional[int] = None
    children: tuple["Category", ...] = ()


@dataclass(frozen=True)
class BudgetRow:
    id: int          # 0 for a row the backend has not stored yet
    user_id: str
    category_id: int
    month: str       # "YYYY-MM"
    assigned: int    # cents
    actual: int      # cents


@dataclass(frozen=True)
class Transaction:
    id: int
    user_id: str
    category_id: int
    amount: int      # cents, signed
    date: str        # "YYYY-MM-DD"
    note: str = ""

    @property
    def month(self) -> str:
        return self.date[:7]


@dataclass(frozen=True)
class TransactionPage:
    transactions: tuple[Transaction, ...]
    page: int
    page_size: int
    total: int


@dataclass(frozen=True)
class BudgetSummary:
    income: int
    expenses: int

    @property
    def ready_to_assign(self) -> int:
        return self.income - self.expenses


# View models

@dataclass(frozen=True)
class BudgetCategory:
    id: int
    name: str
    type: str
    parent_id: Optional[int]
    budget: int
    activity: int
    remaining: int

    @property
    def status(self) -> str:
        return "under" if self.remaining >= 0 else "over"


@dataclass(frozen=True)
class ParentCategory:
    id: int
    name: str
    type: str
    budget: int
    activity: int
    remaining: int
    children: tuple[BudgetCategory, ...] = field(default_factory=tuple)
