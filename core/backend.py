import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from core.domain import (
    EXPENSE,
    INCOME,
    BudgetRow,
    BudgetSummary,
    Category,
    Transaction,
    TransactionPage,
)
from core.lazy import transactions_for_month
from core.transforms import build_category_tree, load_seed

logger = logging.getLogger(__name__)

# (parent name, type, child names)
DEFAULT_CATEGORIES: Tuple[Tuple[str, str, Tuple[str, ...]], ...] = (
    ("Income", INCOME, ("Salary", "Other income")),
    ("Housing", EXPENSE, ("Rent", "Utilities")),
    ("Food", EXPENSE, ("Groceries", "Restaurants")),
    ("Transport", EXPENSE, ("Fuel", "Public transit")),
)


class BackendError(RuntimeError):
    pass


class BudgetBackend(ABC):
    """Async API the budget screen talks to."""

    @abstractmethod
    async def fetch_categories(self, user_id: str) -> Tuple[Category, ...]:
        ...

    @abstractmethod
    async def fetch_budget(self, user_id: str, month: str) -> Tuple[BudgetRow, ...]:
        ...

    @abstractmethod
    async def fetch_transactions(self, user_id: str, page: int, page_size: int) -> TransactionPage:
        ...

    @abstractmethod
    async def fetch_budget_summary(self, user_id: str, month: str) -> BudgetSummary:
        ...

    @abstractmethod
    async def update_budget(self, row: BudgetRow) -> BudgetRow:
        ...

    @abstractmethod
    async def add_default_categories(self, user_id: str) -> None:
        ...

    @abstractmethod
    async def add_category(
        self, user_id: str, name: str, type: str, parent_id: Optional[int] = None
    ) -> Category:
        ...


class InMemoryBackend(BudgetBackend):
    """Backend over placeholder data held in memory.

    Categories are stored flat per user and folded into a tree on fetch.
    `fail_on` holds operation names that should raise BackendError, and
    `delays` maps operation names to seconds to sleep before answering.
    """

    def __init__(
        self,
        categories: Tuple[Category, ...] = (),
        budgets: Tuple[BudgetRow, ...] = (),
        transactions: Tuple[Transaction, ...] = (),
        user_id: str = "demo",
    ):
        self._categories: Dict[str, List[Category]] = {}
        if categories:
            self._categories[user_id] = list(categories)
        self._budgets: List[BudgetRow] = list(budgets)
        self._transactions: List[Transaction] = list(transactions)
        self.fail_on: set[str] = set()
        self.delays: Dict[str, float] = {}
        self.updates: List[BudgetRow] = []

    @classmethod
    def from_seed(cls, path: str) -> "InMemoryBackend":
        categories, budgets, transactions = load_seed(path)
        user_ids = {b.user_id for b in budgets} | {t.user_id for t in transactions}
        user_id = next(iter(user_ids)) if len(user_ids) == 1 else "demo"
        logger.info(
            "Loaded seed %s: %d categories, %d budget rows, %d transactions",
            path, len(categories), len(budgets), len(transactions),
        )
        return cls(categories, budgets, transactions, user_id=user_id)

    async def _call(self, op: str) -> None:
        await asyncio.sleep(self.delays.get(op, 0))
        if op in self.fail_on:
            raise BackendError(f"{op} failed")

    def _next_category_id(self) -> int:
        ids = [c.id for cats in self._categories.values() for c in cats]
        return max(ids, default=0) + 1

    async def fetch_categories(self, user_id: str) -> Tuple[Category, ...]:
        await self._call("fetch_categories")
        return build_category_tree(self._categories.get(user_id, ()))

    async def fetch_budget(self, user_id: str, month: str) -> Tuple[BudgetRow, ...]:
        await self._call("fetch_budget")
        return tuple(b for b in self._budgets if b.user_id == user_id and b.month == month)

    async def fetch_transactions(self, user_id: str, page: int, page_size: int) -> TransactionPage:
        await self._call("fetch_transactions")
        own = sorted(
            (t for t in self._transactions if t.user_id == user_id),
            key=lambda t: (t.date, t.id),
            reverse=True,
        )
        start = (max(page, 1) - 1) * page_size
        return TransactionPage(
            transactions=tuple(own[start:start + page_size]),
            page=page,
            page_size=page_size,
            total=len(own),
        )

    async def fetch_budget_summary(self, user_id: str, month: str) -> BudgetSummary:
        await self._call("fetch_budget_summary")
        types = {
            c.id: c.type
            for c in self._categories.get(user_id, ())
        }
        income = 0
        expenses = 0
        for t in transactions_for_month(self._transactions, month):
            if t.user_id != user_id:
                continue
            if types.get(t.category_id) == INCOME:
                income += t.amount
            elif types.get(t.category_id) == EXPENSE:
                expenses += t.amount
        return BudgetSummary(income=income, expenses=expenses)

    async def update_budget(self, row: BudgetRow) -> BudgetRow:
        await self._call("update_budget")
        self.updates.append(row)
        for i, existing in enumerate(self._budgets):
            if (existing.user_id, existing.category_id, existing.month) == (
                row.user_id, row.category_id, row.month
            ):
                stored = replace(row, id=existing.id)
                self._budgets[i] = stored
                return stored
        stored = replace(row, id=max((b.id for b in self._budgets), default=0) + 1)
        self._budgets.append(stored)
        return stored

    async def add_default_categories(self, user_id: str) -> None:
        await self._call("add_default_categories")
        cats = self._categories.setdefault(user_id, [])
        existing = {(c.name, c.parent_id) for c in cats}
        parents_by_name = {c.name: c for c in cats if c.parent_id is None}
        added = 0
        for parent_name, type_, child_names in DEFAULT_CATEGORIES:
            parent = parents_by_name.get(parent_name)
            if parent is None:
                parent = Category(self._next_category_id(), parent_name, type_)
                cats.append(parent)
                parents_by_name[parent_name] = parent
                added += 1
            for name in child_names:
                if (name, parent.id) not in existing:
                    cats.append(Category(self._next_category_id(), name, type_, parent.id))
                    added += 1
        if added:
            logger.info("Added %d default categories for user %s", added, user_id)

    async def add_category(
        self, user_id: str, name: str, type: str, parent_id: Optional[int] = None
    ) -> Category:
        await self._call("add_category")
        if type not in (INCOME, EXPENSE):
            raise BackendError(f"Unknown category type {type!r}")
        cats = self._categories.setdefault(user_id, [])
        if parent_id is not None:
            parent = next((c for c in cats if c.id == parent_id and c.parent_id is None), None)
            if parent is None:
                raise BackendError(f"Parent category {parent_id} does not exist")
        category = Category(self._next_category_id(), name, type, parent_id)
        cats.append(category)
        return category
