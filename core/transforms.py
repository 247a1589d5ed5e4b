import json
import logging
import re
from collections import defaultdict
from dataclasses import replace
from typing import Dict, Iterable, Tuple

from core.domain import BudgetCategory, BudgetRow, Category, ParentCategory, Transaction
from core.functional import Maybe, Nothing, Some
from core.money import to_cents

logger = logging.getLogger(__name__)

_MONTH_RE = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class BudgetValidationError(ValueError):
    pass


def validate_month(month: str) -> str:
    if not isinstance(month, str) or not _MONTH_RE.match(month):
        raise BudgetValidationError(f"Month must look like YYYY-MM, got {month!r}")
    return month


def load_seed(
    path: str,
) -> Tuple[
    Tuple[Category, ...],
    Tuple[BudgetRow, ...],
    Tuple[Transaction, ...],
]:
    """Read a JSON seed file. Categories come back flat; amounts become cents."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    user_id = data.get("user_id", "demo")
    categories = tuple(
        Category(id=c["id"], name=c["name"], type=c["type"], parent_id=c.get("parent_id"))
        for c in data.get("categories", [])
    )
    budgets = tuple(
        BudgetRow(
            id=b["id"],
            user_id=b.get("user_id", user_id),
            category_id=b["category_id"],
            month=validate_month(b["month"]),
            assigned=to_cents(b["assigned"]),
            actual=to_cents(b.get("actual", 0)),
        )
        for b in data.get("budgets", [])
    )
    transactions = tuple(
        Transaction(
            id=t["id"],
            user_id=t.get("user_id", user_id),
            category_id=t["category_id"],
            amount=to_cents(t["amount"]),
            date=t["date"],
            note=t.get("note", ""),
        )
        for t in data.get("transactions", [])
    )
    return categories, budgets, transactions


def build_category_tree(flat: Iterable[Category]) -> Tuple[Category, ...]:
    """Fold a flat category list into parents with embedded children, keeping order."""
    flat = tuple(flat)
    children_by_parent: Dict[int, list] = defaultdict(list)
    for c in flat:
        if c.parent_id is not None:
            children_by_parent[c.parent_id].append(replace(c, children=()))
    return tuple(
        replace(c, children=tuple(children_by_parent.get(c.id, ())))
        for c in flat
        if c.parent_id is None
    )


def index_budget_rows(rows: Iterable[BudgetRow]) -> Dict[int, BudgetRow]:
    indexed: Dict[int, BudgetRow] = {}
    for row in rows:
        if row.category_id in indexed:
            # Backend should store one row per category and month; last one wins.
            logger.warning(
                "Duplicate budget rows for category %s in %s; using assigned=%s",
                row.category_id, row.month, row.assigned,
            )
        indexed[row.category_id] = row
    return indexed


def activity_by_category(trans: Iterable[Transaction]) -> Dict[int, int]:
    totals: Dict[int, int] = defaultdict(int)
    for t in trans:
        totals[t.category_id] += t.amount
    return dict(totals)


def _child_view(child: Category, parent_id: int, budget: int, activity: int) -> BudgetCategory:
    return BudgetCategory(
        id=child.id,
        name=child.name,
        type=child.type,
        parent_id=parent_id,
        budget=budget,
        activity=activity,
        remaining=budget - activity,
    )


def _parent_view(parent, children: Tuple[BudgetCategory, ...]) -> ParentCategory:
    budget = sum(c.budget for c in children)
    activity = sum(c.activity for c in children)
    return ParentCategory(
        id=parent.id,
        name=parent.name,
        type=parent.type,
        budget=budget,
        activity=activity,
        remaining=budget - activity,
        children=children,
    )


def build_budget(
    categories: Iterable[Category],
    rows: Iterable[BudgetRow],
    trans: Iterable[Transaction],
) -> Tuple[ParentCategory, ...]:
    """Combine the category tree, a month's budget rows and that month's
    transactions into the view tree.

    Children take their assigned amount from the matching row (0 when
    absent) and their activity from the summed transactions (0 when none).
    Parent figures are always the sums over their children.
    """
    assigned = index_budget_rows(rows)
    activity = activity_by_category(trans)

    tree = []
    for parent in categories:
        children = tuple(
            _child_view(
                child,
                parent.id,
                assigned[child.id].assigned if child.id in assigned else 0,
                activity.get(child.id, 0),
            )
            for child in parent.children
        )
        tree.append(_parent_view(parent, children))
    return tuple(tree)


def edit_budget(
    tree: Tuple[ParentCategory, ...], parent_id: int, child_id: int, value: int
) -> Tuple[ParentCategory, ...]:
    if value < 0:
        raise BudgetValidationError(f"Budget must be non-negative, got {value}")

    def _edit_parent(parent: ParentCategory) -> ParentCategory:
        if parent.id != parent_id:
            return parent
        children = tuple(
            replace(c, budget=value, remaining=value - c.activity) if c.id == child_id else c
            for c in parent.children
        )
        return _parent_view(parent, children)

    return tuple(_edit_parent(p) for p in tree)


def find_child(
    tree: Tuple[ParentCategory, ...], parent_id: int, child_id: int
) -> Maybe[BudgetCategory]:
    for parent in tree:
        if parent.id != parent_id:
            continue
        for child in parent.children:
            if child.id == child_id:
                return Some(child)
    return Nothing()


def tree_totals(tree: Iterable[ParentCategory]) -> Dict[str, int]:
    tree = tuple(tree)
    budget = sum(p.budget for p in tree)
    activity = sum(p.activity for p in tree)
    return {"budget": budget, "activity": activity, "remaining": budget - activity}
