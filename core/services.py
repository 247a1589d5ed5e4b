import logging
from datetime import datetime
from typing import Optional, Tuple

from core.backend import BudgetBackend
from core.config import Settings, get_settings
from core.debounce import Debouncer
from core.domain import BudgetRow, BudgetSummary, ParentCategory
from core.events import (
    BUDGET_EDITED,
    BUDGET_LOADED,
    BUDGET_PERSISTED,
    LOAD_FAILED,
    SUMMARY_LOADED,
    EventBus,
    event_bus,
)
from core.functional import Either, Left, Right, pipe
from core.lazy import transactions_for_month
from core.transforms import build_budget, edit_budget, find_child, validate_month

logger = logging.getLogger(__name__)


class BudgetSession:
    """State behind one user's budget screen for one month at a time.

    Loads are never partially applied: each load gets a sequence number and
    its result is dropped if a newer load has already been applied. Edits
    patch the local tree straight away and are written back through a
    debouncer, after which the whole tree is reloaded.
    """

    def __init__(
        self,
        backend: BudgetBackend,
        user_id: str,
        month: str,
        settings: Optional[Settings] = None,
        bus: Optional[EventBus] = None,
    ):
        self.settings = settings or get_settings()
        self.backend = backend
        self.user_id = user_id
        self.month = validate_month(month)
        self.bus = bus or event_bus
        self.budget: Tuple[ParentCategory, ...] = ()
        self.summary = BudgetSummary(income=0, expenses=0)
        self.writer = Debouncer(self.settings.debounce_seconds, self.settings.debounce_scope)
        self._in_flight = 0
        self._budget_seq = 0
        self._budget_applied = 0
        self._summary_seq = 0
        self._summary_applied = 0

    @property
    def is_loading(self) -> bool:
        return self._in_flight > 0

    @property
    def ready_to_assign(self) -> int:
        return self.summary.ready_to_assign

    @property
    def month_label(self) -> str:
        return datetime.strptime(self.month, "%Y-%m").strftime("%B %Y")

    async def mount(self) -> None:
        try:
            await self.backend.add_default_categories(self.user_id)
        except Exception:
            logger.exception("Failed to add default categories for user %s", self.user_id)
        await self.load_budget()
        await self.load_summary()

    async def set_month(self, month: str) -> None:
        self.month = validate_month(month)
        await self.mount()

    def _failed(self, op: str, month: str, error: Exception) -> Left:
        err = {"error": f"{op}_failed", "message": str(error), "month": month}
        self.bus.publish(LOAD_FAILED, err)
        return Left(err)

    async def load_budget(self) -> Either[dict, Tuple[ParentCategory, ...]]:
        self._budget_seq += 1
        seq = self._budget_seq
        month = self.month
        self._in_flight += 1
        try:
            categories = await self.backend.fetch_categories(self.user_id)
            rows = await self.backend.fetch_budget(self.user_id, month)
            page = await self.backend.fetch_transactions(
                self.user_id, 1, self.settings.transactions_page_size
            )
            if page.total > len(page.transactions):
                logger.warning(
                    "Only %d of %d transactions fetched; activity for %s may be short",
                    len(page.transactions), page.total, month,
                )
            tree = build_budget(
                categories,
                rows,
                pipe(page.transactions, lambda ts: transactions_for_month(ts, month), tuple),
            )
        except Exception as e:
            logger.exception("Failed to load budget for %s", month)
            return self._failed("load_budget", month, e)
        finally:
            self._in_flight -= 1

        if seq < self._budget_applied:
            logger.debug("Dropping stale budget load #%d (applied #%d)", seq, self._budget_applied)
            return Right(self.budget)
        self._budget_applied = seq
        self.budget = tree
        self.bus.publish(BUDGET_LOADED, {"month": month, "parents": len(tree)})
        return Right(tree)

    async def load_summary(self) -> Either[dict, BudgetSummary]:
        self._summary_seq += 1
        seq = self._summary_seq
        month = self.month
        try:
            summary = await self.backend.fetch_budget_summary(self.user_id, month)
        except Exception as e:
            logger.exception("Failed to load summary for %s", month)
            return self._failed("load_summary", month, e)

        if seq < self._summary_applied:
            return Right(self.summary)
        self._summary_applied = seq
        self.summary = summary
        self.bus.publish(
            SUMMARY_LOADED,
            {"month": month, "income": summary.income, "expenses": summary.expenses,
             "ready_to_assign": summary.ready_to_assign},
        )
        return Right(summary)

    def edit(self, parent_id: int, child_id: int, value: int) -> None:
        """Set a child's budget (cents) locally and queue the write."""
        self.budget = edit_budget(self.budget, parent_id, child_id, value)
        row = find_child(self.budget, parent_id, child_id).map(
            lambda child: BudgetRow(
                id=0,
                user_id=self.user_id,
                category_id=child.id,
                month=self.month,
                assigned=child.budget,
                actual=child.activity,
            )
        ).get_or_else(None)
        if row is None:
            logger.warning("Edit for unknown category %s/%s ignored", parent_id, child_id)
            return

        self.bus.publish(
            BUDGET_EDITED,
            {"parent_id": parent_id, "category_id": child_id, "budget": value,
             "remaining": row.assigned - row.actual},
        )
        self.writer.schedule(child_id, lambda: self._persist(row))

    async def _persist(self, row: BudgetRow) -> None:
        try:
            stored = await self.backend.update_budget(row)
        except Exception:
            logger.exception(
                "Failed to update budget for category %s in %s", row.category_id, row.month
            )
        else:
            logger.info(
                "Saved budget for category %s in %s: %s", stored.category_id, stored.month,
                stored.assigned,
            )
            self.bus.publish(
                BUDGET_PERSISTED,
                {"category_id": stored.category_id, "month": stored.month,
                 "assigned": stored.assigned},
            )
        await self.load_budget()

    async def flush(self) -> None:
        await self.writer.flush()

    async def add_category(self, name: str, type: str, parent_id: Optional[int] = None):
        category = await self.backend.add_category(self.user_id, name, type, parent_id)
        await self.load_budget()
        return category
