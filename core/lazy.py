from typing import Callable, Iterable, Iterator

from core.domain import Transaction


def iter_transactions(
    trans: Iterable[Transaction], pred: Callable[[Transaction], bool]
) -> Iterator[Transaction]:
    for t in trans:
        if pred(t):
            yield t


def by_month(month: str) -> Callable[[Transaction], bool]:
    def _filter(t: Transaction) -> bool:
        return t.month == month

    return _filter


def transactions_for_month(trans: Iterable[Transaction], month: str) -> Iterator[Transaction]:
    return iter_transactions(trans, by_month(month))
