from collections import defaultdict
from decimal import Decimal
from typing import Iterable

from .models import INCOME, EXPENSE, Transaction


def filter_by_month(
    transactions: Iterable[Transaction], year: int, month: int
) -> list[Transaction]:
    """Return the transactions dated in ``year``/``month``, in input order.

    ``month`` is zero-based: 0 is January, 11 is December.
    """
    return [
        txn
        for txn in transactions
        if txn.date.year == year and txn.date.month - 1 == month
    ]


def monthly_totals(
    transactions: Iterable[Transaction], year: int, month: int
) -> dict:
    result = {"income": Decimal(0), "expense": Decimal(0)}
    for txn in filter_by_month(transactions, year, month):
        if txn.type == INCOME:
            result["income"] += txn.amount
        else:
            result["expense"] += txn.amount
    return result


def category_totals(
    transactions: Iterable[Transaction], year: int, month: int
) -> dict[str, Decimal]:
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for txn in filter_by_month(transactions, year, month):
        if txn.type == EXPENSE:
            totals[txn.category] += txn.amount
    return dict(totals)


def recent_transactions(
    transactions: Iterable[Transaction], n: int
) -> list[Transaction]:
    if n <= 0:
        return []
    # sorted() is stable, so equal dates keep their input order
    return sorted(transactions, key=lambda txn: txn.date, reverse=True)[:n]
