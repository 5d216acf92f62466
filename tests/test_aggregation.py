from datetime import datetime
from decimal import Decimal

from budget.aggregation import (
    category_totals,
    filter_by_month,
    monthly_totals,
    recent_transactions,
)
from budget.models import Transaction


def _txn(amount, type_, date, category="misc", description=""):
    return Transaction(
        user_id="u1",
        amount=Decimal(str(amount)),
        description=description,
        category=category,
        date=date,
        type=type_,
    )


def _sample():
    return [
        _txn(100, "income", datetime(2024, 3, 5), category="salary"),
        _txn(40, "expense", datetime(2024, 3, 10), category="food"),
        _txn(10, "expense", datetime(2024, 4, 1), category="food"),
    ]


def test_month_is_zero_based():
    txns = _sample()

    assert monthly_totals(txns, 2024, 2) == {"income": 100, "expense": 40}
    assert category_totals(txns, 2024, 2) == {"food": 40}
    assert filter_by_month(txns, 2024, 3) == [txns[2]]


def test_empty_input_gives_zero_results():
    assert filter_by_month([], 2024, 0) == []
    assert monthly_totals([], 2024, 0) == {"income": 0, "expense": 0}
    assert category_totals([], 2024, 0) == {}
    assert recent_transactions([], 5) == []


def test_filter_by_month_checks_year_and_preserves_order():
    txns = [
        _txn(1, "expense", datetime(2024, 1, 20)),
        _txn(2, "expense", datetime(2023, 1, 15)),
        _txn(3, "income", datetime(2024, 1, 1)),
        _txn(4, "income", datetime(2024, 2, 1)),
    ]

    result = filter_by_month(txns, 2024, 0)

    assert result == [txns[0], txns[2]]
    assert filter_by_month(result, 2024, 0) == result


def test_month_boundaries():
    txns = [
        _txn(1, "expense", datetime(2024, 1, 31, 23, 59, 59)),
        _txn(2, "expense", datetime(2024, 2, 1, 0, 0, 0)),
        _txn(3, "expense", datetime(2024, 12, 31)),
    ]

    assert filter_by_month(txns, 2024, 0) == [txns[0]]
    assert filter_by_month(txns, 2024, 1) == [txns[1]]
    assert filter_by_month(txns, 2024, 11) == [txns[2]]


def test_monthly_totals_add_up_to_filtered_sum():
    txns = _sample() + [
        _txn("0.10", "expense", datetime(2024, 3, 11)),
        _txn("0.20", "expense", datetime(2024, 3, 12)),
        _txn("5.55", "income", datetime(2024, 3, 30)),
    ]

    totals = monthly_totals(txns, 2024, 2)

    assert totals == {"income": Decimal("105.55"), "expense": Decimal("40.30")}
    assert totals["income"] + totals["expense"] == sum(
        t.amount for t in filter_by_month(txns, 2024, 2)
    )


def test_category_totals_only_counts_expenses_in_month():
    txns = [
        _txn(12, "expense", datetime(2024, 2, 6), category="food"),
        _txn(8, "expense", datetime(2024, 2, 7), category="food"),
        _txn(300, "expense", datetime(2024, 2, 8), category="rent"),
        _txn(5000, "income", datetime(2024, 2, 5), category="salary"),
        _txn(99, "expense", datetime(2024, 3, 1), category="travel"),
    ]

    totals = category_totals(txns, 2024, 1)

    assert totals == {"food": 20, "rent": 300}
    assert "salary" not in totals
    assert "travel" not in totals


def test_recent_transactions_newest_first_and_bounded():
    txns = [
        _txn(1, "expense", datetime(2024, 1, 1)),
        _txn(2, "expense", datetime(2024, 3, 1)),
        _txn(3, "expense", datetime(2024, 2, 1)),
    ]

    result = recent_transactions(txns, 2)

    assert [t.amount for t in result] == [2, 3]
    assert len(recent_transactions(txns, 10)) == 3
    assert recent_transactions(txns, 0) == []
    dates = [t.date for t in recent_transactions(txns, 3)]
    assert dates == sorted(dates, reverse=True)


def test_recent_transactions_ties_keep_input_order():
    same_day = datetime(2024, 5, 5)
    txns = [
        _txn(1, "expense", same_day, description="first"),
        _txn(2, "expense", same_day, description="second"),
        _txn(3, "expense", datetime(2024, 5, 6), description="newest"),
    ]

    result = recent_transactions(txns, 3)

    assert [t.description for t in result] == ["newest", "first", "second"]


def test_aggregation_does_not_mutate_input():
    txns = _sample()
    snapshot = list(txns)

    recent_transactions(txns, 1)
    monthly_totals(txns, 2024, 2)

    assert txns == snapshot


def test_totals_match_filtered_sum_for_every_month():
    txns = [
        _txn("100", "income", datetime(2024, 1, 3)),
        _txn("19.99", "expense", datetime(2024, 1, 9), category="food"),
        _txn("0.01", "expense", datetime(2024, 2, 29), category="food"),
        _txn("250", "income", datetime(2024, 3, 1)),
        _txn("75.5", "expense", datetime(2024, 3, 31, 23, 59), category="rent"),
        _txn("5", "expense", datetime(2023, 3, 15), category="rent"),
    ]

    for year, month in [(2024, 0), (2024, 1), (2024, 2), (2024, 6), (2023, 2), (1999, 0)]:
        selected = filter_by_month(txns, year, month)
        totals = monthly_totals(txns, year, month)
        by_category = category_totals(txns, year, month)

        assert totals["income"] + totals["expense"] == sum(t.amount for t in selected)
        assert sum(by_category.values()) == totals["expense"]
        assert all(total > 0 for total in by_category.values())
        assert filter_by_month(selected, year, month) == selected

    assert filter_by_month(txns, 2024, 6) == []
    assert monthly_totals(txns, 2024, 6) == {"income": 0, "expense": 0}
    assert category_totals(txns, 2024, 6) == {}
