import logging
from dataclasses import replace
from typing import Callable

from . import aggregation
from .logic import (
    category_from_document,
    category_to_document,
    parse_amount,
    parse_date,
    transaction_from_document,
    transaction_to_document,
    validate_type,
)
from .models import Category, Transaction
from .store import DocumentStore, Predicate
from .streams import Subscription, ValueStream

logger = logging.getLogger(__name__)

TRANSACTIONS_COLLECTION = "transactions"
CATEGORIES_COLLECTION = "categories"

_TRANSACTION_FIELDS = {"amount", "description", "category", "date", "type"}


def _required_text(value, label: str) -> str:
    if value is None or not str(value).strip():
        raise ValueError(f"{label} required")
    return str(value).strip()


class BudgetService:
    """Transactions and categories of each user, plus monthly analytics."""

    def __init__(self, store: DocumentStore):
        self.store = store
        self._live: dict[str, ValueStream[list[Transaction]]] = {}

    # transactions

    def add_transaction(self, txn: Transaction) -> str:
        validate_type(txn.type)
        txn = replace(txn, amount=parse_amount(txn.amount), date=parse_date(txn.date))
        txn_id = self.store.add_document(
            TRANSACTIONS_COLLECTION, transaction_to_document(txn)
        )
        self._refresh(txn.user_id)
        return txn_id

    def get_transaction(self, txn_id: str) -> Transaction | None:
        doc = self.store.get_document(TRANSACTIONS_COLLECTION, txn_id)
        return transaction_from_document(doc) if doc is not None else None

    def get_transactions(self, user_id: str) -> list[Transaction]:
        docs = self.store.query_collection(
            TRANSACTIONS_COLLECTION, Predicate.equals("userId", user_id)
        )
        transactions = []
        for doc in docs:
            try:
                transactions.append(transaction_from_document(doc))
            except ValueError as exc:
                logger.warning("skipping transaction %s: %s", doc.get("id"), exc)
        return transactions

    def get_transactions_by_month(
        self, user_id: str, year: int, month: int
    ) -> list[Transaction]:
        return aggregation.filter_by_month(self.get_transactions(user_id), year, month)

    def update_transaction(self, txn_id: str, **changes) -> None:
        unknown = set(changes) - _TRANSACTION_FIELDS
        if unknown:
            raise ValueError(f"unknown fields: {', '.join(sorted(unknown))}")
        existing = self.store.get_document(TRANSACTIONS_COLLECTION, txn_id)
        if existing is None:
            raise ValueError("transaction not found")
        doc = {}
        for key, value in changes.items():
            if key == "amount":
                doc["amount"] = str(parse_amount(value))
            elif key == "date":
                doc["date"] = parse_date(value).isoformat()
            elif key == "type":
                doc["type"] = validate_type(value)
            else:
                doc[key] = _required_text(value, key)
        self.store.update_document(TRANSACTIONS_COLLECTION, txn_id, doc)
        self._refresh(existing.get("userId"))

    def delete_transaction(self, txn_id: str) -> None:
        existing = self.store.get_document(TRANSACTIONS_COLLECTION, txn_id)
        self.store.delete_document(TRANSACTIONS_COLLECTION, txn_id)
        if existing is not None:
            self._refresh(existing.get("userId"))

    # categories

    def add_category(self, category: Category) -> str:
        _required_text(category.name, "category name")
        return self.store.add_document(
            CATEGORIES_COLLECTION, category_to_document(category)
        )

    def get_categories(self, user_id: str) -> list[Category]:
        docs = self.store.query_collection(
            CATEGORIES_COLLECTION, Predicate.equals("userId", user_id)
        )
        return [category_from_document(doc) for doc in docs]

    def update_category(self, category_id: str, **changes) -> None:
        unknown = set(changes) - {"name", "icon", "color"}
        if unknown:
            raise ValueError(f"unknown fields: {', '.join(sorted(unknown))}")
        if "name" in changes:
            changes["name"] = _required_text(changes["name"], "category name")
        self.store.update_document(CATEGORIES_COLLECTION, category_id, changes)

    def delete_category(self, category_id: str) -> None:
        self.store.delete_document(CATEGORIES_COLLECTION, category_id)

    # analytics

    def get_monthly_totals(self, user_id: str, year: int, month: int) -> dict:
        return aggregation.monthly_totals(self.get_transactions(user_id), year, month)

    def get_category_totals(self, user_id: str, year: int, month: int) -> dict:
        return aggregation.category_totals(self.get_transactions(user_id), year, month)

    def get_recent_transactions(self, user_id: str, n: int = 5) -> list[Transaction]:
        return aggregation.recent_transactions(self.get_transactions(user_id), n)

    # live lists

    def watch_transactions(
        self, user_id: str, callback: Callable[[list[Transaction]], None]
    ) -> Subscription:
        stream = self._live.get(user_id)
        if stream is None:
            stream = ValueStream(self.get_transactions(user_id))
            self._live[user_id] = stream
        return stream.subscribe(callback)

    def _refresh(self, user_id: str | None) -> None:
        stream = self._live.get(user_id) if user_id else None
        if stream is None:
            return
        if stream.subscriber_count == 0:
            del self._live[user_id]
            return
        stream.emit(self.get_transactions(user_id))
