from datetime import date as dt_date, datetime
from decimal import Decimal, InvalidOperation

from .models import TRANSACTION_TYPES, Category, Transaction

# largest power of ten and finest fraction an amount may carry
MAX_AMOUNT_EXPONENT = 15
MIN_AMOUNT_EXPONENT = -28


def validate_type(s: str) -> str:
    if s not in TRANSACTION_TYPES:
        raise ValueError("type must be income or expense")
    return s


def parse_amount(value) -> Decimal:
    if isinstance(value, bool):
        raise ValueError("amount invalid")
    if isinstance(value, str):
        if not value.strip():
            raise ValueError("amount required")
        value = value.strip()
    elif value is None:
        raise ValueError("amount required")
    elif isinstance(value, float):
        value = repr(value)
    try:
        d = Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as e:
        raise ValueError("amount invalid") from e
    if not d.is_finite():
        raise ValueError("amount must be finite")
    if d < 0:
        raise ValueError("amount must be non-negative")
    if d.adjusted() > MAX_AMOUNT_EXPONENT:
        raise ValueError("amount too large")
    if d.as_tuple().exponent < MIN_AMOUNT_EXPONENT:
        raise ValueError("amount has too many decimal places")
    return d


def parse_date(value) -> datetime:
    """Turn a stored or submitted date into a naive datetime.

    Timezone offsets are dropped, keeping the wall-clock fields as written.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, dt_date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str) or not value.strip():
        raise ValueError("date required")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise ValueError("date invalid") from e
    return parsed.replace(tzinfo=None)


def _required_text(doc: dict, key: str) -> str:
    value = doc.get(key)
    if value is None:
        raise ValueError(f"{key} required")
    return str(value)


def transaction_from_document(doc: dict) -> Transaction:
    for key in ("userId", "amount", "date", "type"):
        if doc.get(key) is None:
            raise ValueError(f"{key} required")
    return Transaction(
        id=doc.get("id"),
        user_id=str(doc["userId"]),
        amount=parse_amount(doc["amount"]),
        description=_required_text(doc, "description"),
        category=_required_text(doc, "category"),
        date=parse_date(doc["date"]),
        type=validate_type(doc["type"]),
    )


def transaction_to_document(txn: Transaction) -> dict:
    return {
        "userId": txn.user_id,
        "amount": str(txn.amount),
        "description": txn.description,
        "category": txn.category,
        "date": txn.date.isoformat(),
        "type": txn.type,
    }


def category_from_document(doc: dict) -> Category:
    return Category(
        id=doc.get("id"),
        user_id=_required_text(doc, "userId"),
        name=_required_text(doc, "name"),
        icon=doc.get("icon"),
        color=doc.get("color"),
    )


def category_to_document(cat: Category) -> dict:
    doc = {"userId": cat.user_id, "name": cat.name}
    if cat.icon is not None:
        doc["icon"] = cat.icon
    if cat.color is not None:
        doc["color"] = cat.color
    return doc
