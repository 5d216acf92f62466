from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

INCOME = "income"
EXPENSE = "expense"
TRANSACTION_TYPES = (INCOME, EXPENSE)


@dataclass(frozen=True)
class Transaction:
    user_id: str
    amount: Decimal
    description: str
    category: str
    date: datetime
    type: str
    id: str | None = None


@dataclass(frozen=True)
class Category:
    user_id: str
    name: str
    icon: str | None = None
    color: str | None = None
    id: str | None = None


@dataclass(frozen=True)
class User:
    id: str
    email: str
    created_at: str
