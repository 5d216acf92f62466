import json
import logging
import re
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .db import connect

logger = logging.getLogger(__name__)

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class Operator(str, Enum):
    EQUALS = "=="


@dataclass(frozen=True)
class Predicate:
    """A single-field filter for ``DocumentStore.query_collection``."""

    field: str
    op: Operator
    value: Any

    @classmethod
    def equals(cls, field: str, value: Any) -> "Predicate":
        return cls(field, Operator.EQUALS, value)


def _validate_field(field: str) -> str:
    if not isinstance(field, str) or not _FIELD_RE.match(field):
        raise ValueError(f"invalid field name: {field!r}")
    return field


def _json_path(field: str) -> str:
    return f"$.{_validate_field(field)}"


def _validate_predicate(where: Predicate) -> Predicate:
    try:
        op = Operator(where.op)
    except ValueError as exc:
        raise ValueError(f"unsupported operator: {where.op!r}") from exc
    _validate_field(where.field)
    if isinstance(where.value, (dict, list)):
        raise ValueError("predicate value must be a scalar")
    return Predicate(where.field, op, where.value)


def _row_to_document(row) -> dict:
    return {"id": row["id"], **json.loads(row["data"])}


class DocumentStore:
    """Collections of JSON documents stored in one SQLite table."""

    def __init__(self, db_path):
        self.db_path = db_path

    def add_document(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex
        payload = {k: v for k, v in data.items() if k != "id"}
        with connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO documents(id, collection, data)
                VALUES (?, ?, ?)
                """,
                (doc_id, collection, json.dumps(payload)),
            )
        logger.info("added %s/%s", collection, doc_id)
        return doc_id

    def get_document(self, collection: str, doc_id: str) -> dict | None:
        with connect(self.db_path) as conn:
            row = conn.execute(
                """
                SELECT id, data FROM documents
                WHERE collection = ? AND id = ?
                """,
                (collection, doc_id),
            ).fetchone()
        return _row_to_document(row) if row is not None else None

    def get_collection(self, collection: str) -> list[dict]:
        with connect(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT id, data FROM documents
                WHERE collection = ?
                ORDER BY created_at ASC, rowid ASC
                """,
                (collection,),
            ).fetchall()
        return [_row_to_document(row) for row in rows]

    def update_document(self, collection: str, doc_id: str, data: dict) -> None:
        changes = {k: v for k, v in data.items() if k != "id"}
        with connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            ).fetchone()
            if row is None:
                raise ValueError("document not found")
            merged = {**json.loads(row["data"]), **changes}
            conn.execute(
                "UPDATE documents SET data = ? WHERE collection = ? AND id = ?",
                (json.dumps(merged), collection, doc_id),
            )
        logger.info("updated %s/%s", collection, doc_id)

    def delete_document(self, collection: str, doc_id: str) -> None:
        with connect(self.db_path) as conn:
            conn.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                (collection, doc_id),
            )
        logger.info("deleted %s/%s", collection, doc_id)

    def query_collection(self, collection: str, where: Predicate) -> list[dict]:
        where = _validate_predicate(where)
        value = where.value
        if isinstance(value, bool):
            value = int(value)
        logger.debug("query %s where %s %s %r", collection, where.field, where.op.value, value)
        with connect(self.db_path) as conn:
            if value is None:
                rows = conn.execute(
                    """
                    SELECT id, data FROM documents
                    WHERE collection = ? AND json_extract(data, ?) IS NULL
                    ORDER BY created_at ASC, rowid ASC
                    """,
                    (collection, _json_path(where.field)),
                ).fetchall()
            else:
                rows = conn.execute(
                    """
                    SELECT id, data FROM documents
                    WHERE collection = ? AND json_extract(data, ?) = ?
                    ORDER BY created_at ASC, rowid ASC
                    """,
                    (collection, _json_path(where.field), value),
                ).fetchall()
        return [_row_to_document(row) for row in rows]

    def query_collection_ordered(
        self, collection: str, order_by: str, direction: str = "asc"
    ) -> list[dict]:
        if direction not in {"asc", "desc"}:
            raise ValueError("direction must be asc or desc")
        with connect(self.db_path) as conn:
            rows = conn.execute(
                f"""
                SELECT id, data FROM documents
                WHERE collection = ?
                ORDER BY json_extract(data, ?) {direction.upper()}, rowid ASC
                """,
                (collection, _json_path(order_by)),
            ).fetchall()
        return [_row_to_document(row) for row in rows]
