import sqlite3

import pytest

from budget.db import init_db
from budget.settings import Settings


def test_init_db_creates_tables_and_is_idempotent(tmp_path):
    settings = Settings(data_dir=tmp_path / "nested", db_path=tmp_path / "nested" / "t.sqlite")
    init_db(settings)
    init_db(settings)

    conn = sqlite3.connect(str(settings.db_path))
    names = {
        row[0]
        for row in conn.execute(
            "SELECT name FROM sqlite_master WHERE type IN ('table', 'trigger', 'index')"
        ).fetchall()
    }
    conn.close()

    assert {"documents", "users", "sessions", "documents_updated_at"} <= names


def test_documents_reject_invalid_json(tmp_path):
    settings = Settings(data_dir=tmp_path, db_path=tmp_path / "t.sqlite")
    init_db(settings)

    conn = sqlite3.connect(str(settings.db_path))
    with pytest.raises(sqlite3.IntegrityError):
        conn.execute(
            "INSERT INTO documents(id, collection, data) VALUES ('x', 'c', 'not json')"
        )
    conn.close()
