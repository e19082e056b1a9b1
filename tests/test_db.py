from __future__ import annotations

import sqlite3

import pytest

from social_auth.db import _qmark_to_pct, connect, init_db, is_unique_violation
from social_auth.schema import get_schema_sql


def test_qmark_conversion_skips_string_literals() -> None:
    sql = "SELECT * FROM t WHERE a=? AND b='?' AND c LIKE ? ESCAPE '\\'"
    assert _qmark_to_pct(sql) == "SELECT * FROM t WHERE a=%s AND b='?' AND c LIKE %s ESCAPE '\\'"


def test_postgres_schema_has_no_sqlite_only_syntax() -> None:
    ddl = get_schema_sql("postgres")
    assert "AUTOINCREMENT" not in ddl
    assert "PRAGMA" not in ddl
    assert "BIGSERIAL PRIMARY KEY" in ddl


def test_init_db_is_idempotent(tmp_path) -> None:
    dsn = str(tmp_path / "a.sqlite")
    init_db(dsn)
    init_db(dsn)
    with connect(dsn) as conn:
        names = {r["name"] for r in conn.execute("SELECT name FROM sqlite_master WHERE type='table'").fetchall()}
    assert {"users", "quick_saves"} <= names
    with connect(dsn) as conn:
        cols = {r["name"] for r in conn.execute("PRAGMA table_info(quick_saves)").fetchall()}
    assert {"search_title", "search_description"} <= cols


def test_unique_violation_detection(db) -> None:
    with pytest.raises(sqlite3.IntegrityError) as ei:
        with connect(db) as conn:
            for _ in range(2):
                conn.execute(
                    "INSERT INTO users (email, display_name, created_at, updated_at) VALUES (?,?,?,?)",
                    ("dup@example.com", "Dup", "2024-01-01T00:00:00.000Z", "2024-01-01T00:00:00.000Z"),
                )
    assert is_unique_violation(ei.value)
    assert not is_unique_violation(ValueError("UNIQUE but not a db error"))

    # The failed block rolled back as a whole.
    with connect(db) as conn:
        assert conn.execute("SELECT COUNT(*) AS n FROM users").fetchone()["n"] == 0
