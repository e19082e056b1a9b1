from __future__ import annotations

import re
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence
from urllib.parse import urlparse

from social_auth.schema import get_schema_sql


# Arbitrary constant shared by every process that runs schema DDL.
_SCHEMA_LOCK_KEY = 741_852_963

# Quoted literals are matched first so a '?' inside them is left alone.
_LITERAL_OR_QMARK = re.compile(r"'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|\?")


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


def dialect_for(dsn: str) -> str:
    """'postgres' for postgres:// or postgresql:// URLs, otherwise 'sqlite'."""
    scheme = urlparse((dsn or "").strip()).scheme.lower()
    return "postgres" if scheme in ("postgres", "postgresql") else "sqlite"


def _qmark_to_pct(sql: str) -> str:
    """Rewrite sqlite '?' placeholders as psycopg2 '%s'."""
    return _LITERAL_OR_QMARK.sub(lambda m: "%s" if m.group(0) == "?" else m.group(0), sql)


class PGConnection:
    """psycopg2 connection with the sqlite3 `conn.execute(sql, params)` shape.

    Rows come back as dicts (RealDictCursor), so `row["col"]` works on both engines.
    """

    dialect = "postgres"

    def __init__(self, raw: Any):
        self.raw = raw

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> Any:
        cur = self.raw.cursor()
        cur.execute(_qmark_to_pct(sql), tuple(params or ()))
        return cur

    def commit(self) -> None:
        self.raw.commit()

    def rollback(self) -> None:
        self.raw.rollback()

    def close(self) -> None:
        self.raw.close()


def _open_postgres(dsn: str) -> PGConnection:
    try:
        import psycopg2
        import psycopg2.extras
    except Exception as e:
        raise RuntimeError("Postgres DSN given but psycopg2 is missing. Install psycopg2-binary.") from e
    return PGConnection(psycopg2.connect(dsn, cursor_factory=psycopg2.extras.RealDictCursor))


def _open_sqlite(dsn: str) -> sqlite3.Connection:
    path = dsn[len("sqlite:///") :] if dsn.lower().startswith("sqlite:///") else dsn
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    # Handlers run in a threadpool; each request opens its own connection.
    conn = sqlite3.connect(path, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    for pragma in ("journal_mode=WAL", "synchronous=NORMAL", "busy_timeout=5000", "foreign_keys=ON"):
        conn.execute(f"PRAGMA {pragma};")
    return conn


@contextmanager
def connect(db_dsn: str) -> Iterator[Any]:
    """One unit of work against SQLite or Postgres.

    Commits when the block exits cleanly, rolls back on any exception.
    """
    dsn = (db_dsn or "").strip()
    conn = _open_postgres(dsn) if dialect_for(dsn) == "postgres" else _open_sqlite(dsn)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def conn_dialect(conn: Any) -> str:
    return str(getattr(conn, "dialect", "sqlite"))


def insert_returning_id(conn: Any, sql: str, params: Sequence[Any], *, id_column: str) -> int:
    """Run an INSERT and return the new row's integer primary key."""
    if conn_dialect(conn) == "postgres":
        row = conn.execute(f"{sql.rstrip().rstrip(';')} RETURNING {id_column}", params).fetchone()
        return int(row[id_column])
    return int(conn.execute(sql, params).lastrowid)


def is_unique_violation(exc: BaseException) -> bool:
    """True when `exc` is a UNIQUE constraint failure on either engine."""
    if isinstance(exc, sqlite3.IntegrityError):
        return "UNIQUE" in str(exc).upper()
    # SQLSTATE 23505 (psycopg2.errors.UniqueViolation), checked without importing psycopg2.
    return str(getattr(exc, "pgcode", "") or "") == "23505"


def init_db(db_dsn: str) -> None:
    """Create tables and indexes. Safe to rerun."""
    dialect = dialect_for(db_dsn)
    _debug(f"Initializing DB ({dialect}) at {db_dsn}")
    ddl = get_schema_sql(dialect)
    with connect(db_dsn) as conn:
        if dialect == "sqlite":
            # executescript holds SQLite's write lock for the whole script.
            conn.executescript(ddl)
        else:
            # Several API workers may start at once.
            conn.execute("SELECT pg_advisory_lock(?)", (_SCHEMA_LOCK_KEY,))
            try:
                for stmt in (s.strip() for s in ddl.split(";")):
                    if stmt:
                        conn.execute(stmt)
            finally:
                conn.execute("SELECT pg_advisory_unlock(?)", (_SCHEMA_LOCK_KEY,))
