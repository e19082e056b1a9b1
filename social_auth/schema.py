"""Database schema for the Social Auth API.

Runs on SQLite (local/dev, tests) or Postgres.

Timestamps are ISO-8601 TEXT in UTC with a trailing Z, so they compare and sort the
same way on both engines.

Email and provider ids are UNIQUE but nullable. Both engines treat NULLs as distinct,
which gives sparse uniqueness: Telegram accounts (no email) never collide with each other.

The Postgres DDL is derived from the SQLite text below.
"""

from __future__ import annotations

import re


SCHEMA_SQLITE = r"""
PRAGMA foreign_keys = ON;

-- Users / Auth
-- A row may carry several provider ids (google/github/telegram) plus an optional
-- password hash. We use JWTs for stateless auth and store only password hashes.
CREATE TABLE IF NOT EXISTS users (
    user_id INTEGER PRIMARY KEY AUTOINCREMENT,
    google_id TEXT UNIQUE,
    github_id TEXT UNIQUE,
    telegram_id TEXT UNIQUE,
    email TEXT UNIQUE,
    display_name TEXT NOT NULL,
    first_name TEXT,
    last_name TEXT,
    image TEXT,
    visibility TEXT NOT NULL DEFAULT 'private' CHECK (visibility IN ('public','private')),
    role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('admin','user')),
    password_hash TEXT,
    bio TEXT NOT NULL DEFAULT 'A user from the platform',
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_users_visibility_role ON users (visibility, role);

-- Quick saves (bookmarks). Owned by exactly one user, never shared.
-- search_title/search_description hold content.title/description case-folded by the
-- application, so search is a plain LIKE with no engine-specific LOWER().
CREATE TABLE IF NOT EXISTS quick_saves (
    quick_save_id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    content_json TEXT NOT NULL,
    search_title TEXT,
    search_description TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_quick_saves_user_created ON quick_saves (user_id, created_at);
CREATE INDEX IF NOT EXISTS idx_quick_saves_user_updated ON quick_saves (user_id, updated_at);
"""


def _sqlite_to_postgres(ddl: str) -> str:
    """Drop PRAGMA lines and turn AUTOINCREMENT keys into BIGSERIAL."""
    kept = "\n".join(ln for ln in ddl.splitlines() if not ln.lstrip().upper().startswith("PRAGMA "))
    return re.sub(r"INTEGER\s+PRIMARY\s+KEY\s+AUTOINCREMENT", "BIGSERIAL PRIMARY KEY", kept, flags=re.IGNORECASE)


SCHEMA_POSTGRES = _sqlite_to_postgres(SCHEMA_SQLITE)


def get_schema_sql(dialect: str) -> str:
    return SCHEMA_POSTGRES if (dialect or "").lower() == "postgres" else SCHEMA_SQLITE
