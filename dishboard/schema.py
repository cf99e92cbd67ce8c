"""Database schema for Dishboard.

SQLite is the default store; Postgres is supported too. The Postgres schema is
generated from the SQLite schema with a small set of transformations.

Timestamps are ISO-8601 TEXT (UTC, with 'Z') for portability across engines.
"""

from __future__ import annotations

import re


SCHEMA_SQLITE = r"""
PRAGMA foreign_keys = ON;

CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

-- author_id is NULL once the author's account has been deleted.
CREATE TABLE IF NOT EXISTS dishes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    recipe TEXT NOT NULL,
    image_path TEXT,
    type TEXT NOT NULL,
    author_id INTEGER REFERENCES users (id),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_dishes_author ON dishes (author_id);

-- At most one rating per (user, dish). Re-rating updates the row in place.
CREATE TABLE IF NOT EXISTS ratings (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL REFERENCES users (id),
    dish_id INTEGER NOT NULL REFERENCES dishes (id),
    rating INTEGER NOT NULL CHECK (rating BETWEEN 1 AND 10),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    UNIQUE (user_id, dish_id)
);
CREATE INDEX IF NOT EXISTS idx_ratings_dish ON ratings (dish_id);
"""


def _sqlite_to_postgres(ddl: str) -> str:
    lines = [ln for ln in ddl.splitlines() if not ln.strip().upper().startswith("PRAGMA ")]
    out = "\n".join(lines)
    return re.sub(
        r"INTEGER\s+PRIMARY\s+KEY\s+AUTOINCREMENT",
        "BIGSERIAL PRIMARY KEY",
        out,
        flags=re.IGNORECASE,
    )


SCHEMA_POSTGRES = _sqlite_to_postgres(SCHEMA_SQLITE)


def get_schema_sql(dialect: str) -> str:
    d = (dialect or "").lower()
    if d.startswith("post"):
        return SCHEMA_POSTGRES
    return SCHEMA_SQLITE
