from __future__ import annotations

import logging
import re
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence
from urllib.parse import urlparse

from dishboard.errors import InternalError
from dishboard.schema import get_schema_sql


logger = logging.getLogger(__name__)

_STATEMENT_END = re.compile(r";[ \t]*$", re.MULTILINE)


def _detect_dialect(dsn: str) -> str:
    """Return 'postgres' or 'sqlite'."""
    s = (dsn or "").strip()
    if not s:
        return "sqlite"
    scheme = urlparse(s).scheme.lower()
    if scheme in ("postgres", "postgresql"):
        return "postgres"
    return "sqlite"


def _qmark_to_pct(sql: str) -> str:
    """Convert qmark placeholders (?) to psycopg2 placeholders (%s).

    Skips '?' inside single-quoted literals. Not a full SQL parser, but
    sufficient for the statements in this codebase.
    """
    out = []
    in_single = False
    for ch in sql:
        if ch == "'":
            in_single = not in_single
        if ch == "?" and not in_single:
            out.append("%s")
            continue
        out.append(ch)
    return "".join(out)


class PGConnection:
    """Makes a psycopg2 connection answer `execute()` like sqlite3 connections do."""

    dialect = "postgres"

    def __init__(self, conn: Any):
        self._conn = conn

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> Any:
        cur = self._conn.cursor()
        cur.execute(_qmark_to_pct(sql), tuple(params or ()))
        return cur

    def executescript(self, ddl: str) -> None:
        # Statements end with ";" at end of line. Comment lines are dropped first.
        body = "\n".join(line for line in ddl.splitlines() if not line.lstrip().startswith("--"))
        for stmt in (s.strip() for s in _STATEMENT_END.split(body)):
            if stmt:
                self.execute(stmt)

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()


def _open_sqlite(dsn: str) -> sqlite3.Connection:
    # Support sqlite:///path style
    if dsn.lower().startswith("sqlite:///"):
        dsn = dsn[len("sqlite:///") :]

    Path(dsn).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(dsn, timeout=30, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    conn.execute("PRAGMA busy_timeout=5000;")  # 5s
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


class Database:
    """Bounded pool of store connections.

    Holds `max_connections` slots. `connection()` blocks until a slot is free,
    runs the caller's statements in one transaction (commit on success, rollback
    on any exception) and always gives the slot back.

    - SQLite: a fresh connection per borrow (WAL + NORMAL sync).
    - Postgres: psycopg2 ThreadedConnectionPool with RealDictCursor rows.
    """

    def __init__(self, db_dsn: str, *, max_connections: int = 5):
        if max_connections < 1:
            raise ValueError("max_connections must be >= 1")
        self.dsn = (db_dsn or "").strip()
        self.dialect = _detect_dialect(self.dsn)
        self.max_connections = int(max_connections)
        self._slots = threading.BoundedSemaphore(self.max_connections)
        self._pg_pool: Optional[Any] = None

    def open(self) -> None:
        if self.dialect != "postgres" or self._pg_pool is not None:
            return
        try:
            import psycopg2.extras
            import psycopg2.pool
        except ImportError as e:
            raise RuntimeError(
                "Postgres selected but psycopg2 is not installed. "
                "Install psycopg2-binary and try again."
            ) from e

        self._pg_pool = psycopg2.pool.ThreadedConnectionPool(
            1,
            self.max_connections,
            self.dsn,
            cursor_factory=psycopg2.extras.RealDictCursor,
        )
        logger.info("Opened postgres pool (max_connections=%d)", self.max_connections)

    def close(self) -> None:
        if self._pg_pool is not None:
            self._pg_pool.closeall()
            self._pg_pool = None

    @contextmanager
    def connection(self) -> Iterator[Any]:
        self._slots.acquire()
        try:
            if self.dialect == "postgres":
                with self._pg_connection() as conn:
                    yield conn
            else:
                with self._sqlite_connection() as conn:
                    yield conn
        finally:
            self._slots.release()

    @contextmanager
    def _sqlite_connection(self) -> Iterator[sqlite3.Connection]:
        conn = _open_sqlite(self.dsn)
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.exception("Store error")
            raise InternalError("store_error") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def _pg_connection(self) -> Iterator[PGConnection]:
        import psycopg2

        if self._pg_pool is None:
            self.open()
        raw = self._pg_pool.getconn()
        broken = False
        conn = PGConnection(raw)
        try:
            yield conn
            conn.commit()
        except psycopg2.Error as e:
            broken = bool(raw.closed)
            if not broken:
                conn.rollback()
            logger.exception("Store error")
            raise InternalError("store_error") from e
        except Exception:
            conn.rollback()
            raise
        finally:
            self._pg_pool.putconn(raw, close=broken)


def init_db(db: Database) -> None:
    """Create all tables. Safe to run repeatedly."""
    logger.info("Initializing DB (%s) at %s", db.dialect, db.dsn)
    with db.connection() as conn:
        conn.executescript(get_schema_sql(db.dialect))
