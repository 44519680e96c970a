from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator

import streamlit as st

from seachain.schema import SCHEMA_SQL

logger = logging.getLogger(__name__)


def _connect(db_path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@st.cache_resource
def get_conn(db_path: Path) -> sqlite3.Connection:
    logger.info("Opening database %s", db_path)
    return _connect(db_path)


def _column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    rows = conn.execute(f"PRAGMA table_info({table});").fetchall()
    cols = [r["name"] for r in rows]
    return column in cols


# (table, column, DDL) for databases created before the column existed
_MIGRATIONS = [
    (
        "purchases",
        "source_sale_item_id",
        "ALTER TABLE purchases ADD COLUMN source_sale_item_id INTEGER REFERENCES sale_items(id);",
    ),
]


def ensure_schema(conn: sqlite3.Connection) -> None:
    # Create base schema (for new installs)
    conn.executescript(SCHEMA_SQL)

    # ---- migrations for existing installs ----
    for table, column, ddl in _MIGRATIONS:
        if not _column_exists(conn, table, column):
            logger.info("Migrating: adding %s.%s", table, column)
            conn.execute(ddl)

    conn.commit()


@contextmanager
def atomic(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Group several writes into one transaction.

    Writers inside the block must pass commit=False. Any exception rolls back
    everything written since the block started.
    """
    if conn.in_transaction:
        conn.commit()
    try:
        yield conn
    except Exception:
        conn.rollback()
        raise
    else:
        conn.commit()


def q(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = ()) -> list[sqlite3.Row]:
    cur = conn.execute(sql, tuple(params))
    rows = cur.fetchall()
    cur.close()
    return rows


def x(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = (), *, commit: bool = True) -> int:
    cur = conn.execute(sql, tuple(params))
    if commit:
        conn.commit()
    last = cur.lastrowid
    cur.close()
    return int(last or 0)


def u(conn: sqlite3.Connection, sql: str, params: Iterable[Any] = (), *, commit: bool = True) -> int:
    """Like x(), but returns the number of affected rows (for guarded UPDATE/DELETE)."""
    cur = conn.execute(sql, tuple(params))
    if commit:
        conn.commit()
    n = cur.rowcount
    cur.close()
    return int(n)
