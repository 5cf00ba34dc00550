"""
Database connection management.

Provides SQLite connections for account and chat persistence.
"""

import sqlite3
from contextlib import contextmanager
from typing import Iterator

DEFAULT_DB_PATH = "multi_ai_hub.db"


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Open a connection with foreign keys enabled and name-addressable rows."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def transaction(db_path: str = DEFAULT_DB_PATH) -> Iterator[sqlite3.Connection]:
    """Yield a connection whose writes commit together or not at all.

    Args:
        db_path: Path to SQLite database file

    Yields:
        Open connection; committed on success, rolled back on any error
    """
    conn = get_connection(db_path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
