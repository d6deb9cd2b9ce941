"""
Database connection management.

Provides SQLite connection for price history persistence.
"""

import sqlite3
from pathlib import Path

DEFAULT_DB_PATH = "token_costs.db"


def get_connection(db_path: str = DEFAULT_DB_PATH) -> sqlite3.Connection:
    """Create and return a SQLite database connection with foreign keys enabled.

    The connection runs in autocommit mode so callers control transaction
    boundaries explicitly with BEGIN / COMMIT.

    Args:
        db_path: Path to SQLite database file

    Returns:
        SQLite connection with foreign key constraints enabled
    """
    path = Path(db_path)
    conn = sqlite3.connect(str(path), isolation_level=None)
    conn.execute("PRAGMA foreign_keys = ON")
    return conn
