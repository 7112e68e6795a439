"""
Database connection management for the overall cache.

Every store operation opens its own short-lived connection, so worker
threads never share a connection object. Connections run in autocommit
mode; transactions are opened explicitly with ``transaction()``.

Connection settings:
- WAL mode so readers see a consistent snapshot while a writer commits
- Foreign key enforcement (cascades and SET NULL depend on it)
- busy timeout so concurrent writers queue instead of failing
- dict row factory
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from overall.core.store.schema import create_schema, needs_migration

BUSY_TIMEOUT_SECONDS = 30.0


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """
    Row factory that returns rows as dictionaries.

    Example:
        >>> conn = sqlite3.connect(":memory:")
        >>> conn.row_factory = dict_factory
        >>> conn.execute("SELECT 1 AS one").fetchone()
        {'one': 1}
    """
    fields = [column[0] for column in cursor.description]
    return dict(zip(fields, row))


def configure_connection(conn: sqlite3.Connection) -> None:
    """Apply WAL, foreign keys and the dict row factory to a connection."""
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    conn.row_factory = dict_factory


def connect(db_path: Path | str) -> sqlite3.Connection:
    """Open a configured autocommit connection."""
    conn = sqlite3.connect(
        str(db_path),
        timeout=BUSY_TIMEOUT_SECONDS,
        isolation_level=None,
        check_same_thread=False,
    )
    configure_connection(conn)
    return conn


def init_db(db_path: Path | str) -> None:
    """
    Create the database file and schema if needed.

    Args:
        db_path: Path to the SQLite database file
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    conn = connect(db_path)
    try:
        if needs_migration(conn):
            create_schema(conn)
    finally:
        conn.close()


@contextmanager
def get_connection(db_path: Path | str) -> Iterator[sqlite3.Connection]:
    """
    Get a database connection as a context manager.

    The database is initialized on first use and the connection is
    closed when the context exits.
    """
    db_path = Path(db_path)
    if not db_path.exists():
        init_db(db_path)

    conn = connect(db_path)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transaction(conn: sqlite3.Connection, *, immediate: bool = True) -> Iterator[sqlite3.Connection]:
    """
    Run a block inside one transaction.

    Commits on success and rolls back on any exception. Write
    transactions start with ``BEGIN IMMEDIATE`` so the write lock is
    taken up front; read transactions use a deferred ``BEGIN`` and see a
    single snapshot for their whole duration.

    Example:
        >>> with get_connection(path) as conn, transaction(conn):
        ...     conn.execute("DELETE FROM branches WHERE repo_id = ?", ("octo/widgets",))
    """
    conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
    try:
        yield conn
    except BaseException:
        if conn.in_transaction:
            conn.execute("ROLLBACK")
        raise
    else:
        conn.execute("COMMIT")
