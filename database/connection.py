"""
Database connection and statement execution.

DatabaseConnection is the database collaborator the request dispatcher talks
to. It exposes parameterized execution through a small fluent interface:

    rows = db.query("SELECT * FROM `users` WHERE `id` = ?").bind([5]).fetch()
    row = db.query(sql).bind(params).single()
    affected = db.query(sql).bind(params).execute()
"""
import os
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from logging_helper import LoggingHelper, LogType

# Get logger instance
logger = LoggingHelper.get_logger(LogType.MAIN)

DEFAULT_DB_PATH = Path(os.getenv('DATATABLES_DB_PATH', 'data/datatables.db'))
MEMORY_DB = ':memory:'


class Statement:
    """
    One SQL statement bound to a connection.

    Nothing touches the database until execute(), fetch() or single() is called.
    Every call runs under the connection lock and commits immediately
    (single-statement autocommit).
    """

    def __init__(self, connection: 'DatabaseConnection', sql: str):
        self._connection = connection
        self._sql = sql
        self._params: List[Any] = []
        self.last_insert_id: Optional[int] = None

    @property
    def sql(self) -> str:
        return self._sql

    @property
    def params(self) -> List[Any]:
        return list(self._params)

    def bind(self, params: Optional[Sequence[Any]]) -> 'Statement':
        """
        Bind positional parameters for the ? placeholders.

        Returns:
            Self for method chaining
        """
        self._params = list(params or [])
        return self

    def execute(self) -> int:
        """
        Run a write statement.

        Returns:
            Number of rows affected
        """
        affected, self.last_insert_id = self._connection._run_write(self._sql, self._params)
        return affected

    def fetch(self) -> List[Dict[str, Any]]:
        """Run a query and return all rows as dictionaries."""
        return self._connection._run_read(self._sql, self._params)

    def single(self) -> Optional[Dict[str, Any]]:
        """Run a query and return the first row as a dictionary, or None."""
        rows = self._connection._run_read(self._sql, self._params, limit_one=True)
        return rows[0] if rows else None


class DatabaseConnection:
    """Manages the SQLite connection used by every table."""

    def __init__(self, db_path: Union[str, Path] = DEFAULT_DB_PATH) -> None:
        if str(db_path) == MEMORY_DB:
            self.db_path = MEMORY_DB
        else:
            # Resolve to absolute path and normalize
            self.db_path = Path(os.path.abspath(db_path)).resolve()
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(
            self.db_path,
            check_same_thread=False,
            isolation_level=None,  # autocommit: one statement, one transaction
        )
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()

        self._configure()

    def _configure(self) -> None:
        """Set SQLite pragmas for durability and concurrency."""
        with self._lock:
            try:
                if self.db_path != MEMORY_DB:
                    self._conn.execute("PRAGMA journal_mode=WAL;")
                self._conn.execute("PRAGMA synchronous=NORMAL;")
                self._conn.execute("PRAGMA busy_timeout=5000;")
                self._conn.execute("PRAGMA foreign_keys=ON;")
            except sqlite3.DatabaseError as exc:
                logger.error(f"Failed to configure SQLite database: {exc}")

    def query(self, sql: str) -> Statement:
        """Prepare a statement; bind parameters before executing it."""
        return Statement(self, sql)

    def executescript(self, script: str) -> None:
        """Run a trusted multi-statement script (schema setup, fixtures)."""
        with self._lock:
            self._conn.executescript(script)

    def _run_write(self, sql: str, params: List[Any]) -> Tuple[int, Optional[int]]:
        with self._lock:
            logger.debug(f"SQL write: {sql} | {len(params)} params")
            cursor = self._conn.execute(sql, params)
            return cursor.rowcount, cursor.lastrowid

    def _run_read(self, sql: str, params: List[Any], limit_one: bool = False) -> List[Dict[str, Any]]:
        with self._lock:
            logger.debug(f"SQL read: {sql} | {len(params)} params")
            cursor = self._conn.execute(sql, params)
            if limit_one:
                row = cursor.fetchone()
                return [dict(row)] if row else []
            return [dict(row) for row in cursor.fetchall()]

    def close(self) -> None:
        with self._lock:
            self._conn.close()
