"""Execute built SQL artifacts against PostgreSQL.

Provides :class:`PostgresConnection`, a connection wrapper with
context-manager support, plus :func:`run_sql_file` and
:func:`execute_query`.

The connection string comes from ``DATABASE_URL`` (or ``SUPABASE_DB_URL``)
unless passed explicitly.  Scripts are sent as a single ``execute`` call on
one connection, the way ``psql -f`` would run them, and committed on
success.
"""

from __future__ import annotations

import logging
import os
import re
from types import TracebackType
from typing import Any, Dict, List, NamedTuple, Optional, Type

import psycopg2

from ._io import read_text
from .config import database_url
from .errors import DatabaseConnectionError, SqlExecutionError

logger = logging.getLogger(__name__)

_RELEASE_FILE = re.compile(r"bltcore-v(\d+)\.(\d+)\.(\d+)\.sql$")
_CONTEXT_BEFORE = 3
_CONTEXT_AFTER = 2


class SqlFile(NamedTuple):
    name: str
    version: str
    path: str


class PostgresConnection:
    """Managed connection to a PostgreSQL database.

    Usage as a context manager::

        with PostgresConnection("postgresql://u:p@localhost/db") as conn:
            cur = conn.cursor()
            cur.execute("SELECT 1")
    """

    def __init__(self, url: Optional[str] = None) -> None:
        self._url = url
        self._conn: Optional[Any] = None

    @property
    def url(self) -> str:
        """The connection string (raises ``ConfigError`` if none is configured)."""
        return self._url or database_url()

    def connect(self) -> Any:
        """Open and return a ``psycopg2`` connection (reused until :meth:`close`)."""
        if self._conn is not None:
            return self._conn
        logger.debug("Connecting to database")
        try:
            self._conn = psycopg2.connect(self.url)
        except psycopg2.OperationalError as exc:
            raise DatabaseConnectionError(f"Could not connect to database: {exc}") from exc
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
            logger.debug("Database connection closed")

    def test_connectivity(self) -> bool:
        """Run ``SELECT 1`` and return ``True`` on success, ``False`` on failure."""
        try:
            cur = self.connect().cursor()
            cur.execute("SELECT 1")
            cur.fetchone()
            return True
        except psycopg2.Error:
            return False

    def __enter__(self) -> Any:
        return self.connect()

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType],
    ) -> None:
        self.close()


def latest_release_file(dist_path: str) -> SqlFile:
    """Return the ``bltcore-vX.Y.Z.sql`` file in *dist_path* with the highest version."""
    if not os.path.isdir(dist_path):
        raise FileNotFoundError(f"Dist directory does not exist: {dist_path}")
    found = []
    for name in os.listdir(dist_path):
        m = _RELEASE_FILE.match(name)
        if m:
            key = tuple(int(p) for p in m.groups())
            found.append((key, SqlFile(name, ".".join(m.groups()), os.path.join(dist_path, name))))
    if not found:
        raise FileNotFoundError(f"No release SQL files found in {dist_path}")
    found.sort(key=lambda item: item[0], reverse=True)
    return found[0][1]


def error_location(sql: str, position: int) -> Dict[str, Any]:
    """Translate a 1-based character *position* into line/column and a context excerpt."""
    before = sql[: max(position - 1, 0)]
    line = before.count("\n") + 1
    column = len(before.rsplit("\n", 1)[-1]) + 1
    all_lines = sql.split("\n")
    start = max(0, line - 1 - _CONTEXT_BEFORE)
    end = min(len(all_lines), line + _CONTEXT_AFTER)
    excerpt = []
    for i in range(start, end):
        marker = ">" if i + 1 == line else " "
        excerpt.append(f"{marker} {i + 1:>5} | {all_lines[i]}")
    return {"line": line, "column": column, "context": "\n".join(excerpt)}


def _execution_error(exc: Exception, sql: str, path: Optional[str]) -> SqlExecutionError:
    diag = getattr(exc, "diag", None)
    message = (getattr(diag, "message_primary", None) or str(exc)).strip()
    location: Dict[str, Any] = {}
    position = getattr(diag, "statement_position", None)
    if position:
        location = error_location(sql, int(position))
    return SqlExecutionError(
        message,
        path=path,
        detail=getattr(diag, "message_detail", None),
        hint=getattr(diag, "message_hint", None),
        code=getattr(exc, "pgcode", None),
        **location,
    )


def run_sql(sql: str, url: Optional[str] = None, *, path: Optional[str] = None) -> None:
    """Execute the script *sql* and commit.

    Raises :class:`~bltsql.errors.SqlExecutionError` if the server rejects
    it; the transaction is rolled back and the connection closed either way.
    """
    pg = PostgresConnection(url)
    conn = pg.connect()
    try:
        logger.info("Executing SQL script%s", f" {path}" if path else "")
        try:
            with conn.cursor() as cur:
                cur.execute(sql)
            conn.commit()
        except psycopg2.Error as exc:
            conn.rollback()
            raise _execution_error(exc, sql, path) from exc
        logger.info("SQL script executed successfully")
    finally:
        pg.close()


def run_sql_file(path: str, url: Optional[str] = None) -> None:
    """Read *path* and execute it (see :func:`run_sql`)."""
    if not os.path.isfile(path):
        raise FileNotFoundError(f"SQL file not found: {path}")
    run_sql(read_text(path), url, path=path)


def execute_query(query: str, url: Optional[str] = None) -> List[Dict[str, Any]]:
    """Run *query* and return its rows as dicts keyed by column name."""
    pg = PostgresConnection(url)
    try:
        with pg.connect().cursor() as cur:
            try:
                cur.execute(query)
            except psycopg2.Error as exc:
                raise _execution_error(exc, query, None) from exc
            if cur.description is None:
                return []
            columns = [col[0] for col in cur.description]
            return [dict(zip(columns, row)) for row in cur.fetchall()]
    finally:
        pg.close()
