"""Shared fixtures for bltsql tests."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import pytest


class FakeCursor:
    """Lightweight stand-in for a psycopg2 cursor.

    Supply ``rows`` and ``description`` for the single ``execute()`` call,
    or ``error`` to make ``execute()`` raise.
    """

    def __init__(
        self,
        rows: Optional[List[Tuple[Any, ...]]] = None,
        description: Optional[List[Tuple[str, ...]]] = None,
        error: Optional[BaseException] = None,
    ) -> None:
        self._rows = list(rows or [])
        self._description = description
        self._error = error
        self.description: Optional[List[Tuple[str, ...]]] = None
        self.executed: List[str] = []

    def execute(self, sql: str, params: Any = None) -> None:
        self.executed.append(sql)
        if self._error is not None:
            raise self._error
        self.description = self._description

    def fetchall(self) -> List[Tuple[Any, ...]]:
        return self._rows

    def fetchone(self) -> Optional[Tuple[Any, ...]]:
        return self._rows[0] if self._rows else None

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, *exc: Any) -> None:
        return None


@pytest.fixture()
def fake_cursor():
    """Return the ``FakeCursor`` *class* so tests can instantiate with custom data."""
    return FakeCursor


@pytest.fixture()
def fake_conn():
    """Build a ``MagicMock`` connection whose ``cursor()`` returns *cursor*."""

    def _make(cursor: FakeCursor) -> MagicMock:
        conn = MagicMock()
        conn.cursor.return_value = cursor
        return conn

    return _make


@pytest.fixture()
def instance_tree(tmp_path):
    """Create ``<tmp>/instances/<name>/{yaml,sql}`` from dicts of file contents."""

    def _make(
        name: str = "default",
        yaml_files: Optional[Dict[str, str]] = None,
        sql_files: Optional[Dict[str, str]] = None,
    ):
        inst = tmp_path / "instances" / name
        inst.mkdir(parents=True)
        if yaml_files is not None:
            (inst / "yaml").mkdir()
            for fname, text in yaml_files.items():
                (inst / "yaml" / fname).write_text(text)
        if sql_files is not None:
            (inst / "sql").mkdir()
            for fname, text in sql_files.items():
                (inst / "sql" / fname).write_text(text)
        return inst

    return _make
