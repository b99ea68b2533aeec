"""Exception types raised by bltsql."""

from __future__ import annotations

from typing import Optional


class BltError(Exception):
    """Base class for all bltsql errors."""


class ConversionError(BltError):
    """A YAML document could not be turned into SQL."""


class ConfigError(BltError):
    """Required configuration (paths, connection string) is missing or invalid."""


class SqlExecutionError(BltError):
    """A SQL script failed on the server.

    Carries the location information PostgreSQL reported so callers can
    point at the offending line of the script.
    """

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        line: Optional[int] = None,
        column: Optional[int] = None,
        context: Optional[str] = None,
        detail: Optional[str] = None,
        hint: Optional[str] = None,
        code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.path = path
        self.line = line
        self.column = column
        self.context = context
        self.detail = detail
        self.hint = hint
        self.code = code

    def describe(self) -> str:
        """Multi-line report of everything known about the failure."""
        parts = [str(self)]
        if self.line is not None:
            parts.append(f"Location: line {self.line}, column {self.column}")
        if self.context:
            parts.append(self.context)
        if self.detail:
            parts.append(f"Detail: {self.detail}")
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.code:
            parts.append(f"SQL error code: {self.code}")
        if self.path:
            parts.append(f"File: {self.path}")
        return "\n".join(parts)


class DatabaseConnectionError(BltError):
    """The database could not be reached."""
