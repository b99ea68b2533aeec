"""Turn extracted rows into SQL text.

All statement-building logic lives here so it can be tested independently
of YAML parsing and file I/O.

* table      -> one ``INSERT ... ON CONFLICT (<first column>) DO UPDATE``
* function   -> one ``SELECT fn(...);`` per row
* procedure  -> one ``CALL proc(...);`` per row

The conflict key is the first key of the first row.  The column list is
taken from that row too; later rows are read with the same keys.
"""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from ._constants import GENERATED_HEADER, NO_ROWS, VALID_TARGET_KINDS
from .errors import ConversionError
from .formatting import format_number, format_param, to_sql_literal

Row = Dict[str, Any]


def _check_rows(rows: Sequence[Any]) -> None:
    for idx, row in enumerate(rows):
        if not isinstance(row, dict):
            raise ConversionError(
                f"row {idx} must be a mapping, got {type(row).__name__}"
            )


def _column_name(key: Any) -> str:
    # YAML allows non-string keys (``2024: x``); columns are always text.
    if isinstance(key, str):
        return key
    if key is None:
        return "null"
    if isinstance(key, bool):
        return "true" if key else "false"
    if isinstance(key, (int, float)):
        return format_number(key)
    return str(key)


def _normalize_keys(row: Row) -> Row:
    return {_column_name(k): v for k, v in row.items()}


def generate_insert(rows: Sequence[Row], table_name: str) -> str:
    """Return an upsert for *rows* into *table_name*."""
    columns = list(rows[0].keys())
    if not columns:
        raise ConversionError(f"first row for table {table_name!r} has no columns")
    conflict_column = columns[0]
    update_columns = columns[1:]

    value_rows = [
        "(" + ", ".join(to_sql_literal(row.get(col), col) for col in columns) + ")"
        for row in rows
    ]

    lines = [
        GENERATED_HEADER,
        f"INSERT INTO {table_name} ({', '.join(columns)}) VALUES",
        ",\n".join(value_rows),
    ]
    if update_columns:
        lines.append(f"ON CONFLICT ({conflict_column}) DO UPDATE SET")
        lines.append(
            ",\n".join(
                f"    {col} = COALESCE(EXCLUDED.{col}, {table_name}.{col})"
                for col in update_columns
            )
            + ";"
        )
    else:
        lines.append(f"ON CONFLICT ({conflict_column}) DO NOTHING;")
    return "\n".join(lines)


def _call_statements(rows: Sequence[Row], verb: str, name: str) -> str:
    statements = [
        f"{verb} {name}("
        + ", ".join(format_param(value, col) for col, value in row.items())
        + ");"
        for row in rows
    ]
    return GENERATED_HEADER + "\n" + "\n".join(statements)


def generate_function_calls(rows: Sequence[Row], function_name: str) -> str:
    """Return one ``SELECT function_name(...)`` per row."""
    return _call_statements(rows, "SELECT", function_name)


def generate_procedure_calls(rows: Sequence[Row], procedure_name: str) -> str:
    """Return one ``CALL procedure_name(...)`` per row."""
    return _call_statements(rows, "CALL", procedure_name)


def rows_to_sql(rows: List[Any], name: str, kind: str = "table") -> str:
    """Dispatch *rows* to the generator for *kind*.

    Empty *rows* produce only the ``-- No rows to insert`` comment.
    """
    if kind not in VALID_TARGET_KINDS:
        raise ValueError(
            f"kind must be one of {sorted(VALID_TARGET_KINDS)}, got {kind!r}"
        )
    if not rows:
        return NO_ROWS
    _check_rows(rows)
    rows = [_normalize_keys(row) for row in rows]

    if kind == "function":
        return generate_function_calls(rows, name)
    if kind == "procedure":
        return generate_procedure_calls(rows, name)
    return generate_insert(rows, name)
