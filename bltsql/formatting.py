"""Render semantic row values as PostgreSQL literals and call parameters.

Two destinations exist and use different rules:

* :func:`to_sql_literal` -- a value inside ``INSERT ... VALUES (...)``.
  Arrays get an element type derived from the column name, objects become
  ``json`` literals.
* :func:`format_param` -- an argument of a generated ``SELECT fn(...)`` or
  ``CALL proc(...)``.  Every value carries an explicit cast so overloaded
  functions resolve deterministically.

:func:`to_quoted_param` is the plain variant of the call context where every
value is passed as quoted text.

The only escaping applied to string literals is doubling single quotes.
JSON payloads also double backslashes first.
"""

from __future__ import annotations

import json
import math
from typing import Any, Optional

_ARRAY_TYPES = {
    "perms": "app_perm",
    "roles": "app_role",
}


def escape_string(text: str) -> str:
    """Escape *text* for a single-quoted SQL literal."""
    return text.replace("'", "''")


def format_number(value: Any) -> str:
    """Print a number the way it reads in the source document.

    Integral floats lose their fractional part (``3.0`` -> ``3``).
    """
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    return str(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_integral(value: Any) -> bool:
    if isinstance(value, float):
        return value.is_integer()
    return True


def _is_null_marker(text: str) -> bool:
    return text.upper() == "NULL"


def to_json(value: Any) -> str:
    """Compact JSON text for *value*, escaped for a single-quoted literal."""
    text = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return text.replace("\\", "\\\\").replace("'", "''")


def array_type(column: Optional[str]) -> str:
    """Element type used for an array literal in *column*."""
    return _ARRAY_TYPES.get(column or "", "text")


def _array_item(value: Any) -> str:
    if isinstance(value, str):
        return f"'{escape_string(value)}'"
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if _is_number(value):
        return format_number(value)
    return f"'{to_json(value)}'"


def to_sql_literal(value: Any, column: Optional[str] = None) -> str:
    """Format *value* as a literal for an ``INSERT`` into *column*."""
    if value is None:
        return "NULL"
    if value == "":
        return "'{}'::json" if column == "props" else "NULL"
    if isinstance(value, str):
        return "NULL" if _is_null_marker(value) else f"'{escape_string(value)}'"
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if _is_number(value):
        return format_number(value)
    if isinstance(value, list):
        items = ", ".join(_array_item(v) for v in value)
        return f"ARRAY[{items}]::{array_type(column)}[]"
    if isinstance(value, dict):
        if not value:
            return "'{}'::json"
        return f"'{to_json(value)}'::json"
    return f"'{escape_string(str(value))}'"


def to_quoted_param(value: Any) -> str:
    """Format *value* as a single-quoted text parameter."""
    if value is None:
        return "'NULL'"
    if isinstance(value, str):
        return "'NULL'" if _is_null_marker(value) else f"'{escape_string(value)}'"
    if isinstance(value, bool):
        return "'TRUE'" if value else "'FALSE'"
    if _is_number(value):
        return f"'{format_number(value)}'"
    if isinstance(value, (list, dict)):
        return f"'{to_json(value)}'"
    return f"'{escape_string(str(value))}'"


def _wants_integer(column: Optional[str]) -> bool:
    if not column:
        return False
    return "order" in column or ("id" in column and "uuid" not in column)


def format_param(value: Any, column: Optional[str] = None) -> str:
    """Format *value* as a typed, cast parameter for a function/procedure call.

    Objects become ``jsonb_build_object(...)`` with each value formatted by
    the same rules; nested values get no column hint.
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "TRUE::BOOLEAN" if value else "FALSE::BOOLEAN"
    if _is_number(value):
        text = format_number(value)
        if _wants_integer(column) or _is_integral(value):
            return f"{text}::INTEGER"
        return f"{text}::NUMERIC"
    if isinstance(value, dict):
        pairs = ", ".join(
            f"'{escape_string(str(k))}', {format_param(v)}" for k, v in value.items()
        )
        return f"jsonb_build_object({pairs})::JSONB"
    if isinstance(value, list):
        return f"'{to_json(value)}'::JSONB"
    if isinstance(value, str):
        if _is_null_marker(value):
            return "NULL"
        return f"'{escape_string(value)}'::TEXT"
    return f"'{escape_string(str(value))}'::TEXT"
