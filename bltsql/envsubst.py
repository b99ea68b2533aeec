"""Environment-variable substitution for row values.

Three placeholder styles are recognised, applied one after another to every
string::

    ${NAME}   any characters up to the closing brace
    {NAME}    upper-case identifiers only
    $NAME     identifiers, case-insensitive

A placeholder whose variable is not set is left exactly as written so the
generated SQL shows which configuration is missing.  Lookups go through an
injectable mapping (``os.environ`` by default).
"""

from __future__ import annotations

import os
import re
from typing import Any, Mapping, Optional

_BRACED = re.compile(r"\$\{([^}]+)\}")
_BARE_BRACES = re.compile(r"\{([A-Z_][A-Z0-9_]*)\}")
_DOLLAR = re.compile(r"\$([A-Z_][A-Z0-9_]*)", re.IGNORECASE)

_PATTERNS = (_BRACED, _BARE_BRACES, _DOLLAR)


def substitute_env_vars(text: str, env: Optional[Mapping[str, str]] = None) -> str:
    """Replace ``${VAR}``, ``{VAR}`` and ``$VAR`` in *text* from *env*."""
    if env is None:
        env = os.environ

    def _repl(m: "re.Match[str]") -> str:
        name = m.group(1)
        if name in env:
            return env[name]
        return m.group(0)

    for pattern in _PATTERNS:
        text = pattern.sub(_repl, text)
    return text


def process_env_vars(value: Any, env: Optional[Mapping[str, str]] = None) -> Any:
    """Recursively substitute environment variables in every string leaf.

    Lists and dicts are rebuilt with the same order and keys; numbers,
    booleans and ``None`` are returned unchanged.
    """
    if env is None:
        env = os.environ
    if isinstance(value, str):
        return substitute_env_vars(value, env)
    if isinstance(value, list):
        return [process_env_vars(v, env) for v in value]
    if isinstance(value, dict):
        return {k: process_env_vars(v, env) for k, v in value.items()}
    return value
