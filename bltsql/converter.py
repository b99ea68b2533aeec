"""YAML instance-data compiler.

Each ``.yml`` file describes rows for one target::

    table: users
    rows:
      - id: user-001
        email: admin@example.com
        active: true
        props: {}

``function: <name>`` or ``procedure: <name>`` in place of ``table:`` turns
every row into a ``SELECT``/``CALL`` instead of an upsert.

Per file the pipeline is: detect target -> extract rows -> substitute
environment variables -> generate SQL -> write ``<basename>.sql`` next to
the hand-written SQL files.  A file that cannot be processed is logged and
recorded as an error result; the remaining files are still processed.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Any, Dict, List, Mapping, NamedTuple, Optional

import yaml

from ._constants import TARGET_PATTERNS, YAML_SUFFIX
from ._io import atomic_write, read_text
from .envsubst import process_env_vars
from .statements import rows_to_sql

logger = logging.getLogger(__name__)


class Target(NamedTuple):
    kind: str
    name: str


class YamlFile(NamedTuple):
    name: str
    path: str
    source: str


# ── loading ──────────────────────────────────────────────────────────────────


class _RowLoader(yaml.SafeLoader):
    """SafeLoader resolving plain scalars by the YAML 1.2 core schema.

    Dates stay text, only true/false are booleans, and numbers have no
    sexagesimal (``10:30``) or leading-zero octal (``0123``) forms.
    """


_REPLACED_TAGS = (
    "tag:yaml.org,2002:timestamp",
    "tag:yaml.org,2002:bool",
    "tag:yaml.org,2002:int",
    "tag:yaml.org,2002:float",
)

_RowLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag not in _REPLACED_TAGS]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
_RowLoader.add_implicit_resolver(
    "tag:yaml.org,2002:bool",
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)
_RowLoader.add_implicit_resolver(
    "tag:yaml.org,2002:int",
    re.compile(r"^(?:[-+]?[0-9]+|0o[0-7]+|0x[0-9a-fA-F]+)$"),
    list("-+0123456789"),
)
_RowLoader.add_implicit_resolver(
    "tag:yaml.org,2002:float",
    re.compile(
        r"""^(?:[-+]?(?:\.[0-9]+|[0-9]+(?:\.[0-9]*)?)(?:[eE][-+]?[0-9]+)?
        |[-+]?\.(?:inf|Inf|INF)
        |\.(?:nan|NaN|NAN))$""",
        re.X,
    ),
    list("-+0123456789."),
)


def _construct_int(loader: yaml.SafeLoader, node: yaml.ScalarNode) -> int:
    value = loader.construct_scalar(node)
    if value[:2] in ("0x", "0o"):
        return int(value, 0)
    # Leading zeros are decimal.
    return int(value, 10)


_RowLoader.add_constructor("tag:yaml.org,2002:int", _construct_int)


def load_yaml(text: str) -> Any:
    """Parse *text*; raises ``yaml.YAMLError`` on malformed input."""
    return yaml.load(text, Loader=_RowLoader)


def extract_rows(data: Any) -> List[Any]:
    """Return the row sequence from already-parsed YAML *data*.

    Accepts a bare list, a mapping with a ``rows`` list, or a single
    mapping (wrapped as one row).  Anything else yields ``[]``.
    """
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        rows = data.get("rows")
        if isinstance(rows, list):
            return rows
        return [data]
    return []


def parse_yaml_rows(text: str) -> List[Any]:
    """Load *text* and extract its rows."""
    return extract_rows(load_yaml(text))


def detect_target(text: str) -> Optional[Target]:
    """Classify raw YAML *text* by its ``function:``/``procedure:``/``table:`` line.

    ``function`` beats ``procedure`` beats ``table`` when several are
    present.  Returns ``None`` when no marker is found.
    """
    for kind, pattern in TARGET_PATTERNS:
        m = pattern.search(text)
        if m:
            return Target(kind, m.group(1).strip())
    return None


def yaml_to_sql(
    text: str,
    name: str,
    kind: str = "table",
    env: Optional[Mapping[str, str]] = None,
) -> str:
    """Compile YAML *text* into SQL for target *name* of type *kind*."""
    rows = parse_yaml_rows(text)
    rows = [process_env_vars(row, env) for row in rows]
    return rows_to_sql(rows, name, kind)


# ── directory processing ────────────────────────────────────────────────────


def _list_yaml(directory: str) -> List[str]:
    return sorted(f for f in os.listdir(directory) if f.endswith(YAML_SUFFIX))


def find_yaml_files(sql_dir: str) -> List[YamlFile]:
    """Return YAML files for *sql_dir*.

    The sibling ``../yaml`` directory is listed first, then *sql_dir*
    itself; a name already found in the sibling directory is not repeated.
    """
    yaml_dir = os.path.join(sql_dir, os.pardir, "yaml")
    files: List[YamlFile] = []
    seen = set()

    if os.path.isdir(yaml_dir):
        for name in _list_yaml(yaml_dir):
            files.append(YamlFile(name, os.path.join(yaml_dir, name), "subdir"))
            seen.add(name)

    for name in _list_yaml(sql_dir):
        if name not in seen:
            files.append(YamlFile(name, os.path.join(sql_dir, name), "current"))

    return files


def sql_name(yaml_name: str) -> str:
    return yaml_name[: -len(YAML_SUFFIX)] + ".sql"


def process_yaml_file(
    yaml_file: YamlFile,
    sql_dir: str,
    env: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Compile one YAML file into ``sql_dir``.

    Never raises: any failure is logged and returned as an ``error`` result
    so the remaining files of the batch still get compiled.
    """
    result: Dict[str, Any] = {"file": yaml_file.name, "source": yaml_file.source}
    logger.info("Processing YAML file: %s (from %s directory)", yaml_file.name, yaml_file.source)

    try:
        text = read_text(yaml_file.path)
    except (OSError, UnicodeDecodeError) as exc:
        logger.error("Failed to read %s: %s", yaml_file.name, exc)
        result.update(status="error", error=str(exc))
        return result

    target = detect_target(text)
    if target is None:
        msg = "No table, function, or procedure name found"
        logger.error("%s in YAML file: %s", msg, yaml_file.name)
        result.update(status="error", error=msg)
        return result

    sql_file = sql_name(yaml_file.name)
    try:
        rows = parse_yaml_rows(text)
        rows = [process_env_vars(row, env) for row in rows]
        sql = rows_to_sql(rows, target.name, target.kind)
        atomic_write(os.path.join(sql_dir, sql_file), sql)
    except Exception as exc:
        logger.error("Failed to convert %s: %s", yaml_file.name, exc)
        result.update(status="error", error=str(exc))
        return result

    logger.info("Created %s", sql_file)
    result.update(
        status="ok",
        kind=target.kind,
        name=target.name,
        rows=len(rows),
        sql_file=sql_file,
    )
    return result


def process_yaml_files(
    sql_dir: str, env: Optional[Mapping[str, str]] = None,
) -> List[Dict[str, Any]]:
    """Compile every YAML file found for *sql_dir*, in discovery order.

    Returns one result dict per file (``status`` is ``"ok"`` or
    ``"error"``).  Raises ``FileNotFoundError`` if *sql_dir* is missing.
    """
    if not os.path.isdir(sql_dir):
        raise FileNotFoundError(f"SQL directory does not exist: {sql_dir}")
    return [process_yaml_file(f, sql_dir, env) for f in find_yaml_files(sql_dir)]
