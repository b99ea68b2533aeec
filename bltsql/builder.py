"""Assemble numbered SQL files into combined build artifacts.

Two artifacts are produced:

* ``<dist>/<schema>.sql`` -- bootstrap header (drop + recreate the schema)
  followed by every numbered ``.sql``/``.ddl`` file of the schema.
* ``<dist>/data.sql`` -- an instance's YAML compiled to SQL, then every
  numbered ``.sql`` file of the instance.

Files are concatenated in plain lexicographic order; numbering relies on
zero-padded prefixes (``10-000-audit.sql`` before ``10-010-types.sql``).
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from importlib import metadata
from typing import List, Mapping, Optional

from ._constants import (
    DATA_FILENAME,
    DEFAULT_VERSION,
    FILE_NUMBER,
    SCHEMA_SUFFIXES,
)
from ._io import atomic_write, read_text
from .converter import process_yaml_files

logger = logging.getLogger(__name__)

_RULE = "-- " + "=" * 45
_DATA_SEARCH_PATH = "SET search_path = public, auth, extensions;"


def _timestamp(now: Optional[datetime]) -> str:
    return (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")


def get_sorted_sql_files(sql_dir: str, schema_name: str) -> List[str]:
    """Numbered ``.sql``/``.ddl`` files in *sql_dir*, lexicographically sorted.

    Files starting with *schema_name* are skipped so a previously built
    artifact is never folded into the next build.
    """
    return sorted(
        name for name in os.listdir(sql_dir)
        if not name.startswith(schema_name)
        and name.lower().endswith(SCHEMA_SUFFIXES)
        and FILE_NUMBER.search(name)
    )


def generate_sql_header(
    schema_name: str, version: str, now: Optional[datetime] = None,
) -> str:
    """Banner plus the DDL that drops and recreates *schema_name*."""
    lines = [
        _RULE,
        f"-- Database postgres, Schema {schema_name}",
        f"-- v{version} · {_timestamp(now)}",
        _RULE,
        "SELECT current_user, session_user;",
        "--",
        f"SELECT set_config('myvars.version','{version}', false);",
        "SELECT current_setting('myvars.version');",
        _RULE,
        "-- Schema Setup",
        _RULE,
        f"-- CAREFUL: This will drop the {schema_name} schema",
        f"DROP SCHEMA IF EXISTS {schema_name} CASCADE;",
    ]
    if schema_name == "public":
        lines.append("DELETE FROM vault.secrets;")
    lines += [
        f"CREATE SCHEMA IF NOT EXISTS {schema_name} AUTHORIZATION pg_database_owner;",
        "CREATE EXTENSION IF NOT EXISTS pgcrypto;",
        "",
        f"SET search_path = {schema_name}, auth, extensions;",
        "",
    ]
    return "\n".join(lines)


def build_schema_file(
    sql_dir: str,
    schema_name: str,
    sql_files: List[str],
    version: str,
    now: Optional[datetime] = None,
) -> str:
    """Concatenate *sql_files* from *sql_dir* under the schema header."""
    parts = [generate_sql_header(schema_name, version, now)]
    for name in sql_files:
        logger.info("Processing file: %s", name)
        parts.append(f"\n\n-- {name}\nSET search_path = {schema_name}, auth;\n\n")
        parts.append(read_text(os.path.join(sql_dir, name)))
    return "".join(parts)


def write_schema_file(content: str, schema_name: str, dist_path: str) -> str:
    """Write the schema artifact to ``<dist_path>/<schema_name>.sql``."""
    path = os.path.join(dist_path, f"{schema_name}.sql")
    logger.info("Writing schema file to %s", path)
    atomic_write(path, content)
    return path


def _data_header(instance_name: str, version: str, now: Optional[datetime]) -> str:
    return "\n".join([
        _RULE,
        f"-- Instance Data: {instance_name}",
        f"-- v{version} · {_timestamp(now)}",
        _RULE,
        _DATA_SEARCH_PATH,
        "",
    ])


def build_data_file(
    instance_dir: str,
    instance_name: str,
    version: str,
    *,
    env: Optional[Mapping[str, str]] = None,
    now: Optional[datetime] = None,
) -> str:
    """Compile an instance's YAML and concatenate its numbered SQL files.

    ``<instance_dir>/yaml`` is compiled into ``<instance_dir>/sql`` (created
    if needed) before the SQL files are collected.  Raises
    ``FileNotFoundError`` if *instance_dir* does not exist.
    """
    if not os.path.isdir(instance_dir):
        raise FileNotFoundError(f"Instance directory does not exist: {instance_dir}")

    sql_dir = os.path.join(instance_dir, "sql")
    yaml_dir = os.path.join(instance_dir, "yaml")
    content = _data_header(instance_name, version, now)

    if os.path.isdir(yaml_dir):
        os.makedirs(sql_dir, exist_ok=True)
        results = process_yaml_files(sql_dir, env)
        failed = [r for r in results if r["status"] == "error"]
        if failed:
            logger.warning(
                "%d of %d YAML file(s) could not be converted", len(failed), len(results),
            )

    if not os.path.isdir(sql_dir):
        logger.warning("No SQL directory found in instance: %s", instance_dir)
        return content

    sql_files = sorted(
        name for name in os.listdir(sql_dir)
        if name.lower().endswith(".sql") and FILE_NUMBER.search(name)
    )
    if not sql_files:
        logger.warning("No SQL files found in instance sql directory: %s", sql_dir)
        return content

    parts = [content]
    for name in sql_files:
        logger.info("Processing data file: %s", name)
        parts.append(f"\n\n-- {name}\n{_DATA_SEARCH_PATH}\n\n")
        parts.append(read_text(os.path.join(sql_dir, name)))
    return "".join(parts)


def write_data_file(content: str, dist_path: str) -> str:
    """Write the data artifact to ``<dist_path>/data.sql``."""
    path = os.path.join(dist_path, DATA_FILENAME)
    logger.info("Writing data file to %s", path)
    atomic_write(path, content)
    return path


def get_package_version(root: Optional[str] = None) -> str:
    """Version to stamp into artifacts.

    Looks at ``version.json`` and ``package.json`` in *root* (the working
    directory by default), then the installed ``bltsql`` distribution.
    """
    root = root or os.getcwd()
    for name in ("version.json", "package.json"):
        path = os.path.join(root, name)
        if not os.path.isfile(path):
            continue
        try:
            with open(path) as f:
                version = json.load(f).get("version")
        except (OSError, ValueError, AttributeError) as exc:
            logger.debug("Ignoring unreadable %s: %s", path, exc)
            continue
        if version:
            return str(version)
    try:
        return metadata.version("bltsql")
    except metadata.PackageNotFoundError:
        return DEFAULT_VERSION
