"""Schema and instance discovery.

Layout::

    <schema_base>/<schema>/sql/*.sql        hand-written DDL, numbered
    <instances_base>/<instance>/yaml/*.yml  instance data
    <instances_base>/<instance>/sql/*.sql   instance SQL (incl. generated)
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List

from ._constants import DEFAULT_INSTANCE_NAME, DEFAULT_SCHEMA_NAME

logger = logging.getLogger(__name__)


def available_schemas(schema_base: str) -> List[str]:
    """Sorted names of sub-directories of *schema_base* that contain ``sql/``."""
    if not os.path.isdir(schema_base):
        return []
    return sorted(
        name for name in os.listdir(schema_base)
        if os.path.isdir(os.path.join(schema_base, name, "sql"))
    )


def default_schema_name(schema_base: str) -> str:
    """``public`` if present, else the first available schema, else ``public``."""
    schemas = available_schemas(schema_base)
    if DEFAULT_SCHEMA_NAME in schemas or not schemas:
        return DEFAULT_SCHEMA_NAME
    return schemas[0]


def available_instances(instances_base: str) -> List[str]:
    """Sorted names of sub-directories of *instances_base*."""
    if not os.path.isdir(instances_base):
        return []
    return sorted(
        name for name in os.listdir(instances_base)
        if os.path.isdir(os.path.join(instances_base, name))
    )


def default_instance_name(instances_base: str) -> str:
    """``default`` if present, else the first available instance, else ``default``."""
    instances = available_instances(instances_base)
    if DEFAULT_INSTANCE_NAME in instances or not instances:
        return DEFAULT_INSTANCE_NAME
    return instances[0]


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def schema_file_list(schema_base: str, schema_name: str) -> List[Dict[str, Any]]:
    """Return name, size and timestamps for each ``.sql`` file of a schema.

    Raises ``FileNotFoundError`` if the schema's ``sql`` directory is missing.
    """
    sql_dir = os.path.join(schema_base, schema_name, "sql")
    if not os.path.isdir(sql_dir):
        raise FileNotFoundError(f"Schema directory does not exist: {sql_dir}")
    files = []
    for name in sorted(os.listdir(sql_dir)):
        if not name.lower().endswith(".sql"):
            continue
        st = os.stat(os.path.join(sql_dir, name))
        files.append({
            "name": name,
            "size": st.st_size,
            "created_at": _iso(st.st_ctime),
            "last_modified": _iso(st.st_mtime),
        })
    return files
