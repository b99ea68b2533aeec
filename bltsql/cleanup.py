"""Remove generated build artifacts."""

from __future__ import annotations

import logging
import os
from typing import Iterable, List, Optional

from ._constants import DATA_FILENAME, DEFAULT_SCHEMA_NAME
from .converter import find_yaml_files, sql_name

logger = logging.getLogger(__name__)


def _remove(path: str, removed: List[str]) -> None:
    os.remove(path)
    removed.append(path)
    logger.info("Removed %s", path)


def cleanup_instance(instance_dir: str) -> List[str]:
    """Delete the ``.sql`` files compiled from an instance's YAML.

    Hand-written SQL next to them is left alone.  The ``sql/`` directory is
    removed when nothing else remains in it.
    """
    removed: List[str] = []
    sql_dir = os.path.join(instance_dir, "sql")
    if not os.path.isdir(sql_dir):
        return removed
    for yaml_file in find_yaml_files(sql_dir):
        path = os.path.join(sql_dir, sql_name(yaml_file.name))
        if os.path.isfile(path):
            _remove(path, removed)
    if not os.listdir(sql_dir):
        os.rmdir(sql_dir)
        logger.debug("Removed empty directory %s", sql_dir)
    return removed


def cleanup_generated(
    dist_path: str,
    instances_base: str,
    instances: Iterable[str],
    schema_names: Optional[Iterable[str]] = None,
) -> List[str]:
    """Delete combined artifacts in *dist_path* and compiled instance SQL.

    Returns the files that were removed.
    """
    removed: List[str] = []
    artifacts = [f"{name}.sql" for name in (schema_names or [DEFAULT_SCHEMA_NAME])]
    artifacts.append(DATA_FILENAME)

    for name in artifacts:
        path = os.path.join(dist_path, name)
        if os.path.isfile(path):
            _remove(path, removed)

    for instance in instances:
        removed.extend(cleanup_instance(os.path.join(instances_base, instance)))

    return removed
