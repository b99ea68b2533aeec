"""``version.json`` build metadata.

The file records the component version together with runtime and git
information::

    {
      "component": "data",
      "version": "1.4.0",
      "runtime": {"type": "python", "version": "3.12.1"},
      "build": {"commit": "...", "branch": "main", "time": "2026-01-01T00:00:00Z"},
      "metadata": {"packageManager": "pip", "packageManagerVersion": "24.0"}
    }
"""

from __future__ import annotations

import json
import logging
import os
import platform
import subprocess
from datetime import datetime, timezone
from importlib import metadata
from typing import Any, Dict, Optional

from ._constants import DEFAULT_VERSION
from ._io import atomic_write
from .formatting import escape_string

logger = logging.getLogger(__name__)

VERSION_FILENAME = "version.json"
SETTINGS_VERSION_ID = "00000000-0000-0000-0000-ffffffffffff"


def _git(root: str, *args: str) -> str:
    try:
        out = subprocess.run(
            ["git", *args], cwd=root, capture_output=True, text=True, check=True,
        )
    except (OSError, subprocess.CalledProcessError):
        return ""
    return out.stdout.strip()


def _pip_version() -> str:
    try:
        return metadata.version("pip")
    except metadata.PackageNotFoundError:
        return ""


def _read_json(path: str) -> Optional[Dict[str, Any]]:
    if not os.path.isfile(path):
        return None
    try:
        with open(path) as f:
            data = json.load(f)
    except ValueError as exc:
        logger.warning("Ignoring invalid %s: %s", path, exc)
        return None
    return data if isinstance(data, dict) else None


def _project_info(root: str) -> Dict[str, Any]:
    """Name and version from ``package.json`` in *root*, falling back to the directory."""
    package = _read_json(os.path.join(root, "package.json")) or {}
    name = package.get("name") or os.path.basename(os.path.abspath(root)) or "unknown"
    return {
        "component": name.rsplit("/", 1)[-1],
        "version": package.get("version") or DEFAULT_VERSION,
    }


def update_version(root: Optional[str] = None) -> Dict[str, Any]:
    """Refresh ``<root>/version.json`` with current runtime and git details.

    Fields other than the refreshed ones (e.g. ``buildnum``) are kept.
    """
    root = root or os.getcwd()
    path = os.path.join(root, VERSION_FILENAME)
    project = _project_info(root)
    info = _read_json(path) or {"component": project["component"]}

    info["version"] = project["version"]
    info["runtime"] = {
        "type": platform.python_implementation().lower(),
        "version": platform.python_version(),
    }
    info["build"] = {
        **info.get("build", {}),
        "commit": _git(root, "rev-parse", "HEAD"),
        "branch": _git(root, "rev-parse", "--abbrev-ref", "HEAD"),
        "time": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
    }
    info["metadata"] = {
        "packageManager": "pip",
        "packageManagerVersion": _pip_version(),
    }
    atomic_write(path, json.dumps(info, indent=2) + "\n")
    logger.info("Updated %s", path)
    return info


def load_version(root: Optional[str] = None) -> Dict[str, Any]:
    """Read ``<root>/version.json``; raises ``FileNotFoundError`` if absent."""
    root = root or os.getcwd()
    path = os.path.join(root, VERSION_FILENAME)
    info = _read_json(path)
    if info is None:
        raise FileNotFoundError(
            f"{VERSION_FILENAME} not found in {root}. Run 'bltsql version update' first."
        )
    return info


def version_string(info: Dict[str, Any], style: str = "default") -> str:
    """Format *info* for display.

    Styles: ``default`` (short commit), ``short``, ``full`` (whole commit
    hash) and ``only`` (build number alone).
    """
    build = info.get("build", {})
    buildnum = str(info.get("buildnum", ""))
    head = f"{info.get('component', '')} v{info.get('version', '')} {buildnum}".rstrip()
    if style == "full":
        return f"{head} - {build.get('branch', '')} hash({build.get('commit', '')})"
    if style == "short":
        return head
    if style == "only":
        return buildnum
    return f"{head} - {build.get('branch', '')} ({build.get('commit', '')[:7]})"


def version_sql(info: Dict[str, Any]) -> str:
    """Upsert statement storing *info* in the ``settings`` table."""
    props = escape_string(json.dumps(info, separators=(",", ":")))
    return (
        "INSERT INTO settings (id, name, kind, props) VALUES\n"
        f"('{SETTINGS_VERSION_ID}', 'version', 'meta', '{props}'::jsonb)\n"
        "ON CONFLICT (id) DO UPDATE SET\n"
        "    name = COALESCE(EXCLUDED.name, settings.name),\n"
        "    kind = COALESCE(EXCLUDED.kind, settings.kind),\n"
        "    props = COALESCE(EXCLUDED.props, settings.props);"
    )
