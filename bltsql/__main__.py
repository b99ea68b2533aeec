"""CLI entry-point:  python -m bltsql <command> [OPTIONS]

Examples:
    python -m bltsql build schema public
    python -m bltsql build data default -v
    python -m bltsql convert schema/instances/default/sql
    python -m bltsql deploy data
    python -m bltsql show schema --format json
"""

import argparse
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional, Sequence

from .builder import (
    build_data_file,
    build_schema_file,
    get_package_version,
    get_sorted_sql_files,
    write_data_file,
    write_schema_file,
)
from .cleanup import cleanup_generated
from .config import get_paths, load_dotenv
from .converter import process_yaml_files
from .discovery import (
    available_instances,
    available_schemas,
    default_instance_name,
    default_schema_name,
    schema_file_list,
)
from .errors import BltError, SqlExecutionError
from .runner import execute_query, latest_release_file, run_sql_file
from .version import load_version, update_version, version_sql, version_string

logger = logging.getLogger(__name__)

_VERSION_QUERY = (
    "SELECT props FROM settings "
    "WHERE id = '00000000-0000-0000-0000-ffffffffffff' "
    "AND name = 'version' AND kind = 'meta' LIMIT 1"
)


def _fail(message: str, *args: Any) -> None:
    logger.error(message, *args)
    sys.exit(1)


def _log_summary(results: List[Dict[str, Any]]) -> None:
    """Log a human-readable summary of YAML conversion results."""
    errors = []
    total_rows = 0

    logger.info("=" * 72)
    logger.info("CONVERSION SUMMARY")
    logger.info("=" * 72)

    for r in results:
        if r.get("status") == "error":
            errors.append(r)
            logger.error("  %-40s  ERROR: %s", r["file"], r.get("error", "unknown"))
            continue
        total_rows += r["rows"]
        logger.info(
            "  %-40s  %6d row(s) | %-9s | %s -> %s",
            r["file"], r["rows"], r["kind"], r["name"], r["sql_file"],
        )

    logger.info("-" * 72)
    logger.info(
        "Completed: %d file(s) | %d total rows",
        len(results) - len(errors), total_rows,
    )
    if errors:
        logger.warning("Failed: %d file(s)", len(errors))
    logger.info("=" * 72)


def _render_table(headers: Sequence[str], rows: List[Sequence[Any]]) -> str:
    table = [list(headers)] + [[str(c) for c in row] for row in rows]
    widths = [max(len(r[i]) for r in table) for i in range(len(headers))]
    lines = ["| " + " | ".join(c.ljust(w) for c, w in zip(table[0], widths)) + " |"]
    lines.append("|-" + "-|-".join("-" * w for w in widths) + "-|")
    for row in table[1:]:
        lines.append("| " + " | ".join(c.ljust(w) for c, w in zip(row, widths)) + " |")
    return "\n".join(lines)


# ── build ────────────────────────────────────────────────────────────────────


def _cmd_build(args: argparse.Namespace, paths: Dict[str, str]) -> None:
    version = get_package_version()
    if args.target == "schema":
        schema = args.name or default_schema_name(paths["schema_base"])
        sql_dir = os.path.join(paths["schema_base"], schema, "sql")
        if not os.path.isdir(sql_dir):
            _fail("Schema directory does not exist: %s", sql_dir)
        sql_files = get_sorted_sql_files(sql_dir, schema)
        if not sql_files:
            _fail("No SQL files found in schema directory: %s", sql_dir)
        content = build_schema_file(sql_dir, schema, sql_files, version)
        path = write_schema_file(content, schema, paths["dist"])
        logger.info("Schema built successfully: %s", path)
        return

    instance = args.name or default_instance_name(paths["instances_base"])
    instance_dir = os.path.join(paths["instances_base"], instance)
    try:
        content = build_data_file(instance_dir, instance, version)
    except FileNotFoundError as exc:
        _fail("Failed to build data: %s", exc)
    path = write_data_file(content, paths["dist"])
    logger.info("Data generated successfully: %s", path)


def _cmd_convert(args: argparse.Namespace, paths: Dict[str, str]) -> None:
    try:
        results = process_yaml_files(args.sql_dir)
    except FileNotFoundError as exc:
        _fail("%s", exc)
    _log_summary(results)
    for r in results:
        print(json.dumps(r))


# ── deploy ───────────────────────────────────────────────────────────────────


def _cmd_deploy(args: argparse.Namespace, paths: Dict[str, str]) -> None:
    if args.target == "schema":
        schema = args.name or default_schema_name(paths["schema_base"])
        path = os.path.join(paths["dist"], f"{schema}.sql")
        hint = f"bltsql build schema {schema}"
    elif args.target == "data":
        path = os.path.join(paths["dist"], "data.sql")
        instance = args.name or default_instance_name(paths["instances_base"])
        hint = f"bltsql build data {instance}"
    elif args.name:
        path, hint = args.name, None
    else:
        try:
            path = latest_release_file(paths["dist"]).path
        except FileNotFoundError as exc:
            _fail("%s", exc)
        hint = None

    if not os.path.isfile(path):
        _fail("SQL file not found: %s%s", path, f" (run '{hint}' first)" if hint else "")

    try:
        run_sql_file(path)
    except SqlExecutionError as exc:
        _fail("Error executing SQL:\n%s", exc.describe())
    logger.info("Deployed %s", path)


# ── show ─────────────────────────────────────────────────────────────────────


def _cmd_show(args: argparse.Namespace, paths: Dict[str, str]) -> None:
    if args.what == "schemas":
        print("\n".join(available_schemas(paths["schema_base"])))
    elif args.what == "instances":
        print("\n".join(available_instances(paths["instances_base"])))
    elif args.what == "schema":
        schema = args.name or default_schema_name(paths["schema_base"])
        try:
            files = schema_file_list(paths["schema_base"], schema)
        except FileNotFoundError as exc:
            _fail("%s", exc)
        if args.format == "json":
            print(json.dumps(files, indent=2))
        else:
            print(_render_table(
                ["Name", "Size", "Created At", "Last Modified"],
                [[f["name"], f["size"], f["created_at"], f["last_modified"]] for f in files],
            ))
    elif args.what == "rows":
        rows = execute_query("SELECT * FROM get_row_counts()")
        if not rows:
            print("No tables found in the database.")
            return
        print(_render_table(
            ["Table Name", "Row Count"],
            [[r["table_name"], f"{int(r['row_count']):,}"] for r in rows],
        ))
        total = sum(int(r["row_count"]) for r in rows)
        print(f"Total rows across all tables: {total:,}")
    else:
        rows = execute_query(_VERSION_QUERY)
        if not rows:
            _fail("Version record not found in settings table. Run 'bltsql version sql' first.")
        print(version_string(rows[0]["props"], args.style))


# ── cleanup / version ────────────────────────────────────────────────────────


def _cmd_cleanup(args: argparse.Namespace, paths: Dict[str, str]) -> None:
    if args.all:
        instances = available_instances(paths["instances_base"])
    elif args.instance:
        instances = [args.instance]
    else:
        instances = [default_instance_name(paths["instances_base"])]
    schemas = available_schemas(paths["schema_base"]) or None
    removed = cleanup_generated(paths["dist"], paths["instances_base"], instances, schemas)
    logger.info("Cleanup complete: %d file(s) removed", len(removed))


def _cmd_version(args: argparse.Namespace, paths: Dict[str, str]) -> None:
    if args.action == "update":
        update_version()
        return
    try:
        info = load_version()
    except FileNotFoundError as exc:
        _fail("%s", exc)
    if args.action == "sql":
        print(version_sql(info))
    else:
        print(version_string(info, args.style))


def _add_style_flags(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--short", dest="style", action="store_const", const="short")
    group.add_argument("--full", dest="style", action="store_const", const="full")
    group.add_argument("--only", dest="style", action="store_const", const="only")
    parser.set_defaults(style="default")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bltsql",
        description="Build, convert and deploy PostgreSQL schema and instance data.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug-level logging",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("build", help="Build the combined schema or data file")
    p.add_argument("target", choices=["schema", "data"])
    p.add_argument("name", nargs="?", help="Schema name (schema) or instance name (data)")
    p.set_defaults(func=_cmd_build)

    p = sub.add_parser("convert", help="Compile the YAML files of one SQL directory")
    p.add_argument("sql_dir", help="Directory receiving the generated .sql files")
    p.set_defaults(func=_cmd_convert)

    p = sub.add_parser("deploy", help="Run a built SQL file against the database")
    p.add_argument("target", choices=["schema", "data", "file"])
    p.add_argument("name", nargs="?", help="Schema/instance name, or a path for 'file'")
    p.set_defaults(func=_cmd_deploy)

    p = sub.add_parser("show", help="Show schemas, instances, files or database state")
    p.add_argument("what", choices=["schema", "schemas", "instances", "rows", "db"])
    p.add_argument("name", nargs="?", help="Schema name (for 'schema')")
    p.add_argument("--format", choices=["table", "json"], default="table")
    _add_style_flags(p)
    p.set_defaults(func=_cmd_show)

    p = sub.add_parser("cleanup", help="Remove generated SQL files")
    g = p.add_mutually_exclusive_group()
    g.add_argument("--instance", help="Only clean this instance")
    g.add_argument("--all", action="store_true", help="Clean every instance")
    p.set_defaults(func=_cmd_cleanup)

    p = sub.add_parser("version", help="Manage version.json")
    p.add_argument("action", choices=["update", "string", "sql"])
    _add_style_flags(p)
    p.set_defaults(func=_cmd_version)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    load_dotenv()

    try:
        args.func(args, get_paths())
    except BltError as exc:
        _fail("%s failed: %s", args.command, exc)


if __name__ == "__main__":
    main()
