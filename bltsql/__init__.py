"""bltsql -- compile YAML instance data to PostgreSQL and assemble schema builds."""

from .builder import build_data_file, build_schema_file, get_sorted_sql_files
from .config import BltConfig, load_config
from .converter import (
    Target,
    detect_target,
    find_yaml_files,
    parse_yaml_rows,
    process_yaml_files,
    yaml_to_sql,
)
from .envsubst import process_env_vars, substitute_env_vars
from .formatting import format_param, to_quoted_param, to_sql_literal
from .statements import rows_to_sql

__all__ = [
    "BltConfig",
    "load_config",
    "Target",
    "detect_target",
    "parse_yaml_rows",
    "yaml_to_sql",
    "find_yaml_files",
    "process_yaml_files",
    "substitute_env_vars",
    "process_env_vars",
    "to_sql_literal",
    "to_quoted_param",
    "format_param",
    "rows_to_sql",
    "get_sorted_sql_files",
    "build_schema_file",
    "build_data_file",
]
