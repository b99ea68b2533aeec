"""Shared constants for the bltsql package."""

import re

VALID_TARGET_KINDS = frozenset({"table", "function", "procedure"})

# Checked in this order; the first match wins.
TARGET_PATTERNS = (
    ("function", re.compile(r"^function:\s*(.+)$", re.MULTILINE)),
    ("procedure", re.compile(r"^procedure:\s*(.+)$", re.MULTILINE)),
    ("table", re.compile(r"^table:\s*(.+)$", re.MULTILINE)),
)

FILE_NUMBER = re.compile(r"\d+")

GENERATED_HEADER = "-- Generated from JSON data"
NO_ROWS = "-- No rows to insert"

YAML_SUFFIX = ".yml"
SCHEMA_SUFFIXES = (".sql", ".ddl")

DEFAULT_SCHEMA_BASE = "./schema"
DEFAULT_DIST_PATH = "./dist"
DEFAULT_SCHEMA_NAME = "public"
DEFAULT_INSTANCE_NAME = "default"
DATA_FILENAME = "data.sql"
DEFAULT_VERSION = "0.0.0"
