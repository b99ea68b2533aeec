"""Tests for bltsql.builder -- schema and data artifact assembly."""

from __future__ import annotations

import json
from datetime import datetime
from unittest.mock import patch

import pytest

from bltsql import builder

NOW = datetime(2026, 1, 2, 3, 4, 5)


class TestGetSortedSqlFiles:
    def test_filters_and_sorts(self, tmp_path):
        for name in (
            "20-tables.sql", "10-types.DDL", "05-ext.sql", "readme.sql",
            "public.sql", "public-01.sql", "30-notes.txt", "100-late.sql",
        ):
            (tmp_path / name).write_text("")
        assert builder.get_sorted_sql_files(str(tmp_path), "public") == [
            "05-ext.sql", "10-types.DDL", "100-late.sql", "20-tables.sql",
        ]

    def test_zero_padded_prefixes_order_correctly(self, tmp_path):
        for name in ("10-010-types.sql", "10-000-audit.sql", "09-999-base.sql"):
            (tmp_path / name).write_text("")
        assert builder.get_sorted_sql_files(str(tmp_path), "core") == [
            "09-999-base.sql", "10-000-audit.sql", "10-010-types.sql",
        ]


class TestGenerateSqlHeader:
    def test_public_schema(self):
        header = builder.generate_sql_header("public", "1.2.3", NOW)
        assert "-- Database postgres, Schema public" in header
        assert "-- v1.2.3 · 2026-01-02 03:04:05" in header
        assert "SELECT set_config('myvars.version','1.2.3', false);" in header
        assert "DROP SCHEMA IF EXISTS public CASCADE;" in header
        assert "DELETE FROM vault.secrets;" in header
        assert "CREATE SCHEMA IF NOT EXISTS public AUTHORIZATION pg_database_owner;" in header
        assert "CREATE EXTENSION IF NOT EXISTS pgcrypto;" in header
        assert header.rstrip().endswith("SET search_path = public, auth, extensions;")

    def test_other_schema_keeps_vault(self):
        header = builder.generate_sql_header("core", "1.0.0", NOW)
        assert "DROP SCHEMA IF EXISTS core CASCADE;" in header
        assert "vault.secrets" not in header

    def test_drop_precedes_create(self):
        header = builder.generate_sql_header("core", "1.0.0", NOW)
        assert header.index("DROP SCHEMA") < header.index("CREATE SCHEMA")


class TestBuildSchemaFile:
    def test_concatenates_in_given_order(self, tmp_path):
        (tmp_path / "10-a.sql").write_text("CREATE TABLE a();")
        (tmp_path / "20-b.sql").write_text("CREATE TABLE b();")
        content = builder.build_schema_file(
            str(tmp_path), "core", ["10-a.sql", "20-b.sql"], "1.0.0", NOW,
        )
        assert content.startswith(builder.generate_sql_header("core", "1.0.0", NOW))
        assert "\n\n-- 10-a.sql\nSET search_path = core, auth;\n\nCREATE TABLE a();" in content
        assert content.index("-- 10-a.sql") < content.index("-- 20-b.sql")

    def test_write_schema_file(self, tmp_path):
        dist = tmp_path / "dist"
        path = builder.write_schema_file("SELECT 1;", "public", str(dist))
        assert path == str(dist / "public.sql")
        assert (dist / "public.sql").read_text() == "SELECT 1;"


class TestBuildDataFile:
    def test_compiles_yaml_and_concatenates(self, instance_tree):
        inst = instance_tree(
            yaml_files={"20-users.yml": "table: users\nrows:\n  - id: u1\n    name: A\n"},
            sql_files={"10-setup.sql": "SELECT 1;", "notes.sql": "skip me"},
        )
        content = builder.build_data_file(str(inst), "default", "2.0.0", env={}, now=NOW)

        assert content.startswith("-- ")
        assert "-- Instance Data: default" in content
        assert "-- v2.0.0 · 2026-01-02 03:04:05" in content
        assert "-- 10-setup.sql\nSET search_path = public, auth, extensions;\n\nSELECT 1;" in content
        assert "INSERT INTO users (id, name) VALUES" in content
        assert content.index("-- 10-setup.sql") < content.index("-- 20-users.sql")
        assert "skip me" not in content
        assert (inst / "sql" / "20-users.sql").is_file()

    def test_creates_sql_dir(self, instance_tree):
        inst = instance_tree(yaml_files={"10-t.yml": "table: t\nrows: []\n"})
        content = builder.build_data_file(str(inst), "default", "1.0.0", env={}, now=NOW)
        assert (inst / "sql" / "10-t.sql").is_file()
        assert "-- No rows to insert" in content

    def test_bad_yaml_still_builds(self, instance_tree):
        inst = instance_tree(
            yaml_files={"10-bad.yml": "no marker here\n", "20-t.yml": "table: t\nrows:\n  - id: 1\n"},
        )
        content = builder.build_data_file(str(inst), "default", "1.0.0", env={}, now=NOW)
        assert "INSERT INTO t (id) VALUES" in content

    def test_no_sql_dir_returns_header(self, instance_tree):
        inst = instance_tree()
        content = builder.build_data_file(str(inst), "x", "1.0.0", now=NOW)
        assert "-- Instance Data: x" in content
        assert "-- " + "=" * 45 in content

    def test_missing_instance_dir(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="Instance directory does not exist"):
            builder.build_data_file(str(tmp_path / "nope"), "nope", "1.0.0")

    def test_write_data_file(self, tmp_path):
        path = builder.write_data_file("x", str(tmp_path / "dist"))
        assert path.endswith("data.sql")
        assert (tmp_path / "dist" / "data.sql").read_text() == "x"


class TestGetPackageVersion:
    def test_version_json_wins(self, tmp_path):
        (tmp_path / "version.json").write_text(json.dumps({"version": "3.1.4"}))
        (tmp_path / "package.json").write_text(json.dumps({"version": "9.9.9"}))
        assert builder.get_package_version(str(tmp_path)) == "3.1.4"

    def test_package_json(self, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps({"version": "1.2.0"}))
        assert builder.get_package_version(str(tmp_path)) == "1.2.0"

    def test_invalid_json_is_skipped(self, tmp_path):
        (tmp_path / "version.json").write_text("{not json")
        (tmp_path / "package.json").write_text(json.dumps({"version": "1.2.0"}))
        assert builder.get_package_version(str(tmp_path)) == "1.2.0"

    def test_falls_back_to_default(self, tmp_path):
        with patch.object(
            builder.metadata, "version",
            side_effect=builder.metadata.PackageNotFoundError("bltsql"),
        ):
            assert builder.get_package_version(str(tmp_path)) == "0.0.0"
