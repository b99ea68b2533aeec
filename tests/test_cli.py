"""Tests for bltsql.__main__ -- CLI commands and error paths."""

from __future__ import annotations

import json
import os
import sys
from unittest.mock import patch

import pytest

from bltsql.__main__ import main
from bltsql.config import reset_config
from bltsql.errors import SqlExecutionError

USERS_YAML = "table: users\nrows:\n  - id: u1\n    name: Ann\n"


@pytest.fixture(autouse=True)
def project(tmp_path, monkeypatch):
    """Run every command from an empty project directory with a clean environment."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "version.json").write_text(json.dumps({
        "component": "data", "version": "1.2.3", "buildnum": "9",
        "build": {"branch": "main", "commit": "0123456789abcdef"},
    }))
    reset_config()
    with patch.dict(os.environ, {}, clear=True):
        yield tmp_path
    reset_config()


def _schema(root, name, files):
    sql = root / "schema" / name / "sql"
    sql.mkdir(parents=True)
    for fname, text in files.items():
        (sql / fname).write_text(text)


def _instance(root, name, yaml_files):
    yaml_dir = root / "schema" / "instances" / name / "yaml"
    yaml_dir.mkdir(parents=True)
    for fname, text in yaml_files.items():
        (yaml_dir / fname).write_text(text)
    return yaml_dir.parent


def _exit_code(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestParsing:
    def test_missing_command_exits(self):
        with patch.object(sys, "argv", ["bltsql"]):
            with pytest.raises(SystemExit) as exc_info:
                main()
            assert exc_info.value.code != 0

    def test_unknown_target_exits(self):
        assert _exit_code(["build", "views"]) != 0


class TestBuild:
    def test_build_schema(self, project):
        _schema(project, "public", {"10-a.sql": "CREATE TABLE a();"})
        main(["build", "schema", "public"])
        content = (project / "dist" / "public.sql").read_text()
        assert "-- v1.2.3 · " in content
        assert "CREATE TABLE a();" in content

    def test_build_schema_defaults_to_public(self, project):
        _schema(project, "core", {"10-c.sql": "SELECT 'core';"})
        _schema(project, "public", {"10-p.sql": "SELECT 'public';"})
        main(["build", "schema"])
        assert (project / "dist" / "public.sql").is_file()
        assert not (project / "dist" / "core.sql").exists()

    def test_build_schema_missing_dir(self):
        assert _exit_code(["build", "schema", "ghost"]) == 1

    def test_build_schema_without_sql_files(self, project):
        _schema(project, "public", {"notes.txt": ""})
        assert _exit_code(["build", "schema", "public"]) == 1

    def test_build_data(self, project):
        inst = _instance(project, "default", {"10-users.yml": USERS_YAML})
        main(["build", "data"])
        content = (project / "dist" / "data.sql").read_text()
        assert "-- Instance Data: default" in content
        assert "INSERT INTO users (id, name) VALUES" in content
        assert (inst / "sql" / "10-users.sql").is_file()

    def test_build_data_missing_instance(self):
        assert _exit_code(["build", "data", "ghost"]) == 1

    def test_config_file_changes_paths(self, project):
        (project / "blt.config.json").write_text(json.dumps({"distPath": "out"}))
        _schema(project, "public", {"10-a.sql": "SELECT 1;"})
        main(["build", "schema", "public"])
        assert (project / "out" / "public.sql").is_file()


class TestConvert:
    def test_prints_results(self, project, capsys):
        inst = _instance(project, "default", {"10-users.yml": USERS_YAML, "20-bad.yml": "rows: []\n"})
        (inst / "sql").mkdir()
        main(["convert", str(inst / "sql")])

        lines = [json.loads(ln) for ln in capsys.readouterr().out.splitlines()]
        assert [(r["file"], r["status"]) for r in lines] == [
            ("10-users.yml", "ok"), ("20-bad.yml", "error"),
        ]
        assert (inst / "sql" / "10-users.sql").is_file()

    def test_missing_dir(self, project):
        assert _exit_code(["convert", str(project / "nope")]) == 1


class TestDeploy:
    @patch("bltsql.__main__.run_sql_file")
    def test_deploy_schema(self, mock_run, project):
        (project / "dist").mkdir()
        (project / "dist" / "public.sql").write_text("SELECT 1;")
        main(["deploy", "schema", "public"])
        mock_run.assert_called_once()
        assert mock_run.call_args[0][0].endswith(os.path.join("dist", "public.sql"))

    @patch("bltsql.__main__.run_sql_file")
    def test_deploy_without_build_exits(self, mock_run):
        assert _exit_code(["deploy", "data"]) == 1
        mock_run.assert_not_called()

    @patch("bltsql.__main__.run_sql_file")
    def test_deploy_file(self, mock_run, project):
        script = project / "seed.sql"
        script.write_text("SELECT 1;")
        main(["deploy", "file", str(script)])
        mock_run.assert_called_once_with(str(script))

    @patch("bltsql.__main__.run_sql_file")
    def test_deploy_latest_release(self, mock_run, project):
        (project / "dist").mkdir()
        for name in ("bltcore-v1.0.0.sql", "bltcore-v1.1.0.sql"):
            (project / "dist" / name).write_text("")
        main(["deploy", "file"])
        assert mock_run.call_args[0][0].endswith("bltcore-v1.1.0.sql")

    @patch("bltsql.__main__.run_sql_file")
    def test_sql_error_exits(self, mock_run, project):
        (project / "dist").mkdir()
        (project / "dist" / "data.sql").write_text("SELEC 1;")
        mock_run.side_effect = SqlExecutionError("syntax error", line=1, column=1)
        assert _exit_code(["deploy", "data"]) == 1

    def test_missing_database_url_exits(self, project):
        (project / "dist").mkdir()
        (project / "dist" / "data.sql").write_text("SELECT 1;")
        assert _exit_code(["deploy", "data"]) == 1


class TestShow:
    def test_schemas_and_instances(self, project, capsys):
        _schema(project, "public", {})
        _schema(project, "core", {})
        _instance(project, "acme", {})
        main(["show", "schemas"])
        main(["show", "instances"])
        assert capsys.readouterr().out.split() == ["core", "public", "acme"]

    def test_schema_json(self, project, capsys):
        _schema(project, "public", {"10-a.sql": "abc"})
        main(["show", "schema", "public", "--format", "json"])
        files = json.loads(capsys.readouterr().out)
        assert [(f["name"], f["size"]) for f in files] == [("10-a.sql", 3)]

    def test_schema_table(self, project, capsys):
        _schema(project, "public", {"10-a.sql": "abc"})
        main(["show", "schema"])
        out = capsys.readouterr().out
        assert "| Name" in out
        assert "10-a.sql" in out

    def test_missing_schema(self):
        assert _exit_code(["show", "schema", "ghost"]) == 1

    @patch("bltsql.__main__.execute_query")
    def test_rows(self, mock_query, capsys):
        mock_query.return_value = [
            {"table_name": "users", "row_count": 1200},
            {"table_name": "roles", "row_count": 3},
        ]
        main(["show", "rows"])
        out = capsys.readouterr().out
        assert "1,200" in out
        assert "Total rows across all tables: 1,203" in out

    @patch("bltsql.__main__.execute_query", return_value=[])
    def test_rows_empty(self, _mock, capsys):
        main(["show", "rows"])
        assert "No tables found" in capsys.readouterr().out

    @patch("bltsql.__main__.execute_query")
    def test_db_version(self, mock_query, capsys):
        mock_query.return_value = [{"props": {
            "component": "data", "version": "2.0.0",
            "build": {"branch": "main", "commit": "feedfacecafe"},
        }}]
        main(["show", "db", "--short"])
        assert capsys.readouterr().out.strip() == "data v2.0.0"

    @patch("bltsql.__main__.execute_query", return_value=[])
    def test_db_version_missing(self, _mock):
        assert _exit_code(["show", "db"]) == 1


class TestCleanup:
    def test_cleanup_all(self, project):
        _schema(project, "public", {"10-a.sql": ""})
        inst = _instance(project, "default", {"10-users.yml": USERS_YAML})
        main(["build", "schema"])
        main(["build", "data"])

        main(["cleanup", "--all"])

        assert not (project / "dist" / "public.sql").exists()
        assert not (project / "dist" / "data.sql").exists()
        assert not (inst / "sql").exists()
        assert (inst / "yaml" / "10-users.yml").is_file()


class TestVersion:
    def test_string_styles(self, capsys):
        main(["version", "string"])
        main(["version", "string", "--full"])
        main(["version", "string", "--only"])
        assert capsys.readouterr().out.splitlines() == [
            "data v1.2.3 9 - main (0123456)",
            "data v1.2.3 9 - main hash(0123456789abcdef)",
            "9",
        ]

    def test_sql(self, capsys):
        main(["version", "sql"])
        assert capsys.readouterr().out.startswith("INSERT INTO settings")

    def test_missing_version_file(self, project):
        (project / "version.json").unlink()
        assert _exit_code(["version", "string"]) == 1

    @patch("bltsql.version._git", return_value="")
    def test_update(self, _git, project):
        (project / "package.json").write_text(json.dumps({"name": "data", "version": "3.0.0"}))
        main(["version", "update"])
        assert json.loads((project / "version.json").read_text())["version"] == "3.0.0"
