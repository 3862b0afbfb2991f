"""Integration tests for CLI commands."""

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from deptree_cli import __version__
from deptree_cli.cli import app


runner = CliRunner()


@pytest.fixture
def main_py(fixtures_path: Path) -> Path:
    return fixtures_path / "python" / "shop" / "main.py"


class TestVersion:
    """Tests for 'deptree --version'."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert f"deptree v{__version__}" in result.stdout


class TestShowCommand:
    """Tests for 'deptree show'."""

    def test_show_tree(self, main_py: Path):
        result = runner.invoke(app, ["show", str(main_py), "4", "5", "--depth", "2", "--direction", "down", "--no-impl"])

        assert result.exit_code == 0
        assert "# Dependency Tree for: checkout" in result.stdout
        assert "## Usage in:" in result.stdout
        assert "Nodes:" in result.stdout
        assert "Edges:" in result.stdout

    def test_show_invalid_direction(self, main_py: Path):
        result = runner.invoke(app, ["show", str(main_py), "4", "5", "--direction", "sideways"])
        assert result.exit_code != 0

    def test_show_invalid_depth(self, main_py: Path):
        result = runner.invoke(app, ["show", str(main_py), "4", "5", "--depth", "0"])
        assert result.exit_code != 0

    def test_show_unsupported_file(self, temp_dir: Path):
        notes = temp_dir / "notes.txt"
        notes.write_text("hello world\n")
        result = runner.invoke(app, ["show", str(notes), "1", "1"])
        assert result.exit_code != 0

    def test_show_no_symbol(self, main_py: Path):
        # line 2 is blank
        result = runner.invoke(app, ["show", str(main_py), "2", "1", "--no-impl"])
        assert result.exit_code == 1

    def test_show_missing_file(self):
        result = runner.invoke(app, ["show", "/nonexistent/file.py", "1", "1"])
        assert result.exit_code != 0


class TestExportCommand:
    """Tests for 'deptree export'."""

    def test_export_json(self, main_py: Path, temp_dir: Path):
        output = temp_dir / "tree.json"
        result = runner.invoke(app, ["export", str(main_py), "4", "5", "-f", "json", "-o", str(output), "--no-impl"])

        assert result.exit_code == 0
        assert "Exported" in result.stdout
        data = json.loads(output.read_text())
        root = next(n for n in data["nodes"] if n["id"] == data["root_id"])
        assert root["symbol"] == "checkout"

    def test_export_dot(self, main_py: Path, temp_dir: Path):
        output = temp_dir / "tree.dot"
        result = runner.invoke(app, ["export", str(main_py), "4", "5", "--format", "dot", "--output", str(output)])

        assert result.exit_code == 0
        assert output.read_text().startswith("digraph DependencyTree {")

    def test_export_markdown_default_name(self, main_py: Path, temp_dir: Path, monkeypatch):
        monkeypatch.chdir(temp_dir)
        result = runner.invoke(app, ["export", str(main_py), "4", "5", "--no-impl"])

        assert result.exit_code == 0
        content = (temp_dir / "checkout_deptree.md").read_text()
        assert "## Project Folder Structure" in content
        assert "# Dependency Tree for: checkout" in content

    def test_export_bad_format(self, main_py: Path):
        result = runner.invoke(app, ["export", str(main_py), "4", "5", "--format", "xml"])
        assert result.exit_code != 0


class TestSymbolCommand:
    """Tests for 'deptree symbol'."""

    def test_symbol(self, main_py: Path):
        result = runner.invoke(app, ["symbol", str(main_py), "6", "14"])

        assert result.exit_code == 0
        assert "total_price (python)" in result.stdout

    def test_symbol_missing(self, main_py: Path):
        result = runner.invoke(app, ["symbol", str(main_py), "2", "1"])

        assert result.exit_code == 1
        assert "No symbol at" in result.stdout


class TestDiagnoseCommand:
    """Tests for 'deptree diagnose'."""

    def test_diagnose(self):
        result = runner.invoke(app, ["diagnose"])

        assert result.exit_code == 0
        assert "Tree-sitter grammars" in result.stdout
        assert "python" in result.stdout


class TestConfigCommands:
    """Tests for 'deptree config' sub-commands."""

    def test_set_show_reset(self, isolated_config: Path):
        result = runner.invoke(app, ["config", "set", "max_depth", "4"])
        assert result.exit_code == 0
        assert "max_depth = 4" in result.stdout
        assert "max_depth = 4" in isolated_config.read_text()

        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "max_depth" in result.stdout

        result = runner.invoke(app, ["config", "reset"])
        assert result.exit_code == 0
        assert "reset to defaults" in result.stdout
        assert "max_depth" not in isolated_config.read_text()

    def test_set_invalid_value(self):
        result = runner.invoke(app, ["config", "set", "direction", "sideways"])
        assert result.exit_code != 0

    def test_set_unknown_key(self):
        result = runner.invoke(app, ["config", "set", "colour", "blue"])
        assert result.exit_code != 0
