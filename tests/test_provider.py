"""Tests for the local analysis provider and path exclusion."""

from pathlib import Path

import pytest

from deptree_cli.config_manager import AnalysisConfig
from deptree_cli.ignore import PathExcluder, iter_source_files
from deptree_cli.models import Location, Position
from deptree_cli.provider import LocalAnalysisProvider


@pytest.fixture
def python_project(fixtures_path: Path):
    root = (fixtures_path / "python").resolve()
    return root, root / "shop" / "main.py", root / "shop" / "pricing.py"


def test_symbol_at(python_project):
    root, main, _ = python_project
    provider = LocalAnalysisProvider(root)

    assert provider.symbol_at(str(main), Position(3, 4)) == "checkout"
    assert provider.symbol_at(str(main), Position(5, 13)) == "total_price"
    assert provider.symbol_at(str(main), Position(6, 4)) is None  # "return"
    assert provider.symbol_at(str(root / "missing.py"), Position(0, 0)) is None


def test_definitions(python_project):
    root, main, pricing = python_project
    provider = LocalAnalysisProvider(root)

    assert provider.definitions(str(main), Position(3, 4)) == [Location(str(main), Position(3, 4))]
    # resolved through the relative import
    assert provider.definitions(str(main), Position(5, 13)) == [Location(str(pricing), Position(7, 4))]
    # builtins have no definition in the project
    assert provider.definitions(str(main), Position(6, 11)) == []


def test_references_skip_imports_and_definition(python_project):
    root, main, pricing = python_project
    provider = LocalAnalysisProvider(root)

    refs = provider.references(str(pricing), Position(7, 4))

    assert [r.path for r in refs] == [str(main)]


def test_references_map_to_enclosing_function(python_project):
    pytest.importorskip("tree_sitter_python")
    root, main, pricing = python_project
    provider = LocalAnalysisProvider(root)

    assert provider.references(str(pricing), Position(7, 4)) == [Location(str(main), Position(3, 4))]
    # apply_tax is used inside total_price in the same file
    assert provider.references(str(pricing), Position(3, 4)) == [Location(str(pricing), Position(7, 4))]


def test_project_files_cap(python_project):
    root, _, _ = python_project
    provider = LocalAnalysisProvider(root, AnalysisConfig(max_scan_files=1))
    assert len(provider.project_files((".py",))) == 1


def test_excluder_reads_gitignore(temp_dir: Path):
    (temp_dir / ".gitignore").write_text("generated/\n*.min.js\n!keep.min.js\n")
    for rel in ("generated/x.py", "src/y.py", "node_modules/z.py", "src/a.min.js", "src/keep.min.js"):
        target = temp_dir / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text("")
    excluder = PathExcluder(temp_dir, ["node_modules/"])

    assert excluder.is_excluded(temp_dir / "generated", is_dir=True)
    assert excluder.is_excluded(temp_dir / "src" / "a.min.js")
    assert not excluder.is_excluded(temp_dir / "src" / "keep.min.js")
    assert not excluder.is_excluded(Path("/elsewhere/file.py"))

    found = [p.relative_to(temp_dir).as_posix()
             for p in iter_source_files(temp_dir, (".py", ".js"), excluder)]
    assert found == ["src/keep.min.js", "src/y.py"]
