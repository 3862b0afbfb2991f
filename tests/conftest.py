"""Pytest configuration and fixtures for deptree tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Dict, Generator, List, Optional

import pytest

from deptree_cli.models import Location, Position
from deptree_cli.provider import AnalysisProvider
from deptree_cli.sources import read_lines, word_at


class FakeProvider(AnalysisProvider):
    """In-memory provider: virtual files, a definition table and a reference table.

    Files not registered in *files* are read from disk so that tests can mix
    virtual sources with real temporary files.
    """

    def __init__(
        self,
        files: Dict[str, List[str]],
        defs: Optional[Dict[str, Location]] = None,
        refs: Optional[Dict[str, List[Location]]] = None,
        implementation: Optional[Location] = None,
    ):
        self.files = files
        self.defs = defs or {}
        self.refs = refs or {}
        self.impl = implementation
        self.calls: List[str] = []

    def read_file(self, path: str) -> Optional[List[str]]:
        if path in self.files:
            return self.files[path]
        return read_lines(path)

    def symbol_at(self, path: str, pos: Position) -> Optional[str]:
        lines = self.read_file(path)
        return word_at(lines, pos) if lines else None

    def definitions(self, path: str, pos: Position) -> List[Location]:
        self.calls.append("definitions")
        symbol = self.symbol_at(path, pos)
        return [self.defs[symbol]] if symbol in self.defs else []

    def references(self, path: str, pos: Position) -> List[Location]:
        self.calls.append("references")
        return list(self.refs.get(self.symbol_at(path, pos), []))

    def implementation(self, path: str, pos: Position) -> Optional[Location]:
        return self.impl


class BrokenProvider(FakeProvider):
    """Every query except file access raises."""

    def symbol_at(self, path, pos):
        raise RuntimeError("symbol_at unavailable")

    def definitions(self, path, pos):
        raise RuntimeError("definitions unavailable")

    def references(self, path, pos):
        raise RuntimeError("references unavailable")

    def implementation(self, path, pos):
        raise RuntimeError("implementation unavailable")


def layout(blocks: Dict[int, List[str]], length: int = 300) -> List[str]:
    """File lines with each block of *blocks* placed at its starting line."""
    lines = [""] * length
    for start, body in blocks.items():
        lines[start:start + len(body)] = body
    return lines


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp.resolve()
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture(autouse=True)
def isolated_config(temp_dir: Path, monkeypatch) -> Path:
    """Point the config file at a temporary DEPTREE_HOME."""
    home = temp_dir / ".deptree"
    monkeypatch.setattr("deptree_cli.config.BASE_DIR", home)
    monkeypatch.setattr("deptree_cli.config.CONFIG_FILE", home / "config.toml")
    return home / "config.toml"


@pytest.fixture
def fixtures_path() -> Path:
    """Root of the multi-language sample project."""
    return Path(__file__).parent / "fixtures" / "multi_lang"


@pytest.fixture
def fake_provider_cls():
    return FakeProvider


@pytest.fixture
def broken_provider_cls():
    return BrokenProvider


@pytest.fixture
def make_layout():
    return layout


@pytest.fixture
def chain_files(temp_dir: Path):
    """``f -> g -> h`` in one virtual Python file, functions far apart."""
    path = str(temp_dir / "chain.py")
    lines = layout({
        0: ["def f():", "    return g()"],
        100: ["def g():", "    return h()"],
        200: ["def h():", "    return 1"],
    })
    defs = {
        "f": Location(path, Position(0, 4)),
        "g": Location(path, Position(100, 4)),
        "h": Location(path, Position(200, 4)),
    }
    return path, lines, defs
