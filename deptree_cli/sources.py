"""Language tags for paths and cached access to file lines and syntax trees."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .models import Position
from .treesitter import SyntaxTree, TreeSitterParser

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "typescriptreact",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascriptreact",
    ".py": "python",
    ".pyi": "python",
    ".go": "go",
    ".rs": "rust",
    ".lua": "lua",
}

ECMASCRIPT_LANGUAGES = frozenset({"typescript", "typescriptreact", "javascript", "javascriptreact"})

_WORD_RE = re.compile(r"[A-Za-z_$][\w$]*")


def language_for_path(path: str) -> Optional[str]:
    return LANGUAGE_MAP.get(os.path.splitext(str(path))[1].lower())


def read_lines(path: str) -> Optional[List[str]]:
    """Lines of *path* decoded as UTF-8 (errors replaced), or None."""
    try:
        return Path(path).read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError as exc:
        logger.debug("Cannot read %s: %s", path, exc)
        return None


def word_at(lines: List[str], pos: Position) -> Optional[str]:
    """Identifier-like word touching *pos*, or None."""
    if not 0 <= pos.line < len(lines):
        return None
    line = lines[pos.line]
    for match in _WORD_RE.finditer(line):
        if match.start() <= pos.character < match.end():
            return match.group(0)
    return None


class SourceReader:
    """Memoised file lines and syntax trees.

    By default files are read from disk and parsed with tree-sitter; an
    analysis provider can supply its own callables instead.
    """

    def __init__(
        self,
        read_file: Optional[Callable[[str], Optional[List[str]]]] = None,
        parse_tree: Optional[Callable[[str], Optional[SyntaxTree]]] = None,
        parser: Optional[TreeSitterParser] = None,
    ) -> None:
        self._read_file = read_file
        self._parse_tree = parse_tree
        self._parser = parser
        self._lines: Dict[str, Optional[List[str]]] = {}
        self._trees: Dict[str, Optional[SyntaxTree]] = {}

    def lines(self, path: str) -> Optional[List[str]]:
        key = str(path)
        if key not in self._lines:
            if self._read_file is None:
                self._lines[key] = read_lines(key)
            else:
                self._lines[key] = self._guarded(self._read_file, key)
        return self._lines[key]

    @staticmethod
    def _guarded(func: Callable, key: str):
        try:
            return func(key)
        except Exception as exc:  # provider failures mean "no result"
            logger.debug("Source access for %s failed: %s", key, exc)
            return None

    def text(self, path: str) -> Optional[str]:
        lines = self.lines(path)
        return None if lines is None else "\n".join(lines)

    def tree(self, path: str) -> Optional[SyntaxTree]:
        key = str(path)
        if key in self._trees:
            return self._trees[key]
        tree: Optional[SyntaxTree] = None
        if self._parse_tree is not None:
            tree = self._guarded(self._parse_tree, key)
        else:
            lines = self.lines(key)
            if lines is not None:
                if self._parser is None:
                    self._parser = TreeSitterParser()
                tree = self._parser.parse(lines, language_for_path(key))
        self._trees[key] = tree
        return tree

    def clear(self) -> None:
        self._lines.clear()
        self._trees.clear()
