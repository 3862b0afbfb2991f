"""Source-analysis providers.

The builder only talks to :class:`AnalysisProvider`. The bundled
:class:`LocalAnalysisProvider` answers every query from the files on disk
with tree-sitter and the language resolvers, so no language server is
needed.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

from .config_manager import AnalysisConfig
from .ignore import PathExcluder, iter_source_files
from .languages import LanguageResolver, get_resolver, word_pattern
from .models import Location, Position
from .sources import SourceReader, language_for_path, word_at
from .treesitter import SyntaxTree, TreeSitterParser, enclosing_definition, symbol_at as tree_symbol_at

logger = logging.getLogger(__name__)

_IMPORT_LINE_PREFIXES = ("import ", "from ", "use ", "pub use ", "#include", "package ")


# ===================================================================
# Provider contract
# ===================================================================

class AnalysisProvider(ABC):
    """Answers symbol queries about source files.

    Implementations bound their own latency; an exception raised from any
    method is treated by the builder as "no result" for that branch.
    """

    @abstractmethod
    def symbol_at(self, path: str, pos: Position) -> Optional[str]:
        """Identifier at *pos*, or None."""

    @abstractmethod
    def references(self, path: str, pos: Position) -> List[Location]:
        """Places that use the symbol defined or referenced at *pos*."""

    @abstractmethod
    def definitions(self, path: str, pos: Position) -> List[Location]:
        """Definition sites of the symbol at *pos*."""

    @abstractmethod
    def read_file(self, path: str) -> Optional[List[str]]:
        """Lines of *path*, or None when it cannot be read."""

    def implementation(self, path: str, pos: Position) -> Optional[Location]:
        return None

    def parse_tree(self, path: str) -> Optional[SyntaxTree]:
        return None


# ===================================================================
# Local provider
# ===================================================================

class LocalAnalysisProvider(AnalysisProvider):
    """Provider backed by files on disk, tree-sitter and pattern search."""

    def __init__(
        self,
        project_root: Path,
        analysis: Optional[AnalysisConfig] = None,
        parser: Optional[TreeSitterParser] = None,
    ) -> None:
        self.project_root = Path(project_root).resolve()
        self.config = analysis or AnalysisConfig()
        self.reader = SourceReader(parser=parser or TreeSitterParser())
        self.excluder = PathExcluder(self.project_root, self.config.exclude_patterns)
        self._resolvers: Dict[str, Optional[LanguageResolver]] = {}
        self._project_files: Dict[tuple, List[Path]] = {}

    # ------------------------------------------------------------------
    # Source access
    # ------------------------------------------------------------------

    def read_file(self, path: str) -> Optional[List[str]]:
        return self.reader.lines(path)

    def parse_tree(self, path: str) -> Optional[SyntaxTree]:
        return self.reader.tree(path)

    def _resolver(self, path: str) -> Optional[LanguageResolver]:
        language = language_for_path(path)
        if language is None:
            return None
        if language not in self._resolvers:
            self._resolvers[language] = get_resolver(language, reader=self.reader, analysis=self.config)
        return self._resolvers[language]

    def project_files(self, extensions: tuple) -> List[Path]:
        """Source files with *extensions*, capped by ``max_scan_files``."""
        if extensions not in self._project_files:
            self._project_files[extensions] = list(iter_source_files(
                self.project_root, extensions, self.excluder, limit=self.config.max_scan_files,
            ))
        return self._project_files[extensions]

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def symbol_at(self, path: str, pos: Position) -> Optional[str]:
        lines = self.read_file(path)
        if not lines:
            return None
        tree = self.parse_tree(path)
        symbol = tree_symbol_at(tree, pos) if tree is not None else None
        if symbol is None:
            symbol = word_at(lines, pos)
        resolver = self._resolver(path)
        if symbol and resolver is not None and resolver.is_keyword(symbol):
            return None
        return symbol

    def definitions(self, path: str, pos: Position) -> List[Location]:
        symbol = self.symbol_at(path, pos)
        resolver = self._resolver(path)
        if not symbol or resolver is None:
            return []

        local = resolver.find_symbol_in_file(Path(path), symbol)
        if local is not None:
            return [Location(str(Path(path).resolve()), local)]

        text = "\n".join(self.read_file(path) or [])
        for imp in resolver.parse_imports(text):
            if imp.local_name == symbol and imp.kind not in ("side_effect",):
                found = resolver.locate_import(imp, imp.imported_name, False, path, self.project_root)
                if found is not None:
                    return [found]

        current = Path(path).resolve()
        for candidate in self.project_files(resolver.extensions):
            if candidate.resolve() == current:
                continue
            found = resolver.find_symbol_in_file(candidate, symbol)
            if found is not None:
                return [Location(str(candidate.resolve()), found)]
        return []

    def references(self, path: str, pos: Position) -> List[Location]:
        symbol = self.symbol_at(path, pos)
        resolver = self._resolver(path)
        if not symbol or resolver is None:
            return []

        defs = self.definitions(path, pos)
        definition = defs[0] if defs else Location(str(Path(path).resolve()), pos)
        pattern = word_pattern(symbol)
        results: List[Location] = []
        seen = set()

        for candidate in self.project_files(resolver.extensions):
            file_path = str(candidate.resolve())
            lines = self.read_file(file_path)
            if not lines or symbol not in "\n".join(lines):
                continue
            tree = self.parse_tree(file_path)
            for row, line in enumerate(lines):
                if line.lstrip().startswith(_IMPORT_LINE_PREFIXES):
                    continue
                for match in pattern.finditer(line):
                    occurrence = Position(row, match.start())
                    if file_path == definition.path and occurrence == definition.position:
                        continue
                    location = self._caller_of(file_path, tree, occurrence)
                    if location is None:
                        continue
                    if location.path == definition.path and location.position == definition.position:
                        continue
                    key = (location.path, location.position)
                    if key not in seen:
                        seen.add(key)
                        results.append(location)
        logger.debug("%d reference(s) to %s", len(results), symbol)
        return results

    def _caller_of(self, path: str, tree: Optional[SyntaxTree], occurrence: Position) -> Optional[Location]:
        """Name position of the definition enclosing *occurrence*."""
        if tree is None:
            return Location(path, occurrence)
        found = enclosing_definition(tree, occurrence)
        if found is None:
            return Location(path, occurrence)
        _, name = found
        return Location(path, tree.position(name.start_point))
