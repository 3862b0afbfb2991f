"""Language resolver interface and registry.

Each supported language contributes one :class:`LanguageResolver`
subclass that knows how that language spells imports, where imported
modules live on disk, and how definitions look. Resolver classes are
imported lazily the first time a file of that language is seen.

Resolvers never raise for ordinary misses: a missing file, an
unresolvable module or an absent symbol all come back as ``None`` or an
empty list.
"""

from __future__ import annotations

import importlib
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Pattern, Tuple, Type

from .config_manager import AnalysisConfig
from .models import ImplementationMatch, ImportInfo, Location, Position
from .sources import SourceReader, language_for_path  # noqa: F401  (re-exported)
from .treesitter import SyntaxTree, definition_name_node

logger = logging.getLogger(__name__)

# Import kinds whose binding is a module; used symbols are ``binding.member``.
NAMESPACE_KINDS = frozenset({"namespace", "standard", "package", "require", "mod"})


def word_pattern(symbol: str) -> Pattern[str]:
    """Regex matching *symbol* as a whole identifier."""
    return re.compile(r"(?<![\w$])" + re.escape(symbol) + r"(?![\w$])")


def find_word(line: str, symbol: str, start: int = 0) -> int:
    """Column of the first whole-word *symbol* in *line* at or after *start*, or -1."""
    match = word_pattern(symbol).search(line, start)
    return match.start() if match else -1


# ===================================================================
# Resolver interface
# ===================================================================

class LanguageResolver(ABC):
    """Language-specific import and definition knowledge."""

    languages: Tuple[str, ...] = ()
    extensions: Tuple[str, ...] = ()
    keywords: FrozenSet[str] = frozenset()
    definition_node_types: FrozenSet[str] = frozenset()
    member_pattern = r"\."

    def __init__(
        self,
        reader: Optional[SourceReader] = None,
        analysis: Optional[AnalysisConfig] = None,
    ) -> None:
        self.reader = reader or SourceReader()
        self.config = analysis or AnalysisConfig()

    # ------------------------------------------------------------------
    # Capabilities every language provides
    # ------------------------------------------------------------------

    @abstractmethod
    def parse_imports(self, text: str) -> List[ImportInfo]:
        """All import bindings declared in *text*."""

    @abstractmethod
    def resolve_import_to_file(
        self, module_path: str, current_file: str, project_root: Path
    ) -> Optional[Path]:
        """File (or package directory) that *module_path* names, if inside the project."""

    @abstractmethod
    def definition_patterns(self, symbol: str) -> List[str]:
        """Regexes matching a line that defines *symbol*."""

    @abstractmethod
    def implementation_patterns(self, symbol: str) -> List[Tuple[str, str]]:
        """``(regex, kind)`` pairs matching a line that implements *symbol*."""

    # ------------------------------------------------------------------
    # Shared behaviour
    # ------------------------------------------------------------------

    def is_keyword(self, word: str) -> bool:
        return word in self.keywords

    def find_symbol_in_file(self, file_path: Path, symbol: str) -> Optional[Position]:
        """Position of the name of *symbol*'s definition in *file_path*.

        The syntax tree is consulted first; text patterns are the fallback.
        """
        path = str(file_path)
        lines = self.reader.lines(path)
        if not lines or not symbol:
            return None
        tree = self.reader.tree(path)
        if tree is not None:
            pos = self._find_symbol_by_tree(tree, symbol)
            if pos is not None:
                return pos
        return self._find_symbol_by_pattern(lines, symbol)

    def definition_name(self, node: Any) -> Optional[Any]:
        return definition_name_node(node)

    def _find_symbol_by_tree(self, tree: SyntaxTree, symbol: str) -> Optional[Position]:
        for node in tree.walk():
            if node.type not in self.definition_node_types:
                continue
            name = self.definition_name(node)
            if name is not None and tree.text(name) == symbol:
                return tree.position(name.start_point)
        return None

    def _find_symbol_by_pattern(self, lines: List[str], symbol: str) -> Optional[Position]:
        patterns = [re.compile(p) for p in self.definition_patterns(symbol)]
        for i, line in enumerate(lines):
            for pattern in patterns:
                match = pattern.search(line)
                if match is None:
                    continue
                col = find_word(line, symbol, match.start())
                if col >= 0:
                    return Position(i, col)
        return None

    def find_implementation_patterns(
        self, file_path: Path, symbol: str, lines: List[str]
    ) -> Optional[ImplementationMatch]:
        """First line of *lines* that implements *symbol*, 1-based."""
        if not symbol:
            return None
        patterns = [(re.compile(p), kind) for p, kind in self.implementation_patterns(symbol)]
        return _match_patterns(lines, symbol, patterns)

    # ------------------------------------------------------------------
    # Import pipeline hooks
    # ------------------------------------------------------------------

    def member_prefix(self, imp: ImportInfo) -> str:
        return imp.local_name

    def imported_symbols(self, imp: ImportInfo, scope_text: str) -> List[Tuple[str, bool]]:
        """Symbols *scope_text* uses through *imp* as ``(name, is_member)`` pairs."""
        if imp.kind == "side_effect":
            return []
        if imp.kind in NAMESPACE_KINDS:
            prefix = re.escape(self.member_prefix(imp))
            found = re.findall(r"(?<![\w$.])" + prefix + self.member_pattern + r"([A-Za-z_$][\w$]*)", scope_text)
            return [(name, True) for name in dict.fromkeys(found)]
        return [(imp.imported_name, False)]

    def locate_import(
        self,
        imp: ImportInfo,
        symbol: str,
        is_member: bool,
        current_file: str,
        project_root: Path,
    ) -> Optional[Location]:
        target = self.resolve_import_to_file(imp.module_path, current_file, project_root)
        if target is None:
            return None
        return self.search_target(target, symbol)

    def search_target(self, target: Path, symbol: str) -> Optional[Location]:
        """Find *symbol* in a resolved file, or across a package directory."""
        if target.is_dir():
            for path in sorted(target.iterdir()):
                if path.is_file() and path.suffix in self.extensions:
                    pos = self.find_symbol_in_file(path, symbol)
                    if pos is not None:
                        return Location(str(path), pos)
            return None
        pos = self.find_symbol_in_file(target, symbol)
        return Location(str(target), pos) if pos is not None else None


def _match_patterns(
    lines: List[str], symbol: str, patterns: List[Tuple[Pattern[str], str]]
) -> Optional[ImplementationMatch]:
    for i, line in enumerate(lines):
        for pattern, kind in patterns:
            match = pattern.search(line)
            if match is None:
                continue
            col = find_word(line, symbol, match.start())
            return ImplementationMatch(line=i + 1, column=max(col, 0) + 1, kind=kind, content=line)
    return None


def generic_implementation_patterns(symbol: str, lines: List[str]) -> Optional[ImplementationMatch]:
    """Language-agnostic implementation search for files without a resolver."""
    s = re.escape(symbol)
    patterns = [
        (re.compile(rf"\bfunction\s+{s}\s*\("), "function"),
        (re.compile(rf"\bclass\s+{s}\b"), "class"),
        (re.compile(rf"(?<![\w$]){s}\s*=\s*function\b"), "function"),
        (re.compile(rf"\bdef\s+{s}\s*\("), "function"),
        (re.compile(rf"\bfn\s+{s}\s*[(<]"), "function"),
        (re.compile(rf"\bfunc\s+{s}\s*\("), "function"),
    ]
    return _match_patterns(lines, symbol, patterns)


# ===================================================================
# Registry
# ===================================================================

_RESOLVER_CLASSES: Dict[str, Tuple[str, str]] = {
    "typescript": ("lang_typescript", "TypeScriptResolver"),
    "typescriptreact": ("lang_typescript", "TypeScriptResolver"),
    "javascript": ("lang_typescript", "TypeScriptResolver"),
    "javascriptreact": ("lang_typescript", "TypeScriptResolver"),
    "python": ("lang_python", "PythonResolver"),
    "go": ("lang_go", "GoResolver"),
    "rust": ("lang_rust", "RustResolver"),
    "lua": ("lang_lua", "LuaResolver"),
}


def is_supported(language: Optional[str]) -> bool:
    return language in _RESOLVER_CLASSES


def supported_languages() -> List[str]:
    return sorted(_RESOLVER_CLASSES)


def resolver_class(language: Optional[str]) -> Optional[Type[LanguageResolver]]:
    entry = _RESOLVER_CLASSES.get(language or "")
    if entry is None:
        return None
    mod_name, cls_name = entry
    module = importlib.import_module(f".{mod_name}", __package__)
    return getattr(module, cls_name)


def get_resolver(
    language: Optional[str],
    reader: Optional[SourceReader] = None,
    analysis: Optional[AnalysisConfig] = None,
) -> Optional[LanguageResolver]:
    """Instantiate the resolver registered for *language*, or None."""
    cls = resolver_class(language)
    if cls is None:
        logger.debug("No resolver registered for language %r", language)
        return None
    return cls(reader=reader, analysis=analysis)


def keywords_for(language: Optional[str]) -> FrozenSet[str]:
    """Keyword table of *language*; the union of all tables when unknown."""
    cls = resolver_class(language)
    if cls is not None:
        return cls.keywords
    merged: set = set()
    for name in {entry for entry in _RESOLVER_CLASSES.values()}:
        module = importlib.import_module(f".{name[0]}", __package__)
        merged |= getattr(module, name[1]).keywords
    return frozenset(merged)
