"""Tree-sitter integration: grammar loading, position mapping and scope helpers.

Grammars come from the per-language ``tree_sitter_*`` packages and are
loaded lazily. A language whose grammar package is missing simply has no
syntax tree; callers fall back to text patterns.
"""

from __future__ import annotations

import importlib
import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .models import Position

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language tag -> (grammar module, factory function)
# ---------------------------------------------------------------------------
GRAMMAR_MODULES: Dict[str, Tuple[str, str]] = {
    "python": ("tree_sitter_python", "language"),
    "javascript": ("tree_sitter_javascript", "language"),
    "javascriptreact": ("tree_sitter_javascript", "language"),
    "typescript": ("tree_sitter_typescript", "language_typescript"),
    "typescriptreact": ("tree_sitter_typescript", "language_tsx"),
    "go": ("tree_sitter_go", "language"),
    "rust": ("tree_sitter_rust", "language"),
    "lua": ("tree_sitter_lua", "language"),
}

FUNCTION_NODE_TYPES = frozenset({
    "function_definition",
    "function_declaration",
    "function_item",
    "function_expression",
    "function",
    "generator_function",
    "generator_function_declaration",
    "arrow_function",
    "method_definition",
    "method_declaration",
    "method",
    "func_literal",
    "local_function",
    "class_definition",
    "class_declaration",
    "abstract_class_declaration",
    "class",
})

# Anonymous function forms that take their name from an enclosing declarator.
_ANONYMOUS_FUNCTION_TYPES = frozenset({
    "arrow_function", "function_expression", "function", "generator_function", "func_literal",
})

IDENTIFIER_TYPES = frozenset({
    "identifier",
    "property_identifier",
    "field_identifier",
    "type_identifier",
    "package_identifier",
    "private_property_identifier",
    "shorthand_property_identifier",
    "shorthand_property_identifier_pattern",
    "constant",
})

_WRAPPER_TYPES = frozenset({"decorated_definition", "export_statement"})

_MISSING = object()
_LANGUAGES: Dict[str, Any] = {}


# ===================================================================
# Grammar loading
# ===================================================================

def load_language(language: str) -> Optional[Any]:
    """Return the tree-sitter ``Language`` for *language*, or None."""
    cached = _LANGUAGES.get(language)
    if cached is _MISSING:
        return None
    if cached is not None:
        return cached

    spec = GRAMMAR_MODULES.get(language)
    if spec is None:
        logger.debug("No grammar module mapped for language '%s'", language)
        _LANGUAGES[language] = _MISSING
        return None

    mod_name, factory = spec
    try:
        from tree_sitter import Language  # type: ignore[import-untyped]

        mod = importlib.import_module(mod_name)
        ts_lang = Language(getattr(mod, factory)())
    except ImportError:
        logger.warning(
            "Grammar package '%s' not installed for language '%s'. "
            "Install with: pip install %s",
            mod_name, language, mod_name.replace("_", "-"),
        )
        _LANGUAGES[language] = _MISSING
        return None
    except (AttributeError, TypeError, ValueError) as exc:
        logger.warning("Could not load tree-sitter grammar for %s: %s", language, exc)
        _LANGUAGES[language] = _MISSING
        return None

    _LANGUAGES[language] = ts_lang
    logger.debug("Loaded tree-sitter grammar for %s", language)
    return ts_lang


def diagnose() -> Dict[str, Tuple[bool, str]]:
    """Report grammar availability per language tag.

    Returns:
        Mapping of language -> (available, grammar package name).
    """
    report: Dict[str, Tuple[bool, str]] = {}
    for language, (mod_name, _) in GRAMMAR_MODULES.items():
        report[language] = (load_language(language) is not None, mod_name.replace("_", "-"))
    return report


# ===================================================================
# Syntax tree wrapper
# ===================================================================

class SyntaxTree:
    """A parsed file plus conversions between tree points and positions.

    Tree-sitter columns are byte offsets; :class:`Position` columns count
    characters.
    """

    def __init__(self, tree: Any, lines: List[str], language: str) -> None:
        self.tree = tree
        self.lines = lines
        self.language = language

    @property
    def root(self) -> Any:
        return self.tree.root_node

    def point(self, pos: Position) -> Tuple[int, int]:
        if 0 <= pos.line < len(self.lines):
            return pos.line, len(self.lines[pos.line][: pos.character].encode("utf-8"))
        return pos.line, pos.character

    def position(self, point: Any) -> Position:
        row, col = point[0], point[1]
        if 0 <= row < len(self.lines):
            prefix = self.lines[row].encode("utf-8")[:col]
            return Position(row, len(prefix.decode("utf-8", errors="ignore")))
        return Position(row, col)

    def node_at(self, pos: Position) -> Optional[Any]:
        point = self.point(pos)
        return self.root.named_descendant_for_point_range(point, point)

    @staticmethod
    def text(node: Any) -> str:
        return node.text.decode("utf-8", errors="replace") if node is not None else ""

    def walk(self, node: Any = None) -> Iterator[Any]:
        """Pre-order traversal of *node* (default: the whole tree)."""
        stack = [node if node is not None else self.root]
        while stack:
            current = stack.pop()
            yield current
            stack.extend(reversed(current.children))


class TreeSitterParser:
    """Parses source lines into :class:`SyntaxTree` objects, one parser per language."""

    def __init__(self) -> None:
        self._parsers: Dict[str, Any] = {}

    def supports_language(self, language: Optional[str]) -> bool:
        return language is not None and load_language(language) is not None

    def _parser_for(self, language: str) -> Optional[Any]:
        parser = self._parsers.get(language)
        if parser is not None:
            return parser
        ts_lang = load_language(language)
        if ts_lang is None:
            return None
        from tree_sitter import Parser as TSParser  # type: ignore[import-untyped]

        parser = TSParser(ts_lang)
        self._parsers[language] = parser
        return parser

    def parse(self, lines: List[str], language: Optional[str]) -> Optional[SyntaxTree]:
        if language is None:
            return None
        parser = self._parser_for(language)
        if parser is None:
            return None
        source = "\n".join(lines).encode("utf-8")
        try:
            tree = parser.parse(source)
        except ValueError as exc:
            logger.debug("tree-sitter failed on %s source: %s", language, exc)
            return None
        return SyntaxTree(tree, lines, language)


# ===================================================================
# Scope helpers
# ===================================================================

def is_function_node(node: Any) -> bool:
    if node.type in FUNCTION_NODE_TYPES:
        return True
    if node.type == "variable_declarator":
        value = node.child_by_field_name("value")
        return value is not None and value.type in _ANONYMOUS_FUNCTION_TYPES
    return False


def widen_scope(node: Any) -> Any:
    """Grow a function node to the statement that declares it.

    ``const f = () => {}`` widens to the whole declaration, decorated
    Python definitions include their decorators and exported declarations
    include the ``export`` keyword.
    """
    current = node
    if current.type in _ANONYMOUS_FUNCTION_TYPES and current.parent is not None:
        if current.parent.type == "variable_declarator":
            current = current.parent
    if current.type == "variable_declarator" and current.parent is not None:
        if current.parent.type in ("lexical_declaration", "variable_declaration"):
            current = current.parent
    while current.parent is not None and current.parent.type in _WRAPPER_TYPES:
        current = current.parent
    return current


def enclosing_function(tree: SyntaxTree, pos: Position) -> Optional[Any]:
    """The widened function/method/class node around *pos*, or None."""
    node = tree.node_at(pos)
    while node is not None:
        if is_function_node(node):
            return widen_scope(node)
        node = node.parent
    return None


def definition_name_node(node: Any) -> Optional[Any]:
    """The identifier naming a (possibly widened) definition node."""
    if node is None:
        return None
    if node.type == "decorated_definition":
        return definition_name_node(node.child_by_field_name("definition"))
    if node.type == "export_statement":
        inner = node.child_by_field_name("declaration")
        if inner is None:
            inner = next((c for c in node.named_children if c.type != "comment"), None)
        return definition_name_node(inner)
    if node.type in ("lexical_declaration", "variable_declaration"):
        for child in node.named_children:
            if child.type == "variable_declarator":
                return definition_name_node(child)
        return None
    if node.type in _ANONYMOUS_FUNCTION_TYPES and node.parent is not None:
        if node.parent.type == "variable_declarator":
            return definition_name_node(node.parent)
    name = node.child_by_field_name("name")
    if name is None:
        return None
    if name.type in ("dot_index_expression", "method_index_expression"):
        return name.child_by_field_name("field") or name.child_by_field_name("method") or name
    return name


def enclosing_definition(tree: SyntaxTree, pos: Position) -> Optional[Tuple[Any, Any]]:
    """Nearest named definition around *pos* as ``(scope_node, name_node)``.

    Anonymous functions (callbacks, lambdas) are skipped so that a call
    inside ``items.map(x => f(x))`` maps to the named function around it.
    """
    node = tree.node_at(pos)
    while node is not None:
        if is_function_node(node):
            name = definition_name_node(node)
            if name is not None:
                return widen_scope(node), name
        node = node.parent
    return None


def symbol_at(tree: SyntaxTree, pos: Position) -> Optional[str]:
    """Identifier under *pos*, or the name of a declaration starting on that line."""
    node = tree.node_at(pos)
    if node is None:
        return None
    if node.type in IDENTIFIER_TYPES:
        return tree.text(node)
    if node.start_point[0] == pos.line:
        name = definition_name_node(node)
        if name is not None and name.type in IDENTIFIER_TYPES:
            return tree.text(name)
    return None


# ===================================================================
# Documentation helpers
# ===================================================================

def _strip_quotes(raw: str) -> str:
    for prefix in ("r", "u", "b", "f", "R", "U", "B", "F"):
        if raw.startswith(prefix) and len(raw) > 1 and raw[1] in "'\"":
            raw = raw[1:]
            break
    for q in ('"""', "'''"):
        if raw.startswith(q) and raw.endswith(q) and len(raw) >= 6:
            return raw[3:-3]
    for q in ('"', "'"):
        if raw.startswith(q) and raw.endswith(q) and len(raw) >= 2:
            return raw[1:-1]
    return raw


def python_docstring(tree: SyntaxTree, scope: Any) -> List[str]:
    """Docstring lines of a Python function/class node (possibly decorated)."""
    if scope is not None and scope.type == "decorated_definition":
        scope = scope.child_by_field_name("definition")
    if scope is None:
        return []
    body = scope.child_by_field_name("body")
    if body is None:
        return []
    for child in body.children:
        if child.type == "expression_statement":
            expr = child.named_children[0] if child.named_children else None
            if expr is not None and expr.type == "string":
                text = _strip_quotes(tree.text(expr)).strip("\n")
                return [line.rstrip() for line in text.splitlines()]
            break
        if child.type != "comment":
            break
    return []


_LINE_COMMENT_PREFIXES = ("///", "//!", "//", "#", "--")


def preceding_comment(lines: List[str], start_line: int, max_lookback: int = 20) -> List[str]:
    """Comment block directly above *start_line*.

    Recognises ``/** ... */`` blocks and runs of line comments; scanning
    stops at the first blank or code line and never goes further back than
    *max_lookback* lines.
    """
    if start_line <= 0 or start_line > len(lines):
        return []
    floor = max(0, start_line - max_lookback)
    idx = start_line - 1

    # Skip decorators/attributes sitting between the comment and the definition.
    while idx >= floor and lines[idx].strip().startswith(("@", "#[")):
        idx -= 1
    if idx < floor:
        return []

    last = lines[idx].strip()
    if last.endswith("*/"):
        end = idx
        while idx >= floor and "/*" not in lines[idx]:
            idx -= 1
        if idx < floor:
            return []
        return [line.rstrip() for line in lines[idx : end + 1]]

    block: List[str] = []
    while idx >= floor:
        stripped = lines[idx].strip()
        if not stripped or stripped.startswith("#!"):
            break
        if not stripped.startswith(_LINE_COMMENT_PREFIXES):
            break
        block.append(lines[idx].rstrip())
        idx -= 1
    block.reverse()
    return block
