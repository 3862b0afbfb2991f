"""Recursive dependency-tree construction.

:class:`TreeBuilder` walks outward from a seed symbol. Walking ``up``
follows provider references (callers); walking ``down`` follows provider
definitions, the language import pipeline and calls detected in the
symbol's scope (callees). Every expansion of ``(node, direction, depth)``
happens at most once per session and depth strictly increases, so cyclic
call graphs terminate.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from . import config
from .components import extract_component_props, is_component
from .config_manager import AnalysisConfig, find_project_root
from .detector import detect_calls, find_identifiers, find_scope_bounds, locate_in_scope
from .errors import DeptreeError
from .graph import add_dependency, connect, get_or_create
from .languages import is_supported, word_pattern
from .models import BuildResult, CallInfo, DependencyGraph, Location, Node, Position, ScopeBounds, VariableUse
from .session import TraversalSession, compute_id, expansion_key, normalise_path, probe_key
from .sources import word_at
from .treesitter import SyntaxTree, enclosing_function, preceding_comment, python_docstring

logger = logging.getLogger(__name__)

TRAVERSAL_DIRECTIONS = config.DIRECTIONS + ("none",)


def _safe(label: str, func: Callable, *args: Any, default: Any = None) -> Any:
    """Call a provider method, turning any failure into *default*."""
    try:
        result = func(*args)
    except Exception as exc:  # provider failures only prune the branch
        logger.debug("%s failed for %s: %s", label, args, exc)
        return default
    return default if result is None else result


def _definition(loc: Location, node_id: Optional[str] = None) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "file": normalise_path(loc.path),
        "line": loc.position.line + 1,
        "column": loc.position.character + 1,
    }
    if node_id is not None:
        data["node_id"] = node_id
    return data


def _location_id(loc: Location) -> str:
    return compute_id(loc.path, loc.position.line, loc.position.character)


class TreeBuilder:
    """Depth-first traversal bound to one :class:`TraversalSession`."""

    def __init__(self, session: TraversalSession) -> None:
        self.session = session
        self.provider = session.provider
        self.graph = session.graph

    # ==================================================================
    # Traversal
    # ==================================================================

    def build_tree(
        self,
        path: str,
        pos: Position,
        depth: int,
        max_depth: int,
        direction: str,
        parent_id: Optional[str] = None,
    ) -> Optional[Node]:
        """Expand the symbol at *pos* in *path*; returns its node or None when pruned."""
        if depth > max_depth or direction not in TRAVERSAL_DIRECTIONS:
            return None

        path = normalise_path(path)
        session = self.session
        lines = session.reader.lines(path)
        if not lines:
            logger.debug("Pruned %s: unreadable or empty", path)
            return None
        if pos.line < 0 or pos.line >= len(lines) or pos.character < 0 or pos.character > len(lines[pos.line]):
            logger.debug("Pruned %s:%d:%d: outside the file", path, pos.line, pos.character)
            return None
        language = session.language_for(path)
        if not is_supported(language):
            logger.debug("Pruned %s: unsupported language %r", path, language)
            return None

        resolver = session.resolver_for(path)
        symbol = _safe("symbol_at", self.provider.symbol_at, path, pos) or word_at(lines, pos)
        if not symbol or (resolver is not None and resolver.is_keyword(symbol)):
            logger.debug("Pruned %s:%d:%d: no symbol", path, pos.line, pos.character)
            return None

        node_id = compute_id(path, pos.line, pos.character)
        key = expansion_key(node_id, direction, depth)
        if session.cache.seen(key):
            if parent_id is not None and parent_id != node_id and node_id in self.graph:
                connect(self.graph, node_id, parent_id, direction)
            return self.graph.get(node_id)
        session.cache.mark_seen(key)
        session.analysed.add(probe_key(symbol, path))

        tree = session.reader.tree(path)
        bounds = find_scope_bounds(tree, lines, pos)

        is_new = node_id not in self.graph
        session.register_identity(node_id, path, pos.line, pos.character)
        node = get_or_create(
            self.graph, path, pos, symbol,
            is_root=(depth == 0 and self.graph.root_id is None),
            depth=depth,
        )
        if is_new:
            self._enrich(node, lines, tree, bounds, pos, language)
        if parent_id is not None and parent_id != node_id:
            connect(self.graph, node_id, parent_id, direction)

        if direction in ("up", "both"):
            self._expand_up(node, path, pos, depth, max_depth)
        if direction in ("down", "both"):
            self._expand_down(node, path, pos, lines, bounds, depth, max_depth)
        if depth == 0 or direction in ("down", "none"):
            self._expand_local(node, path, lines, tree, bounds, language, depth, max_depth)
        return node

    # ------------------------------------------------------------------
    # Expansion steps
    # ------------------------------------------------------------------

    def _expand_up(self, node: Node, path: str, pos: Position, depth: int, max_depth: int) -> None:
        for loc in _safe("references", self.provider.references, path, pos, default=[]):
            if _location_id(loc) == node.id:
                continue
            self.build_tree(loc.path, loc.position, depth + 1, max_depth, "up", node.id)

    def _expand_down(
        self,
        node: Node,
        path: str,
        pos: Position,
        lines: List[str],
        bounds: ScopeBounds,
        depth: int,
        max_depth: int,
    ) -> None:
        for loc in _safe("definitions", self.provider.definitions, path, pos, default=[]):
            if _location_id(loc) == node.id:
                continue
            self.build_tree(loc.path, loc.position, depth + 1, max_depth, "down", node.id)
        self._follow_imports(node, path, lines, bounds, depth, max_depth)

    def _follow_imports(
        self,
        node: Node,
        path: str,
        lines: List[str],
        bounds: ScopeBounds,
        depth: int,
        max_depth: int,
    ) -> None:
        session = self.session
        resolver = session.resolver_for(path)
        if resolver is None:
            return
        imports = _safe("parse_imports", resolver.parse_imports, "\n".join(lines), default=[])
        for imp in imports:
            scope_rows = [
                row for row in range(bounds.start_line, min(bounds.end_line, len(lines)))
                if row != imp.line
            ]
            scope_text = "\n".join(lines[row] for row in scope_rows)
            used = _safe("imported_symbols", resolver.imported_symbols, imp, scope_text, default=[])
            for name, is_member in used:
                usage_name = f"{resolver.member_prefix(imp)}.{name}" if is_member else imp.local_name
                where = self._find_usage(lines, scope_rows, name if is_member else imp.local_name)
                if where is None:
                    continue
                found = _safe(
                    "locate_import", resolver.locate_import,
                    imp, name, is_member, path, session.project_root,
                )
                definition = None
                if found is not None:
                    target_id = _location_id(found)
                    if target_id != node.id:
                        self.build_tree(found.path, found.position, depth + 1, max_depth, "down", node.id)
                    definition = _definition(found, target_id if target_id in self.graph else None)
                else:
                    logger.debug("Import %s from %s did not resolve", name, imp.module_path)
                node.add_usage(VariableUse(
                    name=usage_name,
                    line=where.line + 1,
                    column=where.character + 1,
                    definition=definition,
                    is_import=True,
                    import_info=imp.to_dict(),
                ))

    @staticmethod
    def _find_usage(lines: List[str], rows: List[int], name: str) -> Optional[Position]:
        pattern = word_pattern(name)
        for row in rows:
            match = pattern.search(lines[row])
            if match:
                return Position(row, match.start())
        return None

    def _expand_local(
        self,
        node: Node,
        path: str,
        lines: List[str],
        tree: Optional[SyntaxTree],
        bounds: ScopeBounds,
        language: Optional[str],
        depth: int,
        max_depth: int,
    ) -> None:
        self.session.local_scopes[node.id] = (path, bounds)
        calls = detect_calls(path, lines, bounds, language, tree)
        for name, call in calls.items():
            where = self._call_position(lines, bounds, call)
            definitions = _safe("definitions", self.provider.definitions, path, where, default=[])
            definition = None
            for loc in definitions:
                dep_id = _location_id(loc)
                if dep_id == node.id:
                    definition = _definition(loc, dep_id)
                    break
                if depth < max_depth:
                    self.build_tree(loc.path, loc.position, depth + 1, max_depth, "down", node.id)
                if dep_id in self.graph:
                    add_dependency(self.graph, node.id, dep_id)
                    definition = _definition(loc, dep_id)
                    break
                if definition is None:
                    definition = _definition(loc)
            node.add_usage(VariableUse(
                name=name,
                line=where.line + 1,
                column=where.character + 1,
                definition=definition,
                is_call=True,
            ))

    @staticmethod
    def _call_position(lines: List[str], bounds: ScopeBounds, call: CallInfo) -> Position:
        if 0 <= call.line < len(lines) and bounds.contains(call.line) and 0 <= call.column <= len(lines[call.line]):
            return Position(call.line, call.column)
        found = locate_in_scope(lines, bounds, call.name)
        if found is not None:
            return found
        return Position(bounds.start_line, 0)

    # ------------------------------------------------------------------
    # Node enrichment
    # ------------------------------------------------------------------

    def _enrich(
        self,
        node: Node,
        lines: List[str],
        tree: Optional[SyntaxTree],
        bounds: ScopeBounds,
        pos: Position,
        language: Optional[str],
    ) -> None:
        start = bounds.start_line if bounds.structural else pos.line
        node.source_text = list(lines[start:bounds.end_line])

        doc: List[str] = []
        if tree is not None and language == "python":
            doc = python_docstring(tree, enclosing_function(tree, pos))
        if not doc:
            doc = preceding_comment(lines, start)
        node.doc_comment = doc

        if self.session.config.react_enabled and is_component(lines, node.symbol, node.full_path):
            node.extensions.update({
                "component": True,
                "props": extract_component_props(lines, pos.line, node.symbol),
            })

    # ==================================================================
    # Variable analysis
    # ==================================================================

    def analyse_variables(self) -> None:
        """Link identifiers used in analysed scopes to nodes already in the graph.

        Runs after traversal so that every candidate definition is known;
        it never creates nodes or edges.
        """
        session = self.session
        symbols = {n.symbol for n in self.graph}
        for node_id, (path, bounds) in list(session.local_scopes.items()):
            node = self.graph.get(node_id)
            lines = session.reader.lines(path)
            if node is None or not lines:
                continue
            identifiers = find_identifiers(lines, bounds, session.language_for(path), session.reader.tree(path))
            recorded = {u.name for u in node.variables_used}
            for name, where in identifiers.items():
                if name == node.symbol or name in recorded or name not in symbols:
                    continue
                key = probe_key(name, path)
                if key not in session.probes:
                    session.probes[key] = _safe("definitions", self.provider.definitions, path, where, default=[])
                for loc in session.probes[key]:
                    dep_id = _location_id(loc)
                    if dep_id != node_id and dep_id in self.graph:
                        node.add_usage(VariableUse(
                            name=name,
                            line=where.line + 1,
                            column=where.character + 1,
                            definition=_definition(loc, dep_id),
                        ))
                        break


# ======================================================================
# Entry point
# ======================================================================

def build(
    seed_file: str,
    seed_position: Position,
    max_depth: Optional[int] = None,
    direction: Optional[str] = None,
    provider: Any = None,
    analysis: Optional[AnalysisConfig] = None,
    project_root: Optional[Path] = None,
    find_implementation: Optional[bool] = None,
) -> BuildResult:
    """Build the dependency graph around the symbol at *seed_position*.

    Unset arguments fall back to *analysis* (or the defaults). Any
    unexpected failure is logged and reported through ``ok``/``error``;
    nothing escapes this function.
    """
    settings = analysis or AnalysisConfig()
    depth_limit = settings.max_depth if max_depth is None else max_depth
    walk = settings.direction if direction is None else direction
    want_impl = settings.find_implementation if find_implementation is None else find_implementation

    session: Optional[TraversalSession] = None
    try:
        if depth_limit < 1:
            raise DeptreeError(f"max_depth must be >= 1, got {depth_limit}")
        if walk not in config.DIRECTIONS:
            raise DeptreeError(f"direction must be one of {', '.join(config.DIRECTIONS)}, got {walk!r}")

        root_dir = Path(project_root) if project_root else find_project_root(Path(seed_file), settings)
        if provider is None:
            from .provider import LocalAnalysisProvider

            provider = LocalAnalysisProvider(root_dir, settings)

        session = TraversalSession(provider, settings, root_dir)
        builder = TreeBuilder(session)
        root = builder.build_tree(seed_file, seed_position, 0, depth_limit, walk)
        if root is None:
            message = (
                f"No symbol found at {seed_file}:{seed_position.line + 1}:{seed_position.character + 1}"
            )
            logger.warning(message)
            return BuildResult(session.graph, None, ok=False, error=message)

        builder.analyse_variables()
        if want_impl:
            from .implementation import ImplementationFinder

            ImplementationFinder(session).find(root)

        logger.info(
            "Built graph for %s: %d node(s), %d edge(s)",
            root.symbol, len(session.graph), session.graph.edge_count(),
        )
        return BuildResult(session.graph, root.id, ok=True)
    except Exception as exc:
        logger.error("Dependency tree build failed: %s", exc)
        logger.debug("Build failure details", exc_info=True)
        graph = session.graph if session is not None else DependencyGraph()
        return BuildResult(graph, None, ok=False, error=str(exc))
    finally:
        if session is not None:
            session.close()
