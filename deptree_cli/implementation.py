"""Link a declaration node to its concrete implementation."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Optional

from .config_manager import AnalysisConfig, find_project_root
from .ignore import PathExcluder, iter_source_files
from .languages import generic_implementation_patterns, word_pattern
from .models import DependencyGraph, ImplementationMatch, Location, Node, Position
from .session import ExplorationCache, TraversalSession, compute_id, normalise_path
from .sources import LANGUAGE_MAP

logger = logging.getLogger(__name__)


class ImplementationFinder:
    """Secondary pass run once against the root after traversal.

    The provider's own answer wins; otherwise a capped scan over the
    project applies each file's implementation patterns until the first
    match.
    """

    def __init__(self, session: TraversalSession) -> None:
        self.session = session
        self.config = session.config

    def find(self, root: Node) -> Optional[Node]:
        location = self._from_provider(root)
        if location is None:
            location = self._from_patterns(root)
        if location is None:
            logger.debug("No implementation found for %s", root.symbol)
            return None
        return self._materialise(root, location)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def _from_provider(self, root: Node) -> Optional[Location]:
        try:
            location = self.session.provider.implementation(root.full_path, root.position)
        except Exception as exc:  # provider failures fall back to patterns
            logger.debug("implementation query failed for %s: %s", root.id, exc)
            return None
        if location is None:
            return None
        if compute_id(location.path, location.position.line, location.position.character) == root.id:
            return None
        return location

    def candidate_files(self, root: Node) -> List[Path]:
        """Files mentioning the root symbol, at most ``implementation_search_cap``."""
        session = self.session
        excluder = PathExcluder(session.project_root, self.config.exclude_patterns)
        pattern = word_pattern(root.symbol)
        found: List[Path] = []
        for path in iter_source_files(
            session.project_root, tuple(LANGUAGE_MAP), excluder, limit=self.config.max_scan_files,
        ):
            if normalise_path(str(path)) == root.full_path:
                continue
            text = session.reader.text(str(path))
            if not text or not pattern.search(text):
                continue
            found.append(path)
            if len(found) >= self.config.implementation_search_cap:
                break
        return found

    def _from_patterns(self, root: Node) -> Optional[Location]:
        for path in self.candidate_files(root):
            lines = self.session.reader.lines(str(path)) or []
            resolver = self.session.resolver_for(str(path))
            match: Optional[ImplementationMatch]
            if resolver is not None:
                match = resolver.find_implementation_patterns(path, root.symbol, lines)
            else:
                match = generic_implementation_patterns(root.symbol, lines)
            if match is not None:
                logger.debug("Implementation of %s in %s (%s)", root.symbol, path, match.kind)
                return Location(str(path), Position(match.line - 1, match.column - 1))
        return None

    # ------------------------------------------------------------------
    # Linking
    # ------------------------------------------------------------------

    def _materialise(self, root: Node, location: Location) -> Optional[Node]:
        from .builder import TreeBuilder

        session = self.session
        saved = session.cache
        session.cache = ExplorationCache()
        depth = root.depth + 1
        try:
            impl = TreeBuilder(session).build_tree(location.path, location.position, depth, depth + 1, "none")
        finally:
            session.cache = saved
        if impl is None or impl.id == root.id:
            return None
        impl.is_implementation = True
        impl.implements = root.id
        root.implementation_id = impl.id
        logger.info("Linked %s to implementation %s", root.symbol, impl.id)
        return impl


def find_implementation(
    root_node: Node,
    graph: DependencyGraph,
    provider: Any = None,
    analysis: Optional[AnalysisConfig] = None,
    project_root: Optional[Path] = None,
) -> Optional[Node]:
    """Find and attach the implementation of *root_node* to *graph*.

    Works on a graph returned by :func:`deptree_cli.builder.build`: a
    short-lived session is opened over the existing graph, so the linked
    node and its edges land in *graph* in place. Returns the
    implementation node, or None when there is none.
    """
    settings = analysis or AnalysisConfig()
    root_dir = Path(project_root) if project_root else find_project_root(Path(root_node.full_path), settings)
    if provider is None:
        from .provider import LocalAnalysisProvider

        provider = LocalAnalysisProvider(root_dir, settings)

    with TraversalSession(provider, settings, root_dir, graph=graph) as session:
        for node in graph:
            session.register_identity(node.id, node.full_path, node.position.line, node.position.character)
        return ImplementationFinder(session).find(root_node)
