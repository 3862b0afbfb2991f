"""Node identity, the exploration cache and the per-build traversal session."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Set, Tuple

from .config_manager import AnalysisConfig
from .errors import IdentityCollisionError
from .models import DependencyGraph, Location, ScopeBounds
from .sources import SourceReader, language_for_path

if TYPE_CHECKING:
    from .languages import LanguageResolver
    from .provider import AnalysisProvider

logger = logging.getLogger(__name__)


def normalise_path(path: str) -> str:
    return os.path.abspath(os.path.expanduser(str(path)))


def compute_id(file: str, line: int, col: int) -> str:
    """Canonical node id for a 0-based position in *file*.

    Line and column are integers, so the last two ``:``-separated fields
    always identify them and the prefix is the path; distinct triples
    never share an id.
    """
    return f"{normalise_path(file)}:{int(line)}:{int(col)}"


def split_id(node_id: str) -> Tuple[str, int, int]:
    path, line, col = node_id.rsplit(":", 2)
    return path, int(line), int(col)


def expansion_key(node_id: str, direction: str, depth: int) -> str:
    return f"{node_id}|{direction}|{depth}"


def probe_key(symbol: str, context: str) -> str:
    return f"{symbol}@{context}"


class ExplorationCache:
    """Keys of expansions already performed in one session."""

    def __init__(self) -> None:
        self._keys: Set[str] = set()

    def seen(self, key: str) -> bool:
        return key in self._keys

    def mark_seen(self, key: str) -> None:
        self._keys.add(key)

    def clear(self) -> None:
        self._keys.clear()

    def __len__(self) -> int:
        return len(self._keys)


class TraversalSession:
    """Everything one build owns: graph, cache, memo tables and collaborators.

    Sessions are never shared between builds. The resolvers read files
    through the provider so that an in-memory provider sees a consistent
    view of the sources.
    """

    def __init__(
        self,
        provider: "AnalysisProvider",
        analysis: Optional[AnalysisConfig] = None,
        project_root: Optional[Path] = None,
        graph: Optional[DependencyGraph] = None,
    ) -> None:
        self.provider = provider
        self.config = analysis or AnalysisConfig()
        self.project_root = Path(project_root or Path.cwd()).resolve()
        self.graph = graph if graph is not None else DependencyGraph()
        self.cache = ExplorationCache()
        self.analysed: Set[str] = set()
        self.probes: Dict[str, List[Location]] = {}
        self.local_scopes: Dict[str, Tuple[str, ScopeBounds]] = {}
        self._languages: Dict[str, Optional[str]] = {}
        self._resolvers: Dict[str, Optional["LanguageResolver"]] = {}
        self._coordinates: Dict[str, Tuple[str, int, int]] = {}
        self.reader = SourceReader(read_file=provider.read_file, parse_tree=provider.parse_tree)

    def __enter__(self) -> "TraversalSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Language memo
    # ------------------------------------------------------------------

    def language_for(self, path: str) -> Optional[str]:
        if path not in self._languages:
            self._languages[path] = language_for_path(path)
        return self._languages[path]

    def resolver_for(self, path: str) -> Optional["LanguageResolver"]:
        from .languages import get_resolver

        language = self.language_for(path)
        if language is None:
            return None
        if language not in self._resolvers:
            self._resolvers[language] = get_resolver(language, reader=self.reader, analysis=self.config)
        return self._resolvers[language]

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    def register_identity(self, node_id: str, path: str, line: int, col: int) -> None:
        """Bind *node_id* to its coordinates, raising on a mismatch."""
        incoming = (normalise_path(path), line, col)
        existing = self._coordinates.get(node_id)
        if existing is None:
            self._coordinates[node_id] = incoming
            return
        if existing != incoming:
            logger.error("Identity collision on %s: %s vs %s", node_id, existing, incoming)
            raise IdentityCollisionError(node_id, existing, incoming)

    def close(self) -> None:
        self.cache.clear()
        self.analysed.clear()
        self.probes.clear()
        self.local_scopes.clear()
        self._languages.clear()
        self._resolvers.clear()
        self._coordinates.clear()
        self.reader.clear()
