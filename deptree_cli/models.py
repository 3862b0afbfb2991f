"""Core data models shared by the builder, resolvers and presentation layers."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterator, List, Optional


@dataclass(frozen=True)
class Position:
    """0-based line and character offset."""

    line: int
    character: int


@dataclass(frozen=True)
class Location:
    path: str
    position: Position


@dataclass
class ImportInfo:
    """One imported binding.

    ``imported_name`` is the name exported by the target module (or the
    module binding itself for namespace-like kinds); ``alias`` is the local
    rename if any.
    """

    imported_name: str
    module_path: str
    alias: Optional[str] = None
    kind: str = "named"
    line: int = 0

    @property
    def local_name(self) -> str:
        return self.alias or self.imported_name

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CallInfo:
    name: str
    line: int
    column: int
    discovery_method: str = "regex"


@dataclass
class ScopeBounds:
    """Line range of a scope; ``end_line`` is exclusive."""

    start_line: int
    end_line: int
    structural: bool = True

    def contains(self, line: int) -> bool:
        return self.start_line <= line < self.end_line


@dataclass
class ImplementationMatch:
    """Pattern hit, 1-based like an editor's line/column."""

    line: int
    column: int
    kind: str
    content: str = ""


@dataclass
class VariableUse:
    name: str
    line: int
    column: int
    definition: Optional[Dict[str, Any]] = None
    is_call: bool = False
    is_import: bool = False
    import_info: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "line": self.line, "column": self.column}
        if self.definition is not None:
            data["definition"] = self.definition
        if self.is_call:
            data["is_call"] = True
        if self.is_import:
            data["is_import"] = True
            data["import_info"] = self.import_info
        return data


@dataclass
class Node:
    """One analysed symbol occurrence.

    ``line`` and ``column`` are 1-based display coordinates; ``id`` is built
    from the 0-based internal position.
    """

    id: str
    symbol: str
    full_path: str
    line: int
    column: int
    depth: int = 0
    children: List[str] = field(default_factory=list)
    parents: List[str] = field(default_factory=list)
    is_root: bool = False
    is_implementation: bool = False
    implements: Optional[str] = None
    implementation_id: Optional[str] = None
    variables_used: List[VariableUse] = field(default_factory=list)
    source_text: List[str] = field(default_factory=list)
    doc_comment: List[str] = field(default_factory=list)
    extensions: Dict[str, Any] = field(default_factory=dict)

    @property
    def file(self) -> str:
        return os.path.basename(self.full_path)

    @property
    def position(self) -> Position:
        return Position(self.line - 1, self.column - 1)

    def add_child(self, node_id: str) -> bool:
        if node_id in self.children:
            return False
        self.children.append(node_id)
        return True

    def add_parent(self, node_id: str) -> bool:
        if node_id in self.parents:
            return False
        self.parents.append(node_id)
        return True

    def add_usage(self, usage: VariableUse) -> bool:
        """Append *usage* unless one with the same name and call flag exists."""
        for existing in self.variables_used:
            if existing.name == usage.name and existing.is_call == usage.is_call:
                if existing.definition is None and usage.definition is not None:
                    existing.definition = usage.definition
                return False
        self.variables_used.append(usage)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "symbol": self.symbol,
            "file": self.file,
            "full_path": self.full_path,
            "line": self.line,
            "column": self.column,
            "depth": self.depth,
            "children": list(self.children),
            "parents": list(self.parents),
            "is_root": self.is_root,
            "is_implementation": self.is_implementation,
            "implements": self.implements,
            "implementation_id": self.implementation_id,
            "variables_used": [u.to_dict() for u in self.variables_used],
            "source_text": list(self.source_text),
            "doc_comment": list(self.doc_comment),
            "extensions": dict(self.extensions),
        }


@dataclass
class DependencyGraph:
    nodes: Dict[str, Node] = field(default_factory=dict)
    root_id: Optional[str] = None

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes.values())

    def get(self, node_id: Optional[str]) -> Optional[Node]:
        if node_id is None:
            return None
        return self.nodes.get(node_id)

    @property
    def root(self) -> Optional[Node]:
        return self.get(self.root_id)

    def find(self, symbol: str) -> List[Node]:
        """All nodes carrying *symbol*, in discovery order."""
        return [n for n in self.nodes.values() if n.symbol == symbol]

    def files(self) -> List[str]:
        return sorted({n.full_path for n in self.nodes.values()})

    def edge_count(self) -> int:
        return sum(len(n.children) for n in self.nodes.values())


@dataclass
class BuildResult:
    graph: DependencyGraph
    root_id: Optional[str] = None
    ok: bool = True
    error: Optional[str] = None

    @property
    def root(self) -> Optional[Node]:
        return self.graph.get(self.root_id)
