"""Arena-style node/edge operations on a :class:`DependencyGraph`."""

from __future__ import annotations

import logging
from typing import Optional

from .errors import IdentityCollisionError
from .models import DependencyGraph, Node, Position
from .session import compute_id, normalise_path

logger = logging.getLogger(__name__)


def get_or_create(
    graph: DependencyGraph,
    file: str,
    pos: Position,
    symbol: str,
    is_root: bool = False,
    depth: int = 0,
) -> Node:
    """Return the node at *pos* in *file*, creating it on first sight.

    An existing node is returned unchanged apart from keeping the smallest
    discovery depth seen so far.
    """
    full_path = normalise_path(file)
    node_id = compute_id(full_path, pos.line, pos.character)
    node = graph.nodes.get(node_id)
    if node is not None:
        if node.full_path != full_path or node.position != pos:
            existing = (node.full_path, node.line - 1, node.column - 1)
            incoming = (full_path, pos.line, pos.character)
            logger.error("Stored node %s disagrees with its id", node_id)
            raise IdentityCollisionError(node_id, existing, incoming)
        node.depth = min(node.depth, depth)
        return node

    node = Node(
        id=node_id,
        symbol=symbol,
        full_path=full_path,
        line=pos.line + 1,
        column=pos.character + 1,
        depth=depth,
        is_root=is_root,
    )
    graph.nodes[node_id] = node
    if is_root:
        graph.root_id = node_id
    logger.debug("New node %s (%s) at depth %d", symbol, node_id, depth)
    return node


def connect(graph: DependencyGraph, node_id: str, other_id: str, direction: str) -> None:
    """Wire *node_id* (newly discovered) to *other_id* (the node it came from).

    Walking ``up`` finds callers, so the new node calls the other one;
    walking ``down`` (or ``both``) finds callees, so the other node calls
    the new one.
    """
    if node_id == other_id:
        return
    node = graph.get(node_id)
    other = graph.get(other_id)
    if node is None or other is None:
        logger.debug("connect(%s, %s): unknown node id", node_id, other_id)
        return
    if direction == "up":
        node.add_child(other_id)
        other.add_parent(node_id)
    else:
        node.add_parent(other_id)
        other.add_child(node_id)


def add_dependency(graph: DependencyGraph, node_id: str, dep_id: str) -> None:
    """Record that *node_id* uses *dep_id*."""
    if node_id == dep_id:
        return
    node = graph.get(node_id)
    dep = graph.get(dep_id)
    if node is None or dep is None:
        logger.debug("add_dependency(%s, %s): unknown node id", node_id, dep_id)
        return
    node.add_child(dep_id)
    dep.add_parent(node_id)


def ancestors(graph: DependencyGraph, node_id: str, limit: Optional[int] = None) -> list:
    """Breadth-first parent ids of *node_id* (excluding itself)."""
    return _walk(graph, node_id, "parents", limit)


def descendants(graph: DependencyGraph, node_id: str, limit: Optional[int] = None) -> list:
    """Breadth-first child ids of *node_id* (excluding itself)."""
    return _walk(graph, node_id, "children", limit)


def _walk(graph: DependencyGraph, node_id: str, attr: str, limit: Optional[int]) -> list:
    seen = {node_id}
    order = []
    frontier = [node_id]
    while frontier:
        nxt = []
        for current in frontier:
            node = graph.get(current)
            if node is None:
                continue
            for neighbour in getattr(node, attr):
                if neighbour in seen:
                    continue
                seen.add(neighbour)
                order.append(neighbour)
                nxt.append(neighbour)
                if limit is not None and len(order) >= limit:
                    return order
        frontier = nxt
    return order
