"""Tests for node identity, the exploration cache and graph operations."""

import pytest

from deptree_cli.errors import IdentityCollisionError
from deptree_cli.graph import add_dependency, ancestors, connect, descendants, get_or_create
from deptree_cli.models import DependencyGraph, Position
from deptree_cli.session import (
    ExplorationCache,
    TraversalSession,
    compute_id,
    expansion_key,
    probe_key,
    split_id,
)


def test_compute_id_is_absolute_and_zero_based(temp_dir):
    node_id = compute_id(str(temp_dir / "a.py"), 3, 7)
    assert node_id == f"{temp_dir / 'a.py'}:3:7"
    assert split_id(node_id) == (str(temp_dir / "a.py"), 3, 7)


def test_compute_id_distinguishes_triples():
    ids = {compute_id("/p/a.py", line, col) for line in range(3) for col in range(3)}
    assert len(ids) == 9
    assert compute_id("/p/a:1.py", 2, 3) != compute_id("/p/a.py", 12, 3)


def test_cache_keys():
    cache = ExplorationCache()
    key = expansion_key("/p/a.py:0:4", "up", 1)
    assert not cache.seen(key)
    cache.mark_seen(key)
    assert cache.seen(key)
    assert not cache.seen(expansion_key("/p/a.py:0:4", "up", 2))
    assert probe_key("f", "/p/a.py") == "f@/p/a.py"
    cache.clear()
    assert len(cache) == 0


def test_get_or_create_is_idempotent():
    graph = DependencyGraph()
    first = get_or_create(graph, "/p/a.py", Position(1, 4), "f", is_root=True)
    second = get_or_create(graph, "/p/a.py", Position(1, 4), "other")

    assert first is second
    assert second.symbol == "f"
    assert len(graph) == 1
    assert graph.root_id == first.id
    assert (first.line, first.column) == (2, 5)
    assert first.file == "a.py"


def test_get_or_create_keeps_smallest_depth():
    graph = DependencyGraph()
    get_or_create(graph, "/p/a.py", Position(0, 0), "f", depth=3)
    node = get_or_create(graph, "/p/a.py", Position(0, 0), "f", depth=1)
    assert node.depth == 1


def test_get_or_create_detects_corrupted_node():
    graph = DependencyGraph()
    node = get_or_create(graph, "/p/a.py", Position(0, 0), "f")
    node.line = 10
    with pytest.raises(IdentityCollisionError):
        get_or_create(graph, "/p/a.py", Position(0, 0), "f")


def test_connect_up_and_down():
    graph = DependencyGraph()
    x = get_or_create(graph, "/p/a.py", Position(0, 0), "x")
    y = get_or_create(graph, "/p/a.py", Position(5, 0), "y")

    connect(graph, x.id, y.id, "up")
    assert y.id in x.children and x.id in y.parents

    z = get_or_create(graph, "/p/a.py", Position(9, 0), "z")
    connect(graph, z.id, x.id, "down")
    assert x.id in z.parents and z.id in x.children


def test_connect_never_duplicates_edges():
    graph = DependencyGraph()
    x = get_or_create(graph, "/p/a.py", Position(0, 0), "x")
    y = get_or_create(graph, "/p/a.py", Position(5, 0), "y")

    for _ in range(3):
        connect(graph, x.id, y.id, "up")
        add_dependency(graph, x.id, y.id)
    connect(graph, x.id, x.id, "up")

    assert x.children == [y.id]
    assert y.parents == [x.id]
    assert graph.edge_count() == 1


def test_connect_ignores_unknown_ids():
    graph = DependencyGraph()
    x = get_or_create(graph, "/p/a.py", Position(0, 0), "x")
    connect(graph, x.id, "/p/missing.py:0:0", "down")
    add_dependency(graph, "/p/missing.py:0:0", x.id)
    assert x.children == [] and x.parents == []


def test_ancestors_and_descendants():
    graph = DependencyGraph()
    a, b, c = (get_or_create(graph, "/p/a.py", Position(i, 0), s) for i, s in enumerate("abc"))
    add_dependency(graph, a.id, b.id)
    add_dependency(graph, b.id, c.id)
    add_dependency(graph, c.id, a.id)

    assert descendants(graph, a.id) == [b.id, c.id]
    assert ancestors(graph, a.id) == [c.id, b.id]
    assert descendants(graph, a.id, limit=1) == [b.id]


def test_session_close_keeps_graph(fake_provider_cls, temp_dir):
    session = TraversalSession(fake_provider_cls({}), project_root=temp_dir)
    get_or_create(session.graph, "/p/a.py", Position(0, 0), "a")
    session.cache.mark_seen("k")
    session.register_identity("/p/a.py:0:0", "/p/a.py", 0, 0)

    with pytest.raises(IdentityCollisionError):
        session.register_identity("/p/a.py:0:0", "/p/b.py", 0, 0)

    session.close()
    assert len(session.cache) == 0
    assert len(session.graph) == 1
