"""Tests for the recursive tree builder."""

from pathlib import Path

import pytest

from deptree_cli.builder import TreeBuilder, build
from deptree_cli.models import Location, Position
from deptree_cli.session import TraversalSession, compute_id


def _ids(graph, *symbols):
    return [graph.find(s)[0].id for s in symbols]


def test_simple_chain_down(chain_files, fake_provider_cls, temp_dir: Path):
    """f -> g -> h seeded at f, direction down."""
    path, lines, defs = chain_files
    provider = fake_provider_cls({path: lines}, defs)

    result = build(path, Position(0, 4), max_depth=3, direction="down",
                   provider=provider, project_root=temp_dir, find_implementation=False)

    assert result.ok
    graph = result.graph
    assert len(graph) == 3
    f, g, h = (graph.find(s)[0] for s in ("f", "g", "h"))
    assert f.is_root and result.root_id == f.id
    assert f.children == [g.id]
    assert g.children == [h.id]
    assert h.children == []
    assert g.parents == [f.id]
    assert (f.depth, g.depth, h.depth) == (0, 1, 2)


def test_call_usage_recorded_with_definition(chain_files, fake_provider_cls, temp_dir: Path):
    path, lines, defs = chain_files
    provider = fake_provider_cls({path: lines}, defs)

    result = build(path, Position(0, 4), max_depth=3, direction="down",
                   provider=provider, project_root=temp_dir, find_implementation=False)

    f = result.root
    calls = [u for u in f.variables_used if u.is_call]
    assert [u.name for u in calls] == ["g"]
    assert calls[0].line == 2
    assert calls[0].definition["node_id"] == compute_id(path, 100, 4)


def test_mutual_recursion_terminates(temp_dir: Path, fake_provider_cls, make_layout):
    path = str(temp_dir / "mutual.py")
    lines = make_layout({
        0: ["def f():", "    return g()"],
        100: ["def g():", "    return f()"],
    })
    f_loc = Location(path, Position(0, 4))
    g_loc = Location(path, Position(100, 4))
    provider = fake_provider_cls(
        {path: lines},
        defs={"f": f_loc, "g": g_loc},
        refs={"f": [g_loc], "g": [f_loc]},
    )

    result = build(path, Position(0, 4), max_depth=5, direction="both",
                   provider=provider, project_root=temp_dir, find_implementation=False)

    assert result.ok
    graph = result.graph
    assert len(graph) == 2
    f_id, g_id = _ids(graph, "f", "g")
    f, g = graph.get(f_id), graph.get(g_id)
    assert g_id in f.children and g_id in f.parents
    assert f_id in g.children and f_id in g.parents
    assert len(f.children) == len(set(f.children))
    assert len(g.parents) == len(set(g.parents))


def test_depth_bound(temp_dir: Path, fake_provider_cls, make_layout):
    path = str(temp_dir / "long.py")
    lines = make_layout({
        0: ["def f():", "    return g()"],
        100: ["def g():", "    return h()"],
        200: ["def h():", "    return k()"],
        300: ["def k():", "    return 0"],
    }, length=400)
    defs = {name: Location(path, Position(row, 4)) for name, row in
            (("f", 0), ("g", 100), ("h", 200), ("k", 300))}
    provider = fake_provider_cls({path: lines}, defs)

    result = build(path, Position(0, 4), max_depth=2, direction="down",
                   provider=provider, project_root=temp_dir, find_implementation=False)

    graph = result.graph
    assert {n.symbol for n in graph} == {"f", "g", "h"}
    assert max(n.depth for n in graph) <= 2
    # k is still recorded as a call of h, just without a node
    h = graph.find("h")[0]
    assert [u.name for u in h.variables_used if u.is_call] == ["k"]


def test_up_direction_wires_callers(temp_dir: Path, fake_provider_cls, make_layout):
    path = str(temp_dir / "callers.py")
    lines = make_layout({
        0: ["def target():", "    return 1"],
        100: ["def caller():", "    return target()"],
    })
    caller = Location(path, Position(100, 4))
    provider = fake_provider_cls(
        {path: lines},
        defs={"target": Location(path, Position(0, 4))},
        refs={"target": [caller]},
    )

    result = build(path, Position(0, 4), max_depth=2, direction="up",
                   provider=provider, project_root=temp_dir, find_implementation=False)

    target = result.root
    caller_node = result.graph.find("caller")[0]
    assert target.parents == [caller_node.id]
    assert caller_node.children == [target.id]
    assert caller_node.depth == 1


def test_unresolved_import_records_usage_only(temp_dir: Path, fake_provider_cls, make_layout):
    path = str(temp_dir / "uses_import.py")
    lines = make_layout({
        0: ["from missing_pkg.mod import helper"],
        3: ["def f():", "    return helper(1)"],
    }, length=120)
    provider = fake_provider_cls({path: lines}, defs={"f": Location(path, Position(3, 4))})

    result = build(path, Position(3, 4), max_depth=3, direction="down",
                   provider=provider, project_root=temp_dir, find_implementation=False)

    assert result.ok
    assert len(result.graph) == 1
    usages = [u for u in result.root.variables_used if u.name == "helper"]
    assert usages
    assert all(u.definition is None for u in usages)
    imported = [u for u in usages if u.is_import]
    assert imported[0].line == 5
    assert imported[0].import_info["module_path"] == "missing_pkg.mod"


def test_resolved_import_creates_child(temp_dir: Path, fake_provider_cls):
    pkg = temp_dir / "pkg"
    pkg.mkdir()
    (pkg / "__init__.py").write_text("")
    (pkg / "helpers.py").write_text("def helper(x):\n    return x\n")
    main = pkg / "main.py"
    main.write_text("from .helpers import helper\n\n\ndef run():\n    return helper(2)\n")
    provider = fake_provider_cls({}, defs={"run": Location(str(main), Position(3, 4))})

    result = build(str(main), Position(3, 4), max_depth=2, direction="down",
                   provider=provider, project_root=temp_dir, find_implementation=False)

    helper = result.graph.find("helper")
    assert len(helper) == 1
    assert helper[0].id in result.root.children
    usage = next(u for u in result.root.variables_used if u.is_import)
    assert usage.definition["node_id"] == helper[0].id


def test_variable_analysis_links_existing_nodes(temp_dir: Path, fake_provider_cls, make_layout):
    path = str(temp_dir / "vars.py")
    lines = make_layout({
        0: ["def f():", "    handler = g", "    return g() + h()"],
        100: ["def g():", "    return h"],
        200: ["def h():", "    return 0"],
    })
    defs = {name: Location(path, Position(row, 4)) for name, row in (("f", 0), ("g", 100), ("h", 200))}
    provider = fake_provider_cls({path: lines}, defs)

    result = build(path, Position(0, 4), max_depth=2, direction="down",
                   provider=provider, project_root=temp_dir, find_implementation=False)

    f = result.root
    assert ("g", True) in [(u.name, u.is_call) for u in f.variables_used]
    assert "handler" not in [u.name for u in f.variables_used]

    g = result.graph.find("g")[0]
    h = result.graph.find("h")[0]
    usage = next(u for u in g.variables_used if u.name == "h")
    assert not usage.is_call
    assert usage.definition["node_id"] == h.id
    # variable links never add edges
    assert g.children == []


def test_invalid_inputs_report_failure(chain_files, fake_provider_cls, temp_dir: Path):
    path, lines, defs = chain_files
    provider = fake_provider_cls({path: lines}, defs)

    outside = build(path, Position(999, 0), provider=provider, project_root=temp_dir)
    assert not outside.ok and outside.root_id is None
    assert "No symbol" in outside.error

    bad_direction = build(path, Position(0, 4), direction="sideways", provider=provider, project_root=temp_dir)
    assert not bad_direction.ok

    bad_depth = build(path, Position(0, 4), max_depth=0, provider=provider, project_root=temp_dir)
    assert not bad_depth.ok

    text_file = str(temp_dir / "notes.txt")
    unsupported = build(text_file, Position(0, 0),
                        provider=fake_provider_cls({text_file: ["hello world"]}), project_root=temp_dir)
    assert not unsupported.ok
    assert len(unsupported.graph) == 0


def test_provider_failures_prune_branches(chain_files, broken_provider_cls, temp_dir: Path):
    path, lines, defs = chain_files
    provider = broken_provider_cls({path: lines}, defs)

    result = build(path, Position(0, 4), max_depth=3, direction="both",
                   provider=provider, project_root=temp_dir, find_implementation=False)

    assert result.ok
    assert len(result.graph) == 1
    assert result.root.symbol == "f"


def test_repeated_expansion_is_cached(chain_files, fake_provider_cls, temp_dir: Path):
    path, lines, defs = chain_files
    provider = fake_provider_cls({path: lines}, defs)
    session = TraversalSession(provider, project_root=temp_dir)
    builder = TreeBuilder(session)

    first = builder.build_tree(path, Position(100, 4), 0, 1, "down")
    calls_after_first = len(provider.calls)
    second = builder.build_tree(path, Position(100, 4), 0, 1, "down")

    assert first is second
    assert len(provider.calls) == calls_after_first
    assert len(session.graph) == 2


def test_keyword_position_is_pruned(chain_files, fake_provider_cls, temp_dir: Path):
    path, lines, defs = chain_files
    session = TraversalSession(fake_provider_cls({path: lines}, defs), project_root=temp_dir)

    assert TreeBuilder(session).build_tree(path, Position(0, 0), 0, 2, "down") is None
    assert len(session.graph) == 0


def test_node_source_and_doc_comment(temp_dir: Path, fake_provider_cls, make_layout):
    path = str(temp_dir / "documented.ts")
    lines = make_layout({
        20: ["/**", " * Adds numbers.", " */", "function add(a, b) {", "  return a + b;", "}"],
    }, length=40)
    provider = fake_provider_cls({path: lines}, defs={"add": Location(path, Position(23, 9))})

    result = build(path, Position(23, 9), max_depth=1, direction="down",
                   provider=provider, project_root=temp_dir, find_implementation=False)

    root = result.root
    assert root.source_text[0] == "function add(a, b) {"
    assert any("Adds numbers." in line for line in root.doc_comment)


@pytest.mark.parametrize("direction", ["up", "down", "both"])
def test_fixture_project_python(fixtures_path: Path, direction: str):
    """End-to-end build on the sample project with the local provider."""
    pytest.importorskip("tree_sitter_python")
    root_dir = fixtures_path / "python"
    main = root_dir / "shop" / "main.py"

    result = build(str(main), Position(3, 4), max_depth=3, direction=direction,
                   project_root=root_dir, find_implementation=False)

    assert result.ok
    assert result.root.symbol == "checkout"
    if direction != "up":
        symbols = {n.symbol for n in result.graph}
        assert {"checkout", "total_price", "apply_tax"} <= symbols
        total = result.graph.find("total_price")[0]
        assert total.id in result.root.children
