"""Tests for the implementation finder."""

from pathlib import Path

from deptree_cli.builder import TreeBuilder, build
from deptree_cli.implementation import ImplementationFinder, find_implementation
from deptree_cli.models import Location, Position
from deptree_cli.session import TraversalSession


def _write_declaration_pair(temp_dir: Path):
    decl = temp_dir / "types.d.ts"
    decl.write_text("export declare function formatPrice(value: number): string;\n")
    impl = temp_dir / "util.ts"
    impl.write_text(
        "export function formatPrice(value: number): string {\n"
        "  return String(value);\n"
        "}\n"
    )
    return decl, impl


def test_pattern_search_links_implementation(temp_dir: Path, fake_provider_cls):
    decl, impl = _write_declaration_pair(temp_dir)
    col = decl.read_text().index("formatPrice")
    provider = fake_provider_cls({})

    result = build(str(decl), Position(0, col), max_depth=1, direction="down",
                   provider=provider, project_root=temp_dir, find_implementation=True)

    root = result.root
    assert root.implementation_id is not None
    impl_node = result.graph.get(root.implementation_id)
    assert impl_node.full_path == str(impl)
    assert impl_node.is_implementation
    assert impl_node.implements == root.id
    assert not impl_node.is_root
    assert impl_node.depth == root.depth + 1 == 1
    assert (impl_node.line, impl_node.column) == (1, 17)


def test_link_after_build_returns(temp_dir: Path, fake_provider_cls):
    decl, impl = _write_declaration_pair(temp_dir)
    provider = fake_provider_cls({})
    result = build(str(decl), Position(0, 24), max_depth=1, direction="down",
                   provider=provider, project_root=temp_dir, find_implementation=False)
    root = result.root
    assert root.implementation_id is None
    before = len(result.graph)

    impl_node = find_implementation(root, result.graph, provider=provider, project_root=temp_dir)

    assert impl_node is not None
    assert impl_node.full_path == str(impl)
    assert result.graph.get(root.implementation_id) is impl_node
    assert impl_node.implements == root.id
    assert impl_node.depth == 1
    assert len(result.graph) == before + 1


def test_provider_answer_wins(temp_dir: Path, fake_provider_cls, chain_files):
    path, lines, defs = chain_files
    other = str(temp_dir / "impl.py")
    provider = fake_provider_cls(
        {path: lines, other: ["def f():", "    return 2"]},
        defs,
        implementation=Location(other, Position(0, 4)),
    )
    session = TraversalSession(provider, project_root=temp_dir)
    root = TreeBuilder(session).build_tree(path, Position(0, 4), 0, 1, "down")

    impl = find_implementation(root, session.graph, provider=provider, project_root=temp_dir)

    assert impl is not None
    assert impl.full_path == other
    assert root.implementation_id == impl.id


def test_no_implementation_is_normal(temp_dir: Path, fake_provider_cls, chain_files):
    path, lines, defs = chain_files
    provider = fake_provider_cls({path: lines}, defs)
    session = TraversalSession(provider, project_root=temp_dir)
    root = TreeBuilder(session).build_tree(path, Position(0, 4), 0, 1, "down")

    assert find_implementation(root, session.graph, provider=provider, project_root=temp_dir) is None
    assert root.implementation_id is None


def test_candidate_files_respect_cap(temp_dir: Path, fake_provider_cls):
    decl, _ = _write_declaration_pair(temp_dir)
    for i in range(5):
        (temp_dir / f"mention_{i}.ts").write_text(f"// formatPrice is used here {i}\n")
    session = TraversalSession(fake_provider_cls({}), project_root=temp_dir)
    session.config.implementation_search_cap = 3
    root = TreeBuilder(session).build_tree(str(decl), Position(0, 24), 0, 1, "down")

    candidates = ImplementationFinder(session).candidate_files(root)

    assert len(candidates) == 3
    assert decl not in candidates


def test_broken_provider_falls_back_to_patterns(temp_dir: Path, broken_provider_cls):
    decl, impl = _write_declaration_pair(temp_dir)

    result = build(str(decl), Position(0, 24), max_depth=1, direction="down",
                   provider=broken_provider_cls({}), project_root=temp_dir, find_implementation=True)

    assert result.ok
    impl_node = result.graph.get(result.root.implementation_id)
    assert impl_node.full_path == str(impl)
