"""Tests for markdown rendering of dependency graphs."""

import pytest

from deptree_cli.formatter import format_tree_text, generate_export_content, generate_folder_tree
from deptree_cli.graph import add_dependency, get_or_create
from deptree_cli.models import DependencyGraph, Position, VariableUse


@pytest.fixture
def cyclic_graph():
    """f -> g -> h -> f in /p/app.py, rooted at f."""
    graph = DependencyGraph()
    f = get_or_create(graph, "/p/app.py", Position(0, 4), "f", is_root=True)
    g = get_or_create(graph, "/p/app.py", Position(100, 4), "g", depth=1)
    h = get_or_create(graph, "/p/app.py", Position(200, 4), "h", depth=2)
    add_dependency(graph, f.id, g.id)
    add_dependency(graph, g.id, h.id)
    add_dependency(graph, h.id, f.id)

    f.source_text = ["def f():", "    return g()"]
    f.doc_comment = ["# Entry point."]
    f.add_usage(VariableUse(
        "g", 2, 12, is_call=True,
        definition={"file": "/p/app.py", "line": 101, "column": 5, "node_id": g.id},
    ))
    return graph


def test_tree_text_sections(cyclic_graph):
    lines = format_tree_text(cyclic_graph, cyclic_graph.root_id)

    assert lines[0] == "# Dependency Tree for: f"
    assert "## Usage in: /p/app.py" in lines
    assert "```python" in lines
    assert "## Documentation:" in lines
    assert "- g (call, line 2) -> app.py:101" in lines


def test_tree_text_branches_stop_at_cycles(cyclic_graph):
    lines = format_tree_text(cyclic_graph, cyclic_graph.root_id)

    callees = lines[lines.index("## Callees:") + 1:]
    assert callees[:3] == [
        "└─ g (app.py:101)",
        "   └─ h (app.py:201)",
        "      └─ f (circular ref)",
    ]
    callers = lines[lines.index("## Callers:") + 1:]
    assert callers[:3] == [
        "└─ h (app.py:201)",
        "   └─ g (app.py:101)",
        "      └─ f (circular ref)",
    ]


def test_tree_text_hides_variables(cyclic_graph):
    lines = format_tree_text(cyclic_graph, cyclic_graph.root_id, show_internal_vars=False)
    assert "## Variables Used:" not in lines


def test_tree_text_missing_root():
    assert format_tree_text(DependencyGraph(), None) == ["Error: Root node not found"]


def test_tree_text_implementation_and_props():
    graph = DependencyGraph()
    root = get_or_create(graph, "/p/types.d.ts", Position(0, 24), "Button", is_root=True)
    impl = get_or_create(graph, "/p/Button.tsx", Position(3, 13), "Button")
    impl.is_implementation = True
    impl.implements = root.id
    root.implementation_id = impl.id
    root.extensions = {"component": True, "props": [
        {"name": "label", "type": "string", "required": True},
        {"name": "size", "type": "number", "required": False},
    ]}

    lines = format_tree_text(graph, root.id)

    assert "## Implementation found in: /p/Button.tsx" in lines
    assert "```tsx" in lines
    assert "// Implementation source code not available" in lines
    assert "## Component Props:" in lines
    assert "- label: string" in lines
    assert "- size?: number" in lines


def test_folder_tree():
    lines = generate_folder_tree(["/p/src/a.py", "/p/src/lib/b.py", "/p/main.py"])
    assert lines == [
        "## Project Folder Structure",
        "```",
        "p/",
        "├── src/",
        "│   ├── lib/",
        "│   │   └── b.py",
        "│   └── a.py",
        "└── main.py",
        "```",
        "",
    ]


def test_export_content(cyclic_graph):
    content = generate_export_content(cyclic_graph, cyclic_graph.root_id)

    assert content.startswith("## Project Folder Structure")
    assert "## File: /p/app.py" in content
    assert "### Function: f" in content
    assert "  - g (app.py:101)" in content
    assert "- **Called by:**" in content
    assert "## Dependency Tree" in content
    # nodes are listed in source order
    assert content.index("### Function: f") < content.index("### Function: g") < content.index("### Function: h")


def test_export_content_without_structure(cyclic_graph):
    content = generate_export_content(cyclic_graph, cyclic_graph.root_id, show_project_structure=False)
    assert content.startswith("# Dependency Tree for: f")
    assert "## Project Folder Structure" not in content
