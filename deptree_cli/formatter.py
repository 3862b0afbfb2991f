"""Markdown rendering of a dependency graph."""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional, Set

from .models import DependencyGraph, Node, VariableUse
from .sources import language_for_path

logger = logging.getLogger(__name__)

_FENCE_LANGUAGES = {
    "typescriptreact": "tsx",
    "javascriptreact": "jsx",
}


def _fence(path: str) -> str:
    language = language_for_path(path) or ""
    return "```" + _FENCE_LANGUAGES.get(language, language)


def _node_label(node: Node) -> str:
    return f"{node.symbol} ({node.file}:{node.line})"


def _add_branch(
    graph: DependencyGraph,
    node_id: str,
    attr: str,
    indent: str,
    visited: Set[str],
    lines: List[str],
) -> None:
    node = graph.get(node_id)
    if node is None:
        return
    if node_id in visited:
        lines.append(f"{indent}└─ {node.symbol} (circular ref)")
        return
    lines.append(f"{indent}└─ {_node_label(node)}")
    # Each path gets its own visited set so shared subtrees render in every branch.
    branch = visited | {node_id}
    for next_id in getattr(node, attr):
        _add_branch(graph, next_id, attr, indent + "   ", branch, lines)


def _code_block(node: Node, lines: List[str], placeholder: str) -> None:
    lines.append(_fence(node.full_path))
    lines.extend(node.source_text or [placeholder])
    lines.append("```")
    lines.append("")


def _usage_line(usage: VariableUse) -> str:
    kind = "call" if usage.is_call else "import" if usage.is_import else "variable"
    text = f"- {usage.name} ({kind}, line {usage.line})"
    if usage.definition:
        text += f" -> {os.path.basename(usage.definition['file'])}:{usage.definition['line']}"
    return text


def format_tree_text(graph: DependencyGraph, root_id: Optional[str], show_internal_vars: bool = True) -> List[str]:
    """Render the tree around *root_id* as markdown lines."""
    lines: List[str] = []
    root = graph.get(root_id)
    if root is None:
        lines.append("Error: Root node not found")
        return lines

    lines.append(f"# Dependency Tree for: {root.symbol}")
    lines.append("")

    impl = graph.get(root.implementation_id)
    if impl is not None:
        lines.append(f"## Implementation found in: {impl.full_path}")
        lines.append("")
        _code_block(impl, lines, "// Implementation source code not available")
        if show_internal_vars and impl.variables_used:
            lines.append("### Variables Used in Implementation:")
            lines.extend(_usage_line(u) for u in impl.variables_used)
            lines.append("")

    lines.append(f"## Usage in: {root.full_path}")
    lines.append("")
    _code_block(root, lines, "// Source code not available")

    if root.doc_comment:
        lines.append("## Documentation:")
        lines.append("```")
        lines.extend(root.doc_comment)
        lines.append("```")
        lines.append("")

    component = root.extensions.get("component")
    if component:
        lines.append("## Component Props:")
        props = root.extensions.get("props") or []
        for prop in props:
            required = "" if prop.get("required") else "?"
            lines.append(f"- {prop['name']}{required}: {prop.get('type', 'unknown')}")
        if not props:
            lines.append("- (none)")
        lines.append("")

    if root.parents:
        lines.append("## Callers:")
        for parent_id in root.parents:
            _add_branch(graph, parent_id, "parents", "", {root.id}, lines)
        lines.append("")

    if root.children:
        lines.append("## Callees:")
        for child_id in root.children:
            _add_branch(graph, child_id, "children", "", {root.id}, lines)
        lines.append("")

    if show_internal_vars and root.variables_used:
        lines.append("## Variables Used:")
        lines.extend(_usage_line(u) for u in root.variables_used)
        lines.append("")

    return lines


# ===================================================================
# Export
# ===================================================================

def generate_folder_tree(files: List[str]) -> List[str]:
    """ASCII folder tree of *files*, relative to their common directory."""
    lines = ["## Project Folder Structure", "```"]
    if not files:
        lines.extend(["```", ""])
        return lines

    base = os.path.commonpath([os.path.dirname(f) for f in files])
    tree: Dict[str, Any] = {}
    for path in files:
        parts = os.path.relpath(path, base).split(os.sep)
        current = tree
        for part in parts[:-1]:
            current = current.setdefault(part, {})
        current.setdefault("", []).append(parts[-1])

    def walk(node: Dict[str, Any], prefix: str) -> None:
        dirs = sorted(k for k in node if k)
        names = sorted(node.get("", []))
        for i, name in enumerate(dirs):
            last = i == len(dirs) - 1 and not names
            lines.append(f"{prefix}{'└── ' if last else '├── '}{name}/")
            walk(node[name], prefix + ("    " if last else "│   "))
        for i, name in enumerate(names):
            lines.append(f"{prefix}{'└── ' if i == len(names) - 1 else '├── '}{name}")

    lines.append(f"{os.path.basename(base) or base}/")
    walk(tree, "")
    lines.extend(["```", ""])
    return lines


def _node_section(graph: DependencyGraph, node: Node, lines: List[str]) -> None:
    lines.append(f"### Function: {node.symbol}")
    if node.doc_comment:
        lines.extend(["", "**Documentation:**", "```"])
        lines.extend(node.doc_comment)
        lines.append("```")

    lines.extend(["", "**Source Code:**", _fence(node.full_path)])
    lines.extend(node.source_text)
    lines.append("```")

    children = [graph.nodes[c] for c in node.children if c in graph]
    parents = [graph.nodes[p] for p in node.parents if p in graph]
    if children or parents:
        lines.extend(["", "**Dependencies:**"])
        if children:
            lines.append("- **Calls:**")
            lines.extend(f"  - {_node_label(c)}" for c in children)
        if parents:
            lines.append("- **Called by:**")
            lines.extend(f"  - {_node_label(p)}" for p in parents)

    if node.variables_used:
        lines.extend(["", "**Variables Used:**"])
        lines.extend(f"- {u.name} (line {u.line})" for u in node.variables_used)

    lines.extend(["", "---", ""])


def generate_export_content(graph: DependencyGraph, root_id: Optional[str], show_project_structure: bool = True) -> str:
    """Full markdown export: folder tree, per-file sources, then the tree."""
    if not show_project_structure:
        return "\n".join(format_tree_text(graph, root_id))

    files = graph.files()
    lines = generate_folder_tree(files)
    lines.append("## Files in Dependency Tree:")
    lines.extend(f"- {path}" for path in files)
    lines.append("")

    for path in files:
        nodes = sorted((n for n in graph if n.full_path == path), key=lambda n: (n.line, n.column))
        if not nodes:
            continue
        lines.extend([f"## File: {path}", ""])
        for node in nodes:
            _node_section(graph, node, lines)

    lines.extend(["## Dependency Tree", ""])
    lines.extend(format_tree_text(graph, root_id))
    logger.debug("Export content: %d line(s)", len(lines))
    return "\n".join(lines)
