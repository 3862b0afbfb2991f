"""Graph export helpers for DOT and JSON outputs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List

from .graph import ancestors, descendants
from .models import DependencyGraph


def graph_to_dict(graph: DependencyGraph, focus: str = "") -> Dict[str, Any]:
    selected = _focused_subgraph(graph, focus)
    return {
        "root_id": graph.root_id,
        "nodes": [graph.nodes[node_id].to_dict() for node_id in selected["nodes"]],
        "edges": selected["edges"],
    }


def export_json(graph: DependencyGraph, output_file: Path, focus: str = "") -> None:
    output_file.write_text(json.dumps(graph_to_dict(graph, focus), indent=2), encoding="utf-8")


def export_dot(graph: DependencyGraph, output_file: Path, focus: str = "") -> None:
    selected = _focused_subgraph(graph, focus)

    lines = ["digraph DependencyTree {"]
    lines.append("  rankdir=LR;")

    for node_id in selected["nodes"]:
        node = graph.nodes[node_id]
        label = f"{_esc(node.symbol)}\\n{_esc(node.file)}:{node.line}"
        attrs = [f'label="{label}"']
        if node.is_root:
            attrs.append("style=bold")
        if node.is_implementation:
            attrs.append("style=dashed")
        lines.append(f'  "{_esc(node_id)}" [{", ".join(attrs)}];')

    for edge in selected["edges"]:
        lines.append(f'  "{_esc(edge["src"])}" -> "{_esc(edge["dst"])}" [label="calls"];')

    root = graph.root
    if root is not None and root.implementation_id in graph.nodes:
        lines.append(
            f'  "{_esc(root.id)}" -> "{_esc(root.implementation_id)}" [label="implemented by", style=dotted];'
        )

    lines.append("}")
    output_file.write_text("\n".join(lines), encoding="utf-8")


def _focused_subgraph(graph: DependencyGraph, focus: str) -> Dict[str, List]:
    all_edges = [
        {"src": node.id, "dst": child}
        for node in graph
        for child in node.children
        if child in graph.nodes
    ]
    if not focus:
        return {"nodes": list(graph.nodes), "edges": all_edges}

    focus_ids = [node.id for node in graph if focus == node.symbol or focus in node.id]
    if not focus_ids:
        return {"nodes": list(graph.nodes), "edges": all_edges}

    keep = set(focus_ids)
    for node_id in focus_ids:
        keep.update(ancestors(graph, node_id))
        keep.update(descendants(graph, node_id))
    node_subset = [node_id for node_id in graph.nodes if node_id in keep]
    edge_subset = [e for e in all_edges if e["src"] in keep and e["dst"] in keep]
    return {"nodes": node_subset, "edges": edge_subset}


def _esc(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')
