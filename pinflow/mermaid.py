from __future__ import annotations as _annotations

from collections.abc import Sequence
from typing import Any

from .nodes import DEFAULT_ACTION, Node, edge_targets

__all__ = 'generate_code', 'DEFAULT_HIGHLIGHT_CSS'

DEFAULT_HIGHLIGHT_CSS = 'fill:#f9f'


def generate_code(
    start_node: Node[Any, Any, Any],
    *,
    highlighted_nodes: Sequence[Node[Any, Any, Any]] | None = None,
    highlight_css: str = DEFAULT_HIGHLIGHT_CSS,
    edge_labels: bool = True,
    title: str | None = None,
) -> str:
    """Generate Mermaid flowchart code for every node reachable from `start_node`.

    Nodes are named after their class, instances of the same class get a numeric suffix in the order they
    are reached. Named edges are labelled with their quoted action, the default edge is left unlabelled.

    Args:
        start_node: The node a run would start from.
        highlighted_nodes: Nodes to highlight.
        highlight_css: CSS to use for highlighting nodes.
        edge_labels: Whether to include action labels on edges.
        title: Optional title for the diagram.

    Returns: The Mermaid code for the graph.
    """
    nodes = _reachable(start_node)
    names = _name_nodes(nodes)

    lines: list[str] = []
    if title:
        lines += ['---', f'title: {title}', '---']
    lines.append('graph TD')
    lines.append(f'  START --> {names[id(start_node)]}')
    for node in nodes:
        name = names[id(node)]
        for action, target in edge_targets(node):
            target_name = names[id(target)]
            if edge_labels and action != DEFAULT_ACTION:
                label = str(action).replace('"', '#quot;')
                lines.append(f'  {name} -->|"{label}"| {target_name}')
            else:
                lines.append(f'  {name} --> {target_name}')

    if highlighted_nodes:
        lines.append('')
        lines.append(f'classDef highlighted {highlight_css}')
        for node in highlighted_nodes:
            name = names.get(id(node))
            if name is None:
                raise LookupError(f'Highlighted node {node!r} is not reachable from {start_node!r}.')
            lines.append(f'class {name} highlighted')

    return '\n'.join(lines)


def _reachable(start_node: Node[Any, Any, Any]) -> list[Node[Any, Any, Any]]:
    seen: dict[int, Node[Any, Any, Any]] = {id(start_node): start_node}
    queue = [start_node]
    while queue:
        node = queue.pop(0)
        for _, target in edge_targets(node):
            if id(target) not in seen:
                seen[id(target)] = target
                queue.append(target)
    return list(seen.values())


def _name_nodes(nodes: list[Node[Any, Any, Any]]) -> dict[int, str]:
    names: dict[int, str] = {}
    counts: dict[str, int] = {}
    for node in nodes:
        node_id = node.get_id()
        counts[node_id] = counts.get(node_id, 0) + 1
        names[id(node)] = node_id if counts[node_id] == 1 else f'{node_id}_{counts[node_id]}'
    return names
