"""Node and edge visibility from focus mode and the tag filter."""

from __future__ import annotations

from typing import AbstractSet, Optional, Sequence

from ..models.graph import Edge, GraphState, Node, VisibleGraph
from .focus import neighborhood


def compute_visibility(
    nodes: Sequence[Node],
    edges: Sequence[Edge],
    focused_node_id: Optional[str] = None,
    tag_filter: AbstractSet[str] = frozenset(),
) -> VisibleGraph:
    """Hide nodes outside the focus neighbourhood or without any filter tag.

    Both conditions must pass for a node to stay visible. An edge is shown only
    when both of its endpoints exist and are visible, so edges left dangling by
    an externally edited document are hidden instead of failing.
    """
    in_focus = neighborhood(focused_node_id, edges) if focused_node_id is not None else None

    visible_nodes = []
    hidden_nodes = set()
    for node in nodes:
        if in_focus is not None and node.id not in in_focus:
            hidden_nodes.add(node.id)
        elif tag_filter and not node.tags & tag_filter:
            hidden_nodes.add(node.id)
        else:
            visible_nodes.append(node)

    visible_ids = {node.id for node in visible_nodes}
    visible_edges = []
    hidden_edges = set()
    for edge in edges:
        if edge.source in visible_ids and edge.target in visible_ids:
            visible_edges.append(edge)
        else:
            hidden_edges.add(edge.id)

    return VisibleGraph(
        nodes=tuple(visible_nodes),
        edges=tuple(visible_edges),
        hidden_node_ids=frozenset(hidden_nodes),
        hidden_edge_ids=frozenset(hidden_edges),
    )


def visible_graph(
    state: GraphState,
    focused_node_id: Optional[str] = None,
    tag_filter: AbstractSet[str] = frozenset(),
) -> VisibleGraph:
    return compute_visibility(state.nodes, state.edges, focused_node_id, tag_filter)


__all__ = ["compute_visibility", "visible_graph"]
