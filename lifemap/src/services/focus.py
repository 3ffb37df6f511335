"""Focus mode: the 1-hop neighbourhood of a single node."""

from __future__ import annotations

from typing import FrozenSet, Iterable, Optional

from ..models.graph import Edge


def neighborhood(node_id: str, edges: Iterable[Edge]) -> FrozenSet[str]:
    """Return the node plus every node sharing an edge with it, in either direction."""
    members = {node_id}
    for edge in edges:
        if edge.source == node_id:
            members.add(edge.target)
        elif edge.target == node_id:
            members.add(edge.source)
    return frozenset(members)


class FocusState:
    """At most one focused node; toggling the focused node clears focus."""

    def __init__(self) -> None:
        self.focused_node_id: Optional[str] = None

    @property
    def active(self) -> bool:
        return self.focused_node_id is not None

    def toggle(self, node_id: str) -> Optional[str]:
        if self.focused_node_id == node_id:
            self.focused_node_id = None
        else:
            self.focused_node_id = node_id
        return self.focused_node_id

    def clear(self) -> None:
        self.focused_node_id = None


__all__ = ["neighborhood", "FocusState"]
