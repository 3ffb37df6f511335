"""In-memory authoritative graph state and its transformations."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from ..models.graph import (
    DEFAULT_CHECKLIST_ITEM,
    DEFAULT_CHECKLIST_TITLE,
    DEFAULT_LABEL,
    DEFAULT_SIZES,
    MIN_SIZES,
    ChecklistContent,
    ChecklistItem,
    DefaultContent,
    Edge,
    GraphState,
    Node,
    Position,
)

logger = logging.getLogger(__name__)

StateListener = Callable[[GraphState], None]
PositionLike = Union[Position, Mapping[str, float], Tuple[float, float]]


def clamp_geometry(kind: str, width: float, height: float) -> Tuple[float, float]:
    """Apply minimum node bounds. Callers clamp before resizing through the store."""
    min_width, min_height = MIN_SIZES.get(kind, MIN_SIZES["default"])
    return max(min_width, width), max(min_height, height)


def _as_position(value: PositionLike | None) -> Position:
    if value is None:
        return Position()
    if isinstance(value, Position):
        return value
    if isinstance(value, Mapping):
        return Position(x=value.get("x", 0.0), y=value.get("y", 0.0))
    x, y = value
    return Position(x=x, y=y)


class IdClock:
    """Monotonic id source shared by nodes, edges and checklist items.

    Seeded from wall-clock milliseconds and advanced past every numeric id it
    observes, so ids handed out are never reused within a document.
    """

    def __init__(self, start: Optional[int] = None) -> None:
        self._last = (start if start is not None else int(time.time() * 1000)) - 1

    def next_id(self) -> str:
        self._last += 1
        return str(self._last)

    def observe(self, ids: Iterable[str]) -> None:
        for value in ids:
            if value.isdigit() and int(value) > self._last:
                self._last = int(value)


def _state_ids(state: GraphState) -> List[str]:
    ids: List[str] = []
    for node in state.nodes:
        ids.append(node.id)
        if isinstance(node.content, ChecklistContent):
            ids.extend(item.id for item in node.content.items)
    ids.extend(edge.id for edge in state.edges)
    return ids


class GraphStore:
    """Owns the graph and publishes a new immutable state on every change."""

    def __init__(
        self,
        state: GraphState | None = None,
        clock: IdClock | None = None,
    ) -> None:
        self._state = state or GraphState()
        self._clock = clock or IdClock()
        self._clock.observe(_state_ids(self._state))
        self._revision = 0
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> GraphState:
        return self._state

    @property
    def revision(self) -> int:
        """Number of local mutations applied so far."""
        return self._revision

    @property
    def primary_selected_node(self) -> Optional[Node]:
        for node in self._state.nodes:
            if node.selected:
                return node
        return None

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register a callback for local mutations; returns a remover."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def replace(self, state: GraphState) -> None:
        """Adopt an externally supplied state (hydration or remote snapshot).

        This is not a local edit: the revision is untouched and listeners are
        not called.
        """
        self._clock.observe(_state_ids(state))
        self._state = state

    def transform(self, fn: Callable[[GraphState], GraphState]) -> bool:
        """Apply a whole-state transformation as one local mutation."""
        return self._commit(fn(self._state))

    def _commit(self, new_state: GraphState) -> bool:
        if new_state is self._state:
            return False
        self._state = new_state
        self._revision += 1
        for listener in list(self._listeners):
            listener(new_state)
        return True

    def _update_node(self, node_id: str, fn: Callable[[Node], Optional[Node]]) -> bool:
        nodes: List[Node] = []
        changed = False
        for node in self._state.nodes:
            if node.id == node_id:
                updated = fn(node)
                if updated is not None and updated != node:
                    node = updated
                    changed = True
            nodes.append(node)
        if not changed:
            return False
        return self._commit(self._state.model_copy(update={"nodes": tuple(nodes)}))

    def _update_items(
        self,
        node_id: str,
        fn: Callable[[Tuple[ChecklistItem, ...]], Tuple[ChecklistItem, ...]],
    ) -> bool:
        def apply(node: Node) -> Optional[Node]:
            if not isinstance(node.content, ChecklistContent):
                return None
            content = node.content.model_copy(update={"items": fn(node.content.items)})
            return node.model_copy(update={"content": content})

        return self._update_node(node_id, apply)

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def add_node(
        self,
        kind: str = "default",
        initial_data: Dict[str, Any] | None = None,
        position: PositionLike | None = None,
    ) -> str:
        """Insert a node with type-appropriate defaults and return its id.

        ``initial_data`` may override ``label`` (default nodes), ``title`` and
        ``items`` (checklist nodes), ``color``, ``width`` and ``height``. Items are
        plain strings or ``{"text", "completed"}`` mappings; they always get
        fresh ids.
        """
        data = dict(initial_data or {})
        width, height = DEFAULT_SIZES["checklist" if kind == "checklist" else "default"]
        node_id = self._clock.next_id()

        if kind == "checklist":
            entries = data.get("items")
            if entries is None:
                entries = [DEFAULT_CHECKLIST_ITEM]
            content: DefaultContent | ChecklistContent = ChecklistContent(
                title=data.get("title", DEFAULT_CHECKLIST_TITLE),
                items=tuple(self._new_item(entry) for entry in entries),
            )
        elif kind == "default":
            content = DefaultContent(label=data.get("label", DEFAULT_LABEL))
        else:
            raise ValueError(f"Unknown node kind: {kind}")

        node = Node(
            id=node_id,
            position=_as_position(position),
            content=content,
            color=data.get("color"),
            width=data.get("width", width),
            height=data.get("height", height),
        )
        self._commit(self._state.model_copy(update={"nodes": self._state.nodes + (node,)}))
        logger.debug("Added %s node %s", kind, node_id)
        return node_id

    def _new_item(self, entry: Any) -> ChecklistItem:
        if isinstance(entry, Mapping):
            return ChecklistItem(
                id=self._clock.next_id(),
                text=str(entry.get("text", "")),
                completed=bool(entry.get("completed", False)),
            )
        return ChecklistItem(id=self._clock.next_id(), text=str(entry))

    def delete_node(self, node_id: str) -> bool:
        """Remove a node together with every edge touching it."""
        if self._state.node(node_id) is None:
            return False
        nodes = tuple(node for node in self._state.nodes if node.id != node_id)
        edges = tuple(
            edge
            for edge in self._state.edges
            if edge.source != node_id and edge.target != node_id
        )
        return self._commit(self._state.model_copy(update={"nodes": nodes, "edges": edges}))

    def set_node_geometry(self, node_id: str, width: float, height: float) -> bool:
        return self._update_node(
            node_id, lambda node: node.model_copy(update={"width": width, "height": height})
        )

    def move_node(self, node_id: str, position: PositionLike) -> bool:
        target = _as_position(position)
        return self._update_node(
            node_id, lambda node: node.model_copy(update={"position": target})
        )

    def set_node_text(self, node_id: str, text: str) -> bool:
        """Write the label of a default node or the title of a checklist node."""

        def apply(node: Node) -> Node:
            if isinstance(node.content, ChecklistContent):
                content = node.content.model_copy(update={"title": text})
            else:
                content = node.content.model_copy(update={"label": text})
            return node.model_copy(update={"content": content})

        return self._update_node(node_id, apply)

    def set_node_color(self, node_id: str, color: Optional[str]) -> bool:
        return self._update_node(node_id, lambda node: node.model_copy(update={"color": color}))

    def toggle_node_tag(self, node_id: str, tag: str) -> bool:
        """Add the tag to the node if missing, otherwise remove it.

        Tags outside the registry are ignored so node tags stay a subset of it.
        """
        if tag not in self._state.available_tags:
            return False
        return self._update_node(
            node_id,
            lambda node: node.model_copy(update={"tags": node.tags ^ frozenset({tag})}),
        )

    # ------------------------------------------------------------------
    # Checklist items
    # ------------------------------------------------------------------

    def add_item(self, node_id: str, text: str) -> Optional[str]:
        """Append an unchecked item; blank text is discarded."""
        cleaned = text.strip()
        node = self._state.node(node_id)
        if not cleaned or node is None or not isinstance(node.content, ChecklistContent):
            return None
        item = ChecklistItem(id=self._clock.next_id(), text=cleaned)
        self._update_items(node_id, lambda items: items + (item,))
        return item.id

    def toggle_item(self, node_id: str, item_id: str) -> bool:
        return self._update_items(
            node_id,
            lambda items: tuple(
                item.model_copy(update={"completed": not item.completed})
                if item.id == item_id
                else item
                for item in items
            ),
        )

    def rename_item(self, node_id: str, item_id: str, text: str) -> bool:
        return self._update_items(
            node_id,
            lambda items: tuple(
                item.model_copy(update={"text": text}) if item.id == item_id else item
                for item in items
            ),
        )

    def remove_item(self, node_id: str, item_id: str) -> bool:
        return self._update_items(
            node_id, lambda items: tuple(item for item in items if item.id != item_id)
        )

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def add_edge(self, source: str, target: str, label: Optional[str] = None) -> Optional[str]:
        """Connect two existing nodes. Self loops and parallel edges are allowed."""
        node_ids = self._state.node_ids
        if source not in node_ids or target not in node_ids:
            logger.debug("Rejected edge %s -> %s: missing endpoint", source, target)
            return None
        edge = Edge(id=self._clock.next_id(), source=source, target=target, label=label)
        self._commit(self._state.model_copy(update={"edges": self._state.edges + (edge,)}))
        return edge.id

    def set_edge_label(self, edge_id: str, text: Optional[str]) -> bool:
        edges = tuple(
            edge.model_copy(update={"label": text}) if edge.id == edge_id else edge
            for edge in self._state.edges
        )
        if edges == self._state.edges:
            return False
        return self._commit(self._state.model_copy(update={"edges": edges}))

    def delete_edge(self, edge_id: str) -> bool:
        edges = tuple(edge for edge in self._state.edges if edge.id != edge_id)
        if len(edges) == len(self._state.edges):
            return False
        return self._commit(self._state.model_copy(update={"edges": edges}))

    def delete_selected_edges(self) -> int:
        edges = tuple(edge for edge in self._state.edges if not edge.selected)
        removed = len(self._state.edges) - len(edges)
        if removed:
            self._commit(self._state.model_copy(update={"edges": edges}))
        return removed

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def set_selection(
        self, node_ids: Iterable[str] = (), edge_ids: Iterable[str] = ()
    ) -> bool:
        """Mark exactly the given nodes and edges as selected."""
        wanted_nodes = set(node_ids)
        wanted_edges = set(edge_ids)
        nodes = tuple(
            node
            if node.selected == (node.id in wanted_nodes)
            else node.model_copy(update={"selected": node.id in wanted_nodes})
            for node in self._state.nodes
        )
        edges = tuple(
            edge
            if edge.selected == (edge.id in wanted_edges)
            else edge.model_copy(update={"selected": edge.id in wanted_edges})
            for edge in self._state.edges
        )
        if nodes == self._state.nodes and edges == self._state.edges:
            return False
        return self._commit(self._state.model_copy(update={"nodes": nodes, "edges": edges}))


__all__ = ["GraphStore", "IdClock", "clamp_geometry"]
