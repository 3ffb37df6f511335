"""Map session - everything one open plan needs, wired together.

The session is the boundary the presentation layer talks to. It exposes one
method per user action, the visible nodes and edges after focus and tag
filtering, and the save indicator. The visible graph is recomputed from
scratch on every change and pushed to view listeners.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..models.graph import Edge, GraphDocument, GraphState, Node, Viewport, VisibleGraph
from .config import AppConfig, get_config
from .filter import visible_graph
from .focus import FocusState
from .graph_store import GraphStore, PositionLike, clamp_geometry
from .repository import DocumentRepository
from .sync_engine import SaveStatus, SyncEngine
from .tag_registry import TagRegistry

logger = logging.getLogger(__name__)

ViewListener = Callable[[VisibleGraph], None]


class MapSession:
    """Store, tag registry, focus, filter and sync engine for one plan."""

    def __init__(
        self,
        repository: DocumentRepository,
        plan_id: str,
        config: AppConfig | None = None,
        store: GraphStore | None = None,
    ) -> None:
        self.plan_id = plan_id
        self.config = config or get_config()
        self.store = store or GraphStore()
        self.tags = TagRegistry(self.store)
        self.focus = FocusState()
        self.engine = SyncEngine(self.store, repository, plan_id, config=self.config)
        self._view = VisibleGraph()
        self._view_listeners: List[ViewListener] = []

        self.store.add_listener(self._on_store_change)
        self.engine.add_adopt_listener(self._on_adopt)

    @classmethod
    async def open(
        cls,
        repository: DocumentRepository,
        plan_id: str,
        config: AppConfig | None = None,
    ) -> "MapSession":
        """Create a session and hydrate it from the repository."""
        session = cls(repository, plan_id, config=config)
        await session.engine.start()
        session._refresh()
        return session

    async def close(self, flush: bool = True) -> None:
        await self.engine.close(flush=flush)

    # ------------------------------------------------------------------
    # Derived view
    # ------------------------------------------------------------------

    @property
    def state(self) -> GraphState:
        return self.store.state

    @property
    def view(self) -> VisibleGraph:
        return self._view

    @property
    def visible_nodes(self) -> Tuple[Node, ...]:
        return self._view.nodes

    @property
    def visible_edges(self) -> Tuple[Edge, ...]:
        return self._view.edges

    @property
    def selected_node(self) -> Optional[Node]:
        return self.store.primary_selected_node

    @property
    def has_selected_edge(self) -> bool:
        return any(edge.selected for edge in self.store.state.edges)

    @property
    def is_saving(self) -> bool:
        return self.engine.is_saving

    def save_status(self) -> SaveStatus:
        return self.engine.status()

    def add_view_listener(self, listener: ViewListener) -> Callable[[], None]:
        self._view_listeners.append(listener)

        def remove() -> None:
            if listener in self._view_listeners:
                self._view_listeners.remove(listener)

        return remove

    def _refresh(self) -> None:
        self._view = visible_graph(
            self.store.state, self.focus.focused_node_id, self.tags.active_filter
        )
        for listener in list(self._view_listeners):
            listener(self._view)

    def _on_store_change(self, state: GraphState) -> None:
        focused = self.focus.focused_node_id
        if focused is not None and state.node(focused) is None:
            self.focus.clear()
        self._refresh()

    def _on_adopt(self, document: GraphDocument) -> None:
        self.tags.prune_filter()
        self._on_store_change(self.store.state)

    # ------------------------------------------------------------------
    # Graph actions
    # ------------------------------------------------------------------

    def add_node(
        self,
        kind: str = "default",
        initial_data: Dict[str, Any] | None = None,
        position: PositionLike | None = None,
    ) -> str:
        return self.store.add_node(kind, initial_data, position)

    def delete_node(self, node_id: str) -> bool:
        return self.store.delete_node(node_id)

    def resize_node(self, node_id: str, width: float, height: float) -> bool:
        """Resize with minimum bounds applied for the node's kind."""
        node = self.store.state.node(node_id)
        if node is None:
            return False
        width, height = clamp_geometry(node.type, width, height)
        return self.store.set_node_geometry(node_id, width, height)

    def move_node(self, node_id: str, position: PositionLike) -> bool:
        return self.store.move_node(node_id, position)

    def set_node_text(self, node_id: str, text: str) -> bool:
        return self.store.set_node_text(node_id, text)

    def set_node_color(self, color: str, node_id: Optional[str] = None) -> bool:
        """Color the given node, or the primary selected node."""
        if node_id is None:
            selected = self.selected_node
            if selected is None:
                return False
            node_id = selected.id
        return self.store.set_node_color(node_id, color)

    def add_item(self, node_id: str, text: str) -> Optional[str]:
        return self.store.add_item(node_id, text)

    def toggle_item(self, node_id: str, item_id: str) -> bool:
        return self.store.toggle_item(node_id, item_id)

    def rename_item(self, node_id: str, item_id: str, text: str) -> bool:
        """Rename an item; whitespace is trimmed and unchanged text is skipped."""
        return self.store.rename_item(node_id, item_id, text.strip())

    def remove_item(self, node_id: str, item_id: str) -> bool:
        return self.store.remove_item(node_id, item_id)

    def connect(self, source: str, target: str) -> Optional[str]:
        return self.store.add_edge(source, target)

    def set_edge_label(self, edge_id: str, text: Optional[str]) -> bool:
        return self.store.set_edge_label(edge_id, text)

    def delete_edge(self, edge_id: str) -> bool:
        return self.store.delete_edge(edge_id)

    def delete_selected_edges(self) -> int:
        return self.store.delete_selected_edges()

    def select(self, node_ids: Iterable[str] = (), edge_ids: Iterable[str] = ()) -> bool:
        return self.store.set_selection(node_ids, edge_ids)

    def toggle_node_tag(self, node_id: str, tag: str) -> bool:
        return self.store.toggle_node_tag(node_id, tag)

    def move_viewport(self, viewport: Viewport) -> None:
        self.engine.update_viewport(viewport)

    # ------------------------------------------------------------------
    # Tags, focus and filter
    # ------------------------------------------------------------------

    def add_tag(self, name: str) -> bool:
        return self.tags.add_tag(name)

    def delete_tag(self, name: str) -> bool:
        return self.tags.delete_tag(name)

    def tag_usage(self) -> Dict[str, int]:
        return {tag: self.tags.usage_count(tag) for tag in self.tags.tags}

    def toggle_tag_filter(self, name: str) -> bool:
        active = self.tags.toggle_filter(name)
        self._refresh()
        return active

    def clear_tag_filter(self) -> None:
        self.tags.clear_filter()
        self._refresh()

    def toggle_focus(self, node_id: Optional[str] = None) -> Optional[str]:
        """Focus the given node (or the selected one); focusing it again clears focus."""
        if node_id is None:
            selected = self.selected_node
            if selected is None:
                return self.focus.focused_node_id
            node_id = selected.id
        if self.store.state.node(node_id) is None:
            return self.focus.focused_node_id
        focused = self.focus.toggle(node_id)
        logger.debug("Focus is now %s", focused)
        self._refresh()
        return focused


__all__ = ["MapSession"]
