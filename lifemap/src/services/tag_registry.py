"""Tag registry and the active tag filter."""

from __future__ import annotations

import logging
from typing import FrozenSet, Set, Tuple

from ..models.graph import GraphState
from .graph_store import GraphStore

logger = logging.getLogger(__name__)


class TagRegistry:
    """Manage available tags on top of a graph store.

    The registry itself lives in the store state (``available_tags``) so it is
    persisted and synced with the rest of the document. The active filter set
    is view state and never leaves the session.
    """

    def __init__(self, store: GraphStore) -> None:
        self._store = store
        self._active_filter: Set[str] = set()

    @property
    def tags(self) -> Tuple[str, ...]:
        return self._store.state.available_tags

    @property
    def active_filter(self) -> FrozenSet[str]:
        return frozenset(self._active_filter)

    def add_tag(self, name: str) -> bool:
        """Register a tag. Blank and duplicate names are ignored."""
        cleaned = name.strip()
        if not cleaned or cleaned in self.tags:
            return False
        return self._store.transform(
            lambda state: state.model_copy(
                update={"available_tags": state.available_tags + (cleaned,)}
            )
        )

    def delete_tag(self, name: str) -> bool:
        """Remove a tag from the registry, from every node and from the filter."""
        if name not in self.tags:
            return False

        def cascade(state: GraphState) -> GraphState:
            nodes = tuple(
                node.model_copy(update={"tags": node.tags - {name}}) if name in node.tags else node
                for node in state.nodes
            )
            tags = tuple(tag for tag in state.available_tags if tag != name)
            return state.model_copy(update={"nodes": nodes, "available_tags": tags})

        self._active_filter.discard(name)
        changed = self._store.transform(cascade)
        logger.info("Deleted tag %s", name)
        return changed

    def usage_count(self, name: str) -> int:
        return sum(1 for node in self._store.state.nodes if name in node.tags)

    def toggle_filter(self, name: str) -> bool:
        """Flip a tag in the active filter. Returns True when it is now active."""
        if name in self._active_filter:
            self._active_filter.discard(name)
            return False
        if name not in self.tags:
            return False
        self._active_filter.add(name)
        return True

    def clear_filter(self) -> None:
        self._active_filter.clear()

    def prune_filter(self) -> None:
        """Drop filter entries no longer present in the registry."""
        self._active_filter.intersection_update(self.tags)


__all__ = ["TagRegistry"]
