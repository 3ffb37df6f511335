"""Sync Engine - keeps the graph store and the document repository in step.

Local edits and remote snapshots are two producers writing the same document.
The engine arbitrates between them on a single event loop:

- every local change bumps an edit counter and (re)arms one debounce timer;
- when the timer fires, the current state plus the live viewport is written
  as a merge-write, and the counter value captured at dispatch becomes the
  acknowledged counter once the write finishes (success or failure);
- a remote snapshot is adopted only when the edit counter equals the
  acknowledged counter and no write is in flight, otherwise it is dropped.

A local edit is therefore never reverted by a snapshot that raced it.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel

from ..models.graph import GraphDocument, GraphState, Viewport, document_from_wire, document_to_wire
from .config import AppConfig, get_config
from .graph_store import GraphStore
from .repository import DocumentRepository, Unsubscribe

logger = logging.getLogger(__name__)

AdoptListener = Callable[[GraphDocument], None]


class SyncState(str, Enum):
    """Where the engine is in its save cycle."""

    HYDRATING = "hydrating"
    IDLE = "idle"
    LOCAL_DIRTY = "local_dirty"
    DEBOUNCING = "debouncing"
    WRITING = "writing"


class SaveStatus(BaseModel):
    """Save indicator data for the presentation layer."""

    state: SyncState
    saving: bool
    last_error: Optional[str] = None
    last_saved_at: Optional[datetime] = None
    write_count: int = 0
    ignored_snapshots: int = 0
    hydrate_timed_out: bool = False


class SyncEngine:
    """Debounced writer and snapshot gatekeeper for one document."""

    def __init__(
        self,
        store: GraphStore,
        repository: DocumentRepository,
        document_id: str,
        config: AppConfig | None = None,
    ) -> None:
        self._store = store
        self._repository = repository
        self.document_id = document_id
        self._config = config or get_config()

        self.viewport: Optional[Viewport] = None
        self.last_error: Optional[str] = None
        self.last_saved_at: Optional[datetime] = None
        self.write_count = 0
        self.ignored_snapshots = 0
        self.hydrate_timed_out = False

        self._edit_counter = 0
        self._acked_counter = 0
        self._writing = False
        self._closed = False
        self._hydrated = asyncio.Event()
        self._timer: Optional[asyncio.TimerHandle] = None
        self._write_task: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Unsubscribe] = None
        self._adopt_listeners: List[AdoptListener] = []
        self._remove_store_listener = store.add_listener(self._on_local_change)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    @property
    def hydrated(self) -> bool:
        return self._hydrated.is_set()

    @property
    def locally_dirty(self) -> bool:
        return self._edit_counter != self._acked_counter

    @property
    def writing(self) -> bool:
        return self._writing

    @property
    def state(self) -> SyncState:
        if not self.hydrated:
            return SyncState.HYDRATING
        if self._writing:
            return SyncState.WRITING
        if self._timer is not None:
            return SyncState.DEBOUNCING
        if self.locally_dirty:
            return SyncState.LOCAL_DIRTY
        return SyncState.IDLE

    @property
    def is_saving(self) -> bool:
        """True while a save is pending or running, or the last save failed."""
        return self._timer is not None or self._writing or self.last_error is not None

    def status(self) -> SaveStatus:
        return SaveStatus(
            state=self.state,
            saving=self.is_saving,
            last_error=self.last_error,
            last_saved_at=self.last_saved_at,
            write_count=self.write_count,
            ignored_snapshots=self.ignored_snapshots,
            hydrate_timed_out=self.hydrate_timed_out,
        )

    def add_adopt_listener(self, listener: AdoptListener) -> None:
        """Called after a remote snapshot replaced the store state."""
        self._adopt_listeners.append(listener)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe and wait for the first snapshot.

        After ``hydrate_timeout_seconds`` this stops waiting but the engine stays
        in HYDRATING: nothing is written until a snapshot (or an explicit
        ``None`` for a missing record) has been adopted. Edits made meanwhile
        are replaced by that snapshot.
        """
        if self._unsubscribe is not None:
            return
        logger.info("Subscribing to document %s", self.document_id)
        self._unsubscribe = self._repository.subscribe(self.document_id, self._on_snapshot)
        try:
            await asyncio.wait_for(
                self._hydrated.wait(), timeout=self._config.hydrate_timeout_seconds
            )
        except asyncio.TimeoutError:
            self.hydrate_timed_out = True
            logger.warning(
                "No snapshot for %s after %.1fs; holding writes until one arrives",
                self.document_id,
                self._config.hydrate_timeout_seconds,
            )

    async def flush(self) -> None:
        """Write pending local changes now instead of waiting for the timer."""
        while True:
            self._cancel_timer()
            task = self._write_task
            if task is not None:
                await task
                continue
            if not self.hydrated or not self.locally_dirty:
                return
            self._write_task = asyncio.get_running_loop().create_task(self._write())

    async def close(self, flush: bool = True) -> None:
        """Stop syncing. Pending edits are written first unless ``flush`` is False."""
        if flush:
            await self.flush()
        self._closed = True
        self._cancel_timer()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._remove_store_listener()
        logger.info("Closed sync for document %s", self.document_id)

    # ------------------------------------------------------------------
    # Local side
    # ------------------------------------------------------------------

    def update_viewport(self, viewport: Viewport) -> None:
        """Record the live view transform; it rides along with the next write."""
        if viewport == self.viewport:
            return
        self.viewport = viewport
        self._mark_dirty()

    def _on_local_change(self, state: GraphState) -> None:
        self._mark_dirty()

    def _mark_dirty(self) -> None:
        if self._closed:
            return
        self._edit_counter += 1
        if not self.hydrated:
            return
        self._arm_timer()

    def _arm_timer(self) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self._config.save_debounce_seconds, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        if self._writing:
            # The running write re-arms the timer when it completes.
            return
        self._write_task = asyncio.get_running_loop().create_task(self._write())

    async def _write(self) -> None:
        self._writing = True
        dispatched = self._edit_counter
        payload: Dict[str, Any] = document_to_wire(self._store.state, self.viewport)
        try:
            await self._repository.write(self.document_id, payload)
        except Exception as exc:
            self.last_error = str(exc) or exc.__class__.__name__
            logger.warning(
                "Saving document %s failed; keeping edits in memory: %s",
                self.document_id,
                self.last_error,
            )
        else:
            self.last_error = None
            self.last_saved_at = datetime.now(timezone.utc)
            self.write_count += 1
            logger.debug("Saved document %s at edit %d", self.document_id, dispatched)
        finally:
            # Acknowledge first, then drop the in-flight flag.
            self._acked_counter = dispatched
            self._writing = False
            self._write_task = None

        if self.locally_dirty and self._timer is None and not self._closed:
            self._arm_timer()

    # ------------------------------------------------------------------
    # Remote side
    # ------------------------------------------------------------------

    def _on_snapshot(self, raw: Optional[Dict[str, Any]]) -> None:
        if not self.hydrated:
            self._hydrate(raw)
            return
        if self.locally_dirty or self._writing:
            self.ignored_snapshots += 1
            logger.debug(
                "Ignoring remote snapshot for %s (dirty=%s, writing=%s)",
                self.document_id,
                self.locally_dirty,
                self._writing,
            )
            return
        self._adopt(raw)

    def _hydrate(self, raw: Optional[Dict[str, Any]]) -> None:
        if self.hydrated:
            return
        self._adopt(raw)
        # The first snapshot wins over anything done before hydration.
        self._acked_counter = self._edit_counter
        self._hydrated.set()
        logger.info(
            "Hydrated document %s with %d nodes and %d edges",
            self.document_id,
            len(self._store.state.nodes),
            len(self._store.state.edges),
        )

    def _adopt(self, raw: Optional[Dict[str, Any]]) -> None:
        document = document_from_wire(raw, self._config.default_tags)
        self._store.replace(document.to_state())
        if document.viewport is not None:
            self.viewport = document.viewport
        for listener in list(self._adopt_listeners):
            listener(document)


__all__ = ["SyncEngine", "SyncState", "SaveStatus"]
