"""Document repositories: where graph documents are read, written and watched.

A repository stores one JSON-like document per id and supports three calls:

- ``subscribe(document_id, on_snapshot)`` delivers the current document (or
  ``None`` when there is no record) and then every later change; it returns a
  function that cancels the subscription.
- ``read(document_id)`` returns the current document or ``None``.
- ``write(document_id, partial)`` replaces only the top-level keys present in
  ``partial`` and creates the record if needed.

Snapshots are delivered on the event loop through ``call_soon`` so callbacks
never run in the middle of the code that caused them.
"""

from __future__ import annotations

import asyncio
import copy
import logging
import sqlite3
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Set

from .plan_service import PlanService

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
SnapshotCallback = Callable[[Optional[Document]], None]
Unsubscribe = Callable[[], None]


class RepositoryError(Exception):
    """Raised when the document store cannot complete an operation."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class DocumentRepository(ABC):
    """Abstract document store with push notifications to subscribers."""

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[SnapshotCallback]] = defaultdict(list)
        self._tasks: Set[asyncio.Task] = set()

    @abstractmethod
    async def read(self, document_id: str) -> Optional[Document]:
        """Return the stored document or None."""

    @abstractmethod
    async def write(self, document_id: str, partial: Document) -> None:
        """Merge-write the given top-level fields."""

    def subscribe(self, document_id: str, on_snapshot: SnapshotCallback) -> Unsubscribe:
        """Watch a document. Must be called from a running event loop."""
        self._subscribers[document_id].append(on_snapshot)
        task = asyncio.get_running_loop().create_task(
            self._deliver_initial(document_id, on_snapshot)
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(document_id, [])
            if on_snapshot in callbacks:
                callbacks.remove(on_snapshot)
            if not task.done():
                task.cancel()

        return unsubscribe

    def subscriber_count(self, document_id: str) -> int:
        return len(self._subscribers.get(document_id, []))

    async def _deliver_initial(self, document_id: str, on_snapshot: SnapshotCallback) -> None:
        try:
            document = await self.read(document_id)
        except RepositoryError as exc:
            logger.warning("Initial read of %s failed: %s", document_id, exc.message)
            return
        if on_snapshot in self._subscribers.get(document_id, []):
            on_snapshot(copy.deepcopy(document))

    def _notify(self, document_id: str, document: Optional[Document]) -> None:
        callbacks = list(self._subscribers.get(document_id, []))
        if not callbacks:
            return
        loop = asyncio.get_running_loop()
        for callback in callbacks:
            loop.call_soon(self._dispatch, document_id, callback, copy.deepcopy(document))

    def _dispatch(
        self, document_id: str, callback: SnapshotCallback, document: Optional[Document]
    ) -> None:
        # Skip callbacks that unsubscribed between scheduling and delivery.
        if callback in self._subscribers.get(document_id, []):
            callback(document)


class InMemoryDocumentRepository(DocumentRepository):
    """Dict-backed repository that echoes every write back to subscribers."""

    def __init__(
        self,
        documents: Optional[Dict[str, Document]] = None,
        latency: float = 0.0,
    ) -> None:
        super().__init__()
        self._documents: Dict[str, Document] = copy.deepcopy(documents or {})
        self.latency = latency
        self.write_count = 0

    async def read(self, document_id: str) -> Optional[Document]:
        if self.latency:
            await asyncio.sleep(self.latency)
        document = self._documents.get(document_id)
        return copy.deepcopy(document) if document is not None else None

    async def write(self, document_id: str, partial: Document) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)
        document = self._documents.setdefault(document_id, {})
        document.update(copy.deepcopy(partial))
        self.write_count += 1
        self._notify(document_id, document)

    def push(self, document_id: str, document: Optional[Document]) -> None:
        """Replace a document as if another client changed it remotely."""
        if document is None:
            self._documents.pop(document_id, None)
        else:
            self._documents[document_id] = copy.deepcopy(document)
        self._notify(document_id, document)


class SqliteDocumentRepository(DocumentRepository):
    """Repository over the SQLite plan store for a single user.

    Blocking sqlite calls run in a worker thread; subscribers in this process
    are notified after each write.
    """

    def __init__(self, plan_service: PlanService, user_id: str) -> None:
        super().__init__()
        self._plans = plan_service
        self.user_id = user_id

    async def read(self, document_id: str) -> Optional[Document]:
        try:
            stored = await asyncio.to_thread(self._plans.read_document, self.user_id, document_id)
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to read {document_id}: {exc}") from exc
        return stored.document if stored is not None else None

    async def write(self, document_id: str, partial: Document) -> None:
        try:
            stored = await asyncio.to_thread(
                self._plans.merge_document, self.user_id, document_id, partial
            )
        except sqlite3.Error as exc:
            raise RepositoryError(f"Failed to write {document_id}: {exc}") from exc
        self._notify(document_id, stored.document)


__all__ = [
    "Document",
    "DocumentRepository",
    "InMemoryDocumentRepository",
    "RepositoryError",
    "SnapshotCallback",
    "SqliteDocumentRepository",
    "Unsubscribe",
]
