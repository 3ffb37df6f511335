"""HTTP document repository - talks to the life map API."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import httpx

from ..models.plan import PlanDocument
from .config import AppConfig, get_config
from .repository import Document, DocumentRepository, RepositoryError, SnapshotCallback, Unsubscribe

logger = logging.getLogger(__name__)


class HttpDocumentRepository(DocumentRepository):
    """Repository backed by the ``/api/plans/{id}/document`` endpoints.

    The API has no push channel, so ``subscribe`` polls the document and
    delivers a snapshot whenever its revision changes.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        poll_interval: Optional[float] = None,
        config: AppConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__()
        config = config or get_config()
        self.api_url = (api_url or config.api_url).rstrip("/")
        self.poll_interval = poll_interval or config.poll_interval_seconds
        self._transport = transport

    def _client(self, timeout: float) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.api_url, timeout=timeout, transport=self._transport)

    async def fetch(self, document_id: str) -> Optional[PlanDocument]:
        """Get the stored document with its revision, or None if missing."""
        try:
            async with self._client(timeout=10.0) as client:
                response = await client.get(f"/api/plans/{document_id}/document")
                if response.status_code == 404:
                    return None
                response.raise_for_status()
                return PlanDocument.model_validate(response.json())
        except httpx.HTTPError as exc:
            raise RepositoryError(
                f"Failed to read {document_id}: {exc}", {"document_id": document_id}
            ) from exc
        except ValueError as exc:
            # Non-JSON body or a payload that is not a PlanDocument.
            raise RepositoryError(
                f"Malformed response for {document_id}: {exc}", {"document_id": document_id}
            ) from exc

    async def read(self, document_id: str) -> Optional[Document]:
        stored = await self.fetch(document_id)
        return stored.document if stored is not None else None

    async def write(self, document_id: str, partial: Document) -> None:
        try:
            async with self._client(timeout=30.0) as client:
                response = await client.patch(
                    f"/api/plans/{document_id}/document", json=partial
                )
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise RepositoryError(
                f"Failed to write {document_id}: {exc}", {"document_id": document_id}
            ) from exc

    def subscribe(self, document_id: str, on_snapshot: SnapshotCallback) -> Unsubscribe:
        self._subscribers[document_id].append(on_snapshot)
        task = asyncio.get_running_loop().create_task(self._poll(document_id, on_snapshot))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(document_id, [])
            if on_snapshot in callbacks:
                callbacks.remove(on_snapshot)
            task.cancel()

        return unsubscribe

    async def _poll(self, document_id: str, on_snapshot: SnapshotCallback) -> None:
        last_revision: Optional[int] = -1
        while on_snapshot in self._subscribers.get(document_id, []):
            try:
                stored = await self.fetch(document_id)
            except RepositoryError as exc:
                logger.warning("Polling %s failed: %s", document_id, exc.message)
            else:
                revision = stored.revision if stored is not None else None
                if revision != last_revision:
                    last_revision = revision
                    on_snapshot(stored.document if stored is not None else None)
            await asyncio.sleep(self.poll_interval)


__all__ = ["HttpDocumentRepository"]
