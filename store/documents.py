"""In-process document store with merge writes and live snapshot subscriptions.

Collections hold schemaless JSON documents keyed by id. Writes merge at the
top-level field (arrays are replaced whole). Every write pushes a full
snapshot of the touched collection to each open subscription on it.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from store.errors import StoreError

logger = logging.getLogger(__name__)


class DocumentSnapshot(BaseModel):
    """One document as delivered by a read or a subscription push."""
    id: str
    data: dict[str, Any]


class Subscription:
    """A cancellable stream of full-collection snapshots.

    Iterate with ``async for snapshot in subscription``. The current state of
    the collection is queued as soon as the subscription opens. After
    ``cancel()`` no further snapshot is delivered and iteration stops.
    """

    def __init__(self, store: DocumentStore, collection: str):
        self.collection = collection
        self.cancelled = False
        self._store = store
        self._queue: asyncio.Queue[list[DocumentSnapshot] | None] = asyncio.Queue()

    def _push(self, snapshot: list[DocumentSnapshot]) -> None:
        if not self.cancelled:
            self._queue.put_nowait(snapshot)

    def cancel(self) -> None:
        """Stop delivery. Safe to call more than once."""
        if self.cancelled:
            return
        self.cancelled = True
        self._store._unsubscribe(self)
        self._queue.put_nowait(None)  # Wake a consumer blocked on get()

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> list[DocumentSnapshot]:
        if self.cancelled:
            raise StopAsyncIteration
        snapshot = await self._queue.get()
        if snapshot is None or self.cancelled:
            raise StopAsyncIteration
        return snapshot

    async def next(self) -> list[DocumentSnapshot]:
        """Wait for the next snapshot.

        Raises:
            StoreError: If the subscription was cancelled.
        """
        try:
            return await self.__anext__()
        except StopAsyncIteration:
            raise StoreError(f"subscription to {self.collection} is closed") from None


class DocumentStore:
    """The hosted document database, kept in process.

    Opened and closed explicitly; when ``path`` is set, the contents are
    loaded on open and written back (atomically) after every write.
    """

    def __init__(self, path: str | None = None):
        self.path = path or None
        self.is_open = False
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._subscriptions: dict[str, list[Subscription]] = {}

    async def open(self) -> None:
        """Load persisted documents and start accepting operations."""
        if self.path and Path(self.path).exists():
            with open(self.path) as f:
                self._collections = json.load(f)
            logger.info("Loaded document store from %s", self.path)
        self.is_open = True

    async def close(self) -> None:
        """Cancel every subscription and flush to disk."""
        for subscriptions in list(self._subscriptions.values()):
            for subscription in list(subscriptions):
                subscription.cancel()
        self._save(self._collections)
        self.is_open = False

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Point read. Returns a copy of the document, or None if absent."""
        await asyncio.sleep(0)
        self._require_open()
        doc = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        merge: bool = True,
    ) -> None:
        """Write a document, creating it if needed.

        Args:
            collection: Collection name.
            doc_id: Document id.
            data: Fields to write.
            merge: Keep fields not present in ``data`` (top-level merge).
        """
        await asyncio.sleep(0)
        self._require_open()
        docs = self._collections.get(collection, {})
        current = docs.get(doc_id, {}) if merge else {}
        updated = {
            **self._collections,
            collection: {**docs, doc_id: {**current, **copy.deepcopy(data)}},
        }
        try:
            self._save(updated)
        except OSError as e:
            raise StoreError(f"could not persist {collection}/{doc_id}: {e}") from e
        self._collections = updated
        self._notify(collection)

    async def list(self, collection: str) -> list[DocumentSnapshot]:
        """Read every document in a collection, ordered by id."""
        await asyncio.sleep(0)
        self._require_open()
        return self._snapshot(collection)

    def subscribe(self, collection: str) -> Subscription:
        """Open a live subscription; the current snapshot is queued at once."""
        self._require_open()
        subscription = Subscription(self, collection)
        self._subscriptions.setdefault(collection, []).append(subscription)
        subscription._push(self._snapshot(collection))
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.collection, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)

    def _notify(self, collection: str) -> None:
        subscriptions = self._subscriptions.get(collection, [])
        if not subscriptions:
            return
        snapshot = self._snapshot(collection)
        for subscription in list(subscriptions):
            subscription._push(copy.deepcopy(snapshot))

    def _snapshot(self, collection: str) -> list[DocumentSnapshot]:
        docs = self._collections.get(collection, {})
        return [
            DocumentSnapshot(id=doc_id, data=copy.deepcopy(docs[doc_id]))
            for doc_id in sorted(docs)
        ]

    def _require_open(self) -> None:
        if not self.is_open:
            raise StoreError("document store is not open")

    def _save(self, collections: dict[str, dict[str, dict[str, Any]]]) -> None:
        """Persist collections to a JSON file (atomic write)."""
        if not self.path:
            return
        tmp_path = self.path + ".tmp"
        with open(tmp_path, "w") as f:
            json.dump(collections, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, self.path)
