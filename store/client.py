"""Identity-bound access to the document store.

A DocumentClient applies the ownership rules for the caller it was built for:

- ``characters/{uid}``: the player whose uid it is, or any admin.
- the ``characters`` collection as a whole (list, subscribe): admins only.
- ``adminSettings/{uid}``: only the admin whose uid it is.

Anything else is denied.
"""

from typing import Any

from auth import Identity
from config import ADMIN_SETTINGS_COLLECTION, CHARACTERS_COLLECTION
from store.documents import DocumentSnapshot, DocumentStore, Subscription
from store.errors import PermissionDeniedError


def can_access(identity: Identity, collection: str, doc_id: str) -> bool:
    """Whether the identity may read and write one document."""
    if collection == CHARACTERS_COLLECTION:
        return identity.admin or identity.uid == doc_id
    if collection == ADMIN_SETTINGS_COLLECTION:
        return identity.admin and identity.uid == doc_id
    return False


def can_list(identity: Identity, collection: str) -> bool:
    """Whether the identity may read a whole collection."""
    return collection == CHARACTERS_COLLECTION and identity.admin


class DocumentClient:
    """The store as seen by one authenticated identity."""

    def __init__(self, store: DocumentStore, identity: Identity):
        self.store = store
        self.identity = identity

    def _check(self, collection: str, doc_id: str) -> None:
        if not can_access(self.identity, collection, doc_id):
            raise PermissionDeniedError(collection, doc_id)

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        self._check(collection, doc_id)
        return await self.store.get(collection, doc_id)

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        merge: bool = True,
    ) -> None:
        self._check(collection, doc_id)
        await self.store.set(collection, doc_id, data, merge=merge)

    async def list(self, collection: str) -> list[DocumentSnapshot]:
        if not can_list(self.identity, collection):
            raise PermissionDeniedError(collection)
        return await self.store.list(collection)

    def subscribe(self, collection: str) -> Subscription:
        if not can_list(self.identity, collection):
            raise PermissionDeniedError(collection)
        return self.store.subscribe(collection)
