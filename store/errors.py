"""Document store error taxonomy."""


class StoreError(Exception):
    """A read, write or subscription against the document store failed."""


class PermissionDeniedError(StoreError):
    """The caller's identity may not touch the requested document."""

    def __init__(self, collection: str, doc_id: str | None = None):
        self.collection = collection
        self.doc_id = doc_id
        target = f"{collection}/{doc_id}" if doc_id is not None else collection
        super().__init__(f"permission denied on {target}")
