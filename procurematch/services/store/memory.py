import copy
from typing import Any

from procurematch.errors import StoreWriteError
from procurematch.services.store.base import (
    DocumentStore,
    ErrorCallback,
    SnapshotCallback,
    StoredDocument,
    Unsubscribe,
)


def apply_field_paths(document: dict[str, Any], fields: dict[str, Any]) -> None:
    """Merge dotted field paths into a document in place."""
    for path, value in fields.items():
        parts = path.split(".")
        target = document
        for part in parts[:-1]:
            child = target.get(part)
            if not isinstance(child, dict):
                child = {}
                target[part] = child
            target = child
        target[parts[-1]] = copy.deepcopy(value)


class InMemoryDocumentStore(DocumentStore):
    """In-process document store for development and tests.

    Notifies watchers synchronously on every change. Captures writes for
    inspection, mirroring what an external verification system would see.
    """

    def __init__(self, collections: dict[str, dict[str, dict]] | None = None):
        self._collections: dict[str, dict[str, Any]] = copy.deepcopy(collections or {})
        self._watchers: dict[str, list[tuple[SnapshotCallback, ErrorCallback]]] = {}
        self._calls: list[dict] = []
        self._write_error: Exception | None = None

    def watch(
        self,
        collection_path: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        entry = (on_snapshot, on_error)
        self._watchers.setdefault(collection_path, []).append(entry)
        self._calls.append({"action": "watch", "collection_path": collection_path})
        on_snapshot(self._documents(collection_path))

        def unsubscribe() -> None:
            watchers = self._watchers.get(collection_path, [])
            if entry in watchers:
                watchers.remove(entry)
                self._calls.append({"action": "unwatch", "collection_path": collection_path})

        return unsubscribe

    async def update_fields(self, collection_path: str, document_id: str, fields: dict[str, Any]) -> None:
        self._calls.append({
            "action": "update_fields",
            "collection_path": collection_path,
            "document_id": document_id,
            "fields": copy.deepcopy(fields),
        })
        if self._write_error is not None:
            raise StoreWriteError(f"Write to {collection_path}/{document_id} failed: {self._write_error}")

        document = self._collections.get(collection_path, {}).get(document_id)
        if not isinstance(document, dict):
            raise StoreWriteError(f"No document to update: {collection_path}/{document_id}")
        apply_field_paths(document, fields)
        self._notify(collection_path)

    # --- External writers (ingestion, verification results) ---

    def set_document(self, collection_path: str, document_id: str, data: Any) -> None:
        """Insert or replace a whole document."""
        self._collections.setdefault(collection_path, {})[document_id] = copy.deepcopy(data)
        self._notify(collection_path)

    def merge_fields(self, collection_path: str, document_id: str, fields: dict[str, Any]) -> None:
        """Partial write from an external system, e.g. a verification result."""
        document = self._collections.setdefault(collection_path, {}).setdefault(document_id, {})
        apply_field_paths(document, fields)
        self._notify(collection_path)

    def delete_document(self, collection_path: str, document_id: str) -> None:
        self._collections.get(collection_path, {}).pop(document_id, None)
        self._notify(collection_path)

    def get_document(self, collection_path: str, document_id: str) -> Any:
        return copy.deepcopy(self._collections.get(collection_path, {}).get(document_id))

    def emit_error(self, collection_path: str, error: Exception) -> None:
        """Report a listener failure to every watcher of the collection."""
        for _, on_error in list(self._watchers.get(collection_path, [])):
            on_error(error)

    def fail_writes(self, error: Exception | None) -> None:
        """Make subsequent update_fields calls fail (None restores normal writes)."""
        self._write_error = error

    # --- Inspection API ---

    @property
    def updates(self) -> list[dict]:
        return [c for c in self._calls if c["action"] == "update_fields"]

    @property
    def all_calls(self) -> list[dict]:
        return list(self._calls)

    def watcher_count(self, collection_path: str) -> int:
        return len(self._watchers.get(collection_path, []))

    def reset(self):
        self._calls.clear()

    def _documents(self, collection_path: str) -> list[StoredDocument]:
        return [
            StoredDocument(id=doc_id, data=copy.deepcopy(data))
            for doc_id, data in self._collections.get(collection_path, {}).items()
        ]

    def _notify(self, collection_path: str) -> None:
        documents = self._documents(collection_path)
        for on_snapshot, _ in list(self._watchers.get(collection_path, [])):
            on_snapshot(documents)
