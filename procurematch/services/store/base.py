from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel

SnapshotCallback = Callable[[list["StoredDocument"]], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


class StoredDocument(BaseModel):
    """A raw document as delivered by the store: its key plus untyped data."""
    id: str
    data: Any = None


class DocumentStore(ABC):
    """Live document collection with partial-field updates.

    Field paths in `update_fields` are dotted ("confirmation.status") and only
    touch the named fields, leaving the rest of the document alone.
    """

    @abstractmethod
    def watch(
        self,
        collection_path: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        """Subscribe to the full result set of a collection.

        `on_snapshot` receives the complete document set on every change.
        Returns a callable that cancels the subscription.
        """
        ...

    @abstractmethod
    async def update_fields(self, collection_path: str, document_id: str, fields: dict[str, Any]) -> None:
        """Apply a partial-field write. Raises StoreWriteError on failure."""
        ...
