import asyncio
import logging
import threading
from typing import Any

from google.cloud import firestore
from google.oauth2 import service_account

from procurematch.errors import StoreWriteError, SubscriptionFailure
from procurematch.services.store.base import (
    DocumentStore,
    ErrorCallback,
    SnapshotCallback,
    StoredDocument,
    Unsubscribe,
)

logger = logging.getLogger("procurematch.store")


class FirestoreDocumentStore(DocumentStore):
    """Cloud Firestore backed document store.

    Firestore delivers snapshots on its own watch thread. Callbacks are handed
    back to the event loop that opened the watch, so consumers only ever run
    on that loop. Writes use `DocumentReference.update`, which treats dotted
    keys as field paths.

    The client library has no error callback for the listen stream: a
    PERMISSION_DENIED or a closed stream only ends the watch on the client
    thread. A monitor thread polls `Watch.is_active` every
    `health_check_interval` seconds and reports a closed stream through
    `on_error`.
    """

    def __init__(
        self,
        project: str,
        database: str | None = None,
        credentials_file: str | None = None,
        health_check_interval: float = 5.0,
    ):
        credentials = None
        if credentials_file:
            credentials = service_account.Credentials.from_service_account_file(credentials_file)
        kwargs: dict[str, Any] = {"project": project, "credentials": credentials}
        if database:
            kwargs["database"] = database
        self._client = firestore.Client(**kwargs)
        self._health_check_interval = health_check_interval

    def watch(
        self,
        collection_path: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        def deliver(callback, arg) -> None:
            if loop is None:
                callback(arg)
            else:
                loop.call_soon_threadsafe(callback, arg)

        def handle_snapshot(col_snapshot, changes, read_time) -> None:
            try:
                documents = [StoredDocument(id=doc.id, data=doc.to_dict()) for doc in col_snapshot]
            except Exception as e:
                logger.error(f"Failed to read snapshot of {collection_path}: {e}")
                deliver(on_error, e)
                return
            deliver(on_snapshot, documents)

        watch = self._client.collection(collection_path).on_snapshot(handle_snapshot)
        logger.info(f"Watching Firestore collection {collection_path}")

        stopped = threading.Event()

        def monitor() -> None:
            while not stopped.wait(self._health_check_interval):
                if not watch.is_active and not stopped.is_set():
                    error = SubscriptionFailure(f"Firestore listen stream on {collection_path} closed")
                    logger.error(str(error))
                    deliver(on_error, error)
                    return

        threading.Thread(target=monitor, name=f"firestore-watch-monitor:{collection_path}", daemon=True).start()

        def unsubscribe() -> None:
            stopped.set()
            watch.unsubscribe()

        return unsubscribe

    async def update_fields(self, collection_path: str, document_id: str, fields: dict[str, Any]) -> None:
        doc_ref = self._client.collection(collection_path).document(document_id)
        try:
            await asyncio.to_thread(doc_ref.update, fields)
        except Exception as e:
            raise StoreWriteError(f"Firestore update of {collection_path}/{document_id} failed: {e}") from e
