"""Live mirror of the procurement collection.

ProcessSynchronizer keeps one watch on the backing collection and rebuilds an
immutable, id-descending snapshot on every notification. Consumers subscribe
to snapshots instead of reading shared mutable state.
"""
import logging
from collections.abc import Callable
from typing import Literal

from pydantic import BaseModel, ConfigDict

from procurematch.core.process import Process, map_process
from procurematch.core.sanitize import sanitize_text
from procurematch.errors import ConfigurationMissing, SubscriptionFailure
from procurematch.services.store.base import DocumentStore, StoredDocument, Unsubscribe

logger = logging.getLogger("procurematch.sync")

ConnectionState = Literal["connecting", "connected", "error"]


class CollectionSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    processes: tuple[Process, ...] = ()
    connection: ConnectionState = "connecting"
    error: str | None = None


SnapshotListener = Callable[[CollectionSnapshot], None]


class _Subscription:
    """Token for one watch; callbacks from a stale token are dropped."""

    def __init__(self):
        self.cancel: Unsubscribe | None = None


class ProcessSynchronizer:
    def __init__(self, store: DocumentStore | None, collection_path: str):
        self._store = store
        self._collection_path = collection_path
        self._snapshot = CollectionSnapshot()
        self._listeners: list[SnapshotListener] = []
        self._subscription: _Subscription | None = None

    @property
    def collection_path(self) -> str:
        return self._collection_path

    @property
    def snapshot(self) -> CollectionSnapshot:
        return self._snapshot

    @property
    def processes(self) -> tuple[Process, ...]:
        return self._snapshot.processes

    @property
    def connection(self) -> ConnectionState:
        return self._snapshot.connection

    @property
    def is_active(self) -> bool:
        return self._subscription is not None

    def get(self, process_id: str) -> Process | None:
        wanted = sanitize_text(process_id)
        return next((p for p in self._snapshot.processes if p.id == wanted), None)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener; it is called at once with the current snapshot."""
        self._listeners.append(listener)
        listener(self._snapshot)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self) -> None:
        """Open the watch. No-op while a watch is already active."""
        if self._subscription is not None:
            return

        if self._store is None:
            error = ConfigurationMissing("No backing store configured")
            logger.error(f"Cannot synchronize {self._collection_path}: {error}")
            self._publish(CollectionSnapshot(connection="error", error=str(error)))
            return

        subscription = _Subscription()
        self._subscription = subscription
        self._publish(CollectionSnapshot(connection="connecting"))

        try:
            cancel = self._store.watch(
                self._collection_path,
                lambda documents: self._handle_documents(subscription, documents),
                lambda error: self._handle_error(subscription, error),
            )
        except Exception as e:
            self._handle_error(subscription, e)
            return

        if self._subscription is subscription:
            subscription.cancel = cancel
        else:
            # Watch errored while opening; release it right away.
            cancel()

    def stop(self) -> None:
        """Cancel the watch. Nothing is published from it afterwards."""
        subscription = self._subscription
        self._subscription = None
        if subscription is not None and subscription.cancel is not None:
            subscription.cancel()
            logger.info(f"Stopped watching {self._collection_path}")

    def restart(self) -> None:
        self.stop()
        self.start()

    def _handle_documents(self, subscription: _Subscription, documents: list[StoredDocument]) -> None:
        if subscription is not self._subscription:
            return

        processes = [map_process(doc.data, doc.id) for doc in documents]
        processes.sort(key=lambda p: p.id, reverse=True)

        if self._snapshot.connection != "connected":
            logger.info(f"Connected to {self._collection_path}")
        self._publish(CollectionSnapshot(processes=tuple(processes), connection="connected"))

    def _handle_error(self, subscription: _Subscription, error: Exception) -> None:
        if subscription is not self._subscription:
            return

        failure = error if isinstance(error, SubscriptionFailure) else SubscriptionFailure(str(error))
        logger.error(f"Listener error on {self._collection_path}: {failure}")

        self._subscription = None
        if subscription.cancel is not None:
            subscription.cancel()
        self._publish(CollectionSnapshot(connection="error", error=str(failure)))

    def _publish(self, snapshot: CollectionSnapshot) -> None:
        self._snapshot = snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener raised")
