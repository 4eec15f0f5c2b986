"""WorkflowBuilder: wires store, synchronizer and upload services based on AppConfig."""
import logging

from procurematch.config import AppConfig
from procurematch.services.settings.base import WebhookSettingsStore, WebhookUrls
from procurematch.services.settings.local import LocalWebhookSettingsStore
from procurematch.services.settings.memory import InMemoryWebhookSettingsStore
from procurematch.services.store.base import DocumentStore
from procurematch.services.store.firestore import FirestoreDocumentStore
from procurematch.services.store.memory import InMemoryDocumentStore
from procurematch.services.verification.base import OutcomeClassifier
from procurematch.services.verification.router import ClassifierRouter
from procurematch.services.verification.simulated import RandomClassifier
from procurematch.sync import ProcessSynchronizer
from procurematch.upload import InFlightUploads, UploadOrchestrator
from procurematch.workflow import WorkflowGate

logger = logging.getLogger("procurematch.builder")


class WorkflowBuilder:
    """Builds the synchronization and upload services from config.

    A missing store descriptor does not raise here: the store is left as None
    so the synchronizer reports an error state and uploads are refused.
    """

    def __init__(self, config: AppConfig, fallback_classifier: OutcomeClassifier | None = None):
        self.config = config

        self._store = self._build_store()
        self._settings = self._build_settings_store()
        self._gate = WorkflowGate()
        self._synchronizer = ProcessSynchronizer(self._store, config.collection_path)
        self._classifiers = ClassifierRouter(
            settings=self._settings,
            fallback=fallback_classifier or RandomClassifier(config.simulated_verified_probability),
            timeout=config.webhook_timeout_seconds,
        )
        self._orchestrator = UploadOrchestrator(
            store=self._store,
            synchronizer=self._synchronizer,
            classifiers=self._classifiers,
            gate=self._gate,
            in_flight=InFlightUploads(config.upload_lock_scope),
            rollback_on_dispatch_failure=config.rollback_on_dispatch_failure,
        )

    @property
    def store(self) -> DocumentStore | None:
        return self._store

    @property
    def settings_store(self) -> WebhookSettingsStore:
        return self._settings

    @property
    def gate(self) -> WorkflowGate:
        return self._gate

    @property
    def synchronizer(self) -> ProcessSynchronizer:
        return self._synchronizer

    @property
    def classifiers(self) -> ClassifierRouter:
        return self._classifiers

    @property
    def orchestrator(self) -> UploadOrchestrator:
        return self._orchestrator

    def _build_store(self) -> DocumentStore | None:
        if self.config.store_backend == "memory":
            return InMemoryDocumentStore()
        if self.config.store_backend == "firestore":
            if not self.config.firestore_project:
                logger.error("Firestore configuration missing: set FIRESTORE_PROJECT")
                return None
            return FirestoreDocumentStore(
                project=self.config.firestore_project,
                database=self.config.firestore_database,
                credentials_file=self.config.firestore_credentials_file,
            )
        raise ValueError(f"Unknown store backend: {self.config.store_backend}")

    def _build_settings_store(self) -> WebhookSettingsStore:
        defaults = WebhookUrls(
            confirmation=self.config.confirmation_webhook_url,
            delivery=self.config.delivery_webhook_url,
        )
        if self.config.webhook_settings_store == "memory":
            return InMemoryWebhookSettingsStore(defaults)
        if self.config.webhook_settings_store == "local":
            return LocalWebhookSettingsStore(self.config.webhook_settings_file, defaults=defaults)
        raise ValueError(f"Unknown webhook settings store: {self.config.webhook_settings_store}")
