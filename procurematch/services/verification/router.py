import httpx

from procurematch.services.settings.base import WebhookSettingsStore
from procurematch.services.verification.base import OutcomeClassifier
from procurematch.services.verification.webhook import ExternalServiceClassifier


class ClassifierRouter:
    """Picks the classifier for a stage from the current webhook settings.

    A configured URL routes to the external verification service; otherwise
    the fallback classifier decides synchronously. Settings are read on every
    call so saved URLs take effect for the next upload.
    """

    def __init__(
        self,
        settings: WebhookSettingsStore,
        fallback: OutcomeClassifier,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._settings = settings
        self._fallback = fallback
        self._timeout = timeout
        self._transport = transport

    @property
    def fallback(self) -> OutcomeClassifier:
        return self._fallback

    def for_stage(self, stage: str) -> OutcomeClassifier:
        url = self._settings.get().url_for(stage)
        if url:
            return ExternalServiceClassifier(url, timeout=self._timeout, transport=self._transport)
        return self._fallback
