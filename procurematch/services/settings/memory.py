from procurematch.services.settings.base import WebhookSettingsStore, WebhookUrls


class InMemoryWebhookSettingsStore(WebhookSettingsStore):
    def __init__(self, urls: WebhookUrls | None = None):
        self._urls = urls or WebhookUrls()

    def get(self) -> WebhookUrls:
        return self._urls

    def save(self, urls: WebhookUrls) -> WebhookUrls:
        self._urls = WebhookUrls.model_validate(urls.model_dump())
        return self._urls
