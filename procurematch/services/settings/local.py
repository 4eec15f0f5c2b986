import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from procurematch.services.settings.base import WebhookSettingsStore, WebhookUrls

logger = logging.getLogger("procurematch.settings")


class LocalWebhookSettingsStore(WebhookSettingsStore):
    """Persists webhook URLs in a local YAML file.

    File format:
        confirmation: https://n8n.example.com/webhook/ab
        delivery: https://n8n.example.com/webhook/ls

    Storage problems never propagate: an unreadable file yields the defaults,
    and a failed write keeps the new value in memory only.
    """

    def __init__(self, path: str | Path, defaults: WebhookUrls | None = None):
        self._path = Path(path)
        self._defaults = defaults or WebhookUrls()
        self._cache: WebhookUrls | None = None

    @property
    def path(self) -> Path:
        return self._path

    def get(self) -> WebhookUrls:
        if self._cache is None:
            self._cache = self._load()
        return self._cache

    def save(self, urls: WebhookUrls) -> WebhookUrls:
        sanitized = WebhookUrls.model_validate(urls.model_dump())
        self._cache = sanitized
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w") as f:
                yaml.safe_dump(sanitized.model_dump(), f, sort_keys=True)
        except OSError as e:
            logger.error(f"Webhook settings write to {self._path} failed: {e}")
        return sanitized

    def _load(self) -> WebhookUrls:
        if not self._path.exists():
            return self._defaults
        try:
            with open(self._path) as f:
                data = yaml.safe_load(f) or {}
            merged = self._defaults.model_dump()
            merged.update({k: v for k, v in data.items() if k in merged})
            return WebhookUrls.model_validate(merged)
        except (OSError, yaml.YAMLError, AttributeError, ValidationError) as e:
            logger.error(f"Webhook settings read from {self._path} failed: {e}")
            return self._defaults
