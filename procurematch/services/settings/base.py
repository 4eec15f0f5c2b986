from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, field_validator

from procurematch.core.sanitize import sanitize_text


class WebhookUrls(BaseModel):
    """Verification endpoint URL per uploadable stage. None means fallback mode."""
    confirmation: str | None = None
    delivery: str | None = None

    @field_validator("confirmation", "delivery", mode="before")
    @classmethod
    def _sanitize(cls, value: Any) -> str | None:
        if value is None:
            return None
        return sanitize_text(value) or None

    def url_for(self, stage: str) -> str | None:
        if stage == "confirmation":
            return self.confirmation
        if stage == "delivery":
            return self.delivery
        return None


class WebhookSettingsStore(ABC):
    """Key-value persistence for the per-stage verification endpoints."""

    @abstractmethod
    def get(self) -> WebhookUrls:
        """Return the currently configured URLs."""
        ...

    @abstractmethod
    def save(self, urls: WebhookUrls) -> WebhookUrls:
        """Persist URLs and return the stored (sanitized) value."""
        ...
