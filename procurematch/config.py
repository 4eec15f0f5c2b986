from pathlib import Path

import yaml
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from procurematch.core.sanitize import sanitize_text

DEFAULT_APP_ID = "default-app-id"
COLLECTION_PATH_TEMPLATE = "artifacts/{app_id}/public/data/procurement_processes"


class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application
    app_id: str = DEFAULT_APP_ID
    log_level: str = "INFO"

    # Backing store
    store_backend: str = "firestore"  # "firestore" | "memory"
    firestore_project: str | None = None
    firestore_database: str | None = None
    firestore_credentials_file: str | None = None

    # Verification webhooks (defaults for the settings store)
    confirmation_webhook_url: str | None = None
    delivery_webhook_url: str | None = None
    webhook_timeout_seconds: float = 30.0
    webhook_settings_store: str = "local"  # "local" | "memory"
    webhook_settings_file: str = "webhooks.yaml"

    # Upload behaviour
    simulated_verified_probability: float = 0.3
    upload_lock_scope: str = "stage"  # "stage" | "session"
    rollback_on_dispatch_failure: bool = False

    # Opik
    opik_workspace: str | None = None
    opik_project: str = "procurematch"
    opik_api_key: str | None = None

    @field_validator("app_id", mode="before")
    @classmethod
    def _sanitize_app_id(cls, value):
        return sanitize_text(value) or DEFAULT_APP_ID

    @property
    def collection_path(self) -> str:
        return COLLECTION_PATH_TEMPLATE.format(app_id=self.app_id)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "AppConfig":
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls(**data)

    @classmethod
    def load(cls, path: str | Path = "config.yaml") -> "AppConfig":
        """YAML file when present, otherwise environment and .env only."""
        if Path(path).exists():
            return cls.from_yaml(path)
        return cls()

    @classmethod
    def for_dev(cls) -> "AppConfig":
        """Pre-configured for local development: in-memory store and settings, fallback classifier."""
        return cls(
            store_backend="memory",
            webhook_settings_store="memory",
            confirmation_webhook_url=None,
            delivery_webhook_url=None,
        )
