"""Unit tests for AppConfig."""
import pytest

from procurematch.config import AppConfig


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    """Prevent real env vars and .env file from leaking into tests."""
    monkeypatch.chdir(tmp_path)
    for key in (
        "APP_ID",
        "STORE_BACKEND",
        "FIRESTORE_PROJECT",
        "CONFIRMATION_WEBHOOK_URL",
        "DELIVERY_WEBHOOK_URL",
        "OPIK_API_KEY",
    ):
        monkeypatch.delenv(key, raising=False)


class TestAppConfig:
    def test_creates_with_defaults(self):
        config = AppConfig()
        assert config.app_id == "default-app-id"
        assert config.store_backend == "firestore"
        assert config.firestore_project is None
        assert config.webhook_settings_store == "local"
        assert config.simulated_verified_probability == 0.3
        assert config.upload_lock_scope == "stage"
        assert config.rollback_on_dispatch_failure is False
        assert config.opik_project == "procurematch"

    def test_collection_path_uses_app_id(self):
        config = AppConfig(app_id="acme-prod")
        assert config.collection_path == "artifacts/acme-prod/public/data/procurement_processes"

    def test_app_id_is_sanitized(self):
        assert AppConfig(app_id=" <acme> ").app_id == "acme"

    def test_blank_app_id_falls_back_to_default(self):
        assert AppConfig(app_id="  ").app_id == "default-app-id"

    def test_from_yaml(self, tmp_path):
        yaml_content = """\
app_id: acme
store_backend: memory
confirmation_webhook_url: https://n8n.example.com/webhook/ab
upload_lock_scope: session
rollback_on_dispatch_failure: true
opik_project: my-project
"""
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text(yaml_content)

        config = AppConfig.from_yaml(yaml_file)
        assert config.app_id == "acme"
        assert config.store_backend == "memory"
        assert config.confirmation_webhook_url == "https://n8n.example.com/webhook/ab"
        assert config.upload_lock_scope == "session"
        assert config.rollback_on_dispatch_failure is True
        assert config.opik_project == "my-project"

    def test_empty_yaml_gives_defaults(self, tmp_path):
        yaml_file = tmp_path / "config.yaml"
        yaml_file.write_text("")
        assert AppConfig.from_yaml(yaml_file).app_id == "default-app-id"

    def test_load_without_file_uses_env(self, monkeypatch):
        monkeypatch.setenv("APP_ID", "from-env")
        config = AppConfig.load("missing.yaml")
        assert config.app_id == "from-env"

    def test_load_reads_yaml_when_present(self, tmp_path):
        (tmp_path / "config.yaml").write_text("app_id: from-yaml\n")
        assert AppConfig.load().app_id == "from-yaml"

    def test_for_dev(self):
        config = AppConfig.for_dev()
        assert config.store_backend == "memory"
        assert config.webhook_settings_store == "memory"
        assert config.confirmation_webhook_url is None
        assert config.delivery_webhook_url is None

    def test_reads_firestore_project_from_env(self, monkeypatch):
        monkeypatch.setenv("FIRESTORE_PROJECT", "procure-prod")
        assert AppConfig().firestore_project == "procure-prod"

    def test_reads_opik_api_key_from_env(self, monkeypatch):
        monkeypatch.setenv("OPIK_API_KEY", "op-test-456")
        assert AppConfig().opik_api_key == "op-test-456"

    def test_reads_env_file(self, tmp_path):
        (tmp_path / ".env").write_text("APP_ID=dotenv-app\n")
        assert AppConfig().app_id == "dotenv-app"
