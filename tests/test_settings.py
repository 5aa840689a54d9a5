"""Tests for YAML + environment configuration loading."""
import pytest

from config.settings import Settings, get_settings, load_settings, reset_settings

ENV_VARS = ["PORT", "LOG_LEVEL", "DB_DSN", "REDIS_ADDR", "WEBHOOK_URL", "WEBHOOK_AUTH_KEY", "AUTO_SENDER_CONFIG"]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def config_file(tmp_path):
    def write(text: str) -> str:
        path = tmp_path / "settings.yaml"
        path.write_text(text)
        return str(path)
    return write


class TestDefaults:

    def test_dataclass_defaults(self):
        s = Settings()
        assert s.port == 8080
        assert s.scheduler.interval_seconds == 120.0
        assert s.scheduler.batch_size == 2
        assert s.delivery.timeout_seconds == 5.0
        assert s.delivery.accepted_status == 202
        assert s.delivery.auth_header == "x-ins-auth-key"
        assert s.cache.ttl_seconds == 86400
        assert s.database.store_backend == "memory"

    def test_bundled_yaml_matches_defaults(self):
        s = load_settings()
        assert s.scheduler.interval_seconds == 120.0
        assert s.scheduler.batch_size == 2
        assert s.delivery.webhook_url == ""
        assert s.database.store_backend == "memory"

    def test_missing_file_uses_defaults(self, tmp_path):
        s = load_settings(str(tmp_path / "absent.yaml"))
        assert s == Settings()


class TestYamlLoading:

    def test_sections(self, config_file):
        path = config_file(
            "port: 9000\n"
            "scheduler:\n  interval_seconds: 5\n  batch_size: 10\n  autostart: false\n"
            "delivery:\n  webhook_url: https://hook.test/x\n  timeout_seconds: 2\n"
            "cache:\n  redis_url: redis://cache:6379\n"
        )
        s = load_settings(path)
        assert s.port == 9000
        assert s.scheduler.interval_seconds == 5.0
        assert s.scheduler.batch_size == 10
        assert s.scheduler.autostart is False
        assert s.delivery.webhook_url == "https://hook.test/x"
        assert s.delivery.timeout_seconds == 2.0
        assert s.delivery.auth_header == "x-ins-auth-key"
        assert s.cache.redis_url == "redis://cache:6379"

    def test_env_substitution(self, config_file, monkeypatch):
        monkeypatch.setenv("HOOK_TOKEN", "abc123")
        path = config_file('delivery:\n  webhook_url: "https://hook.test/${HOOK_TOKEN}"\n  auth_key: "${UNSET_VAR_XYZ}"\n')
        s = load_settings(path)
        assert s.delivery.webhook_url == "https://hook.test/abc123"
        assert s.delivery.auth_key == ""

    def test_config_path_from_env(self, config_file, monkeypatch):
        monkeypatch.setenv("AUTO_SENDER_CONFIG", config_file("port: 7070\n"))
        assert load_settings().port == 7070


class TestEnvOverrides:

    def test_deployment_variables(self, config_file, monkeypatch):
        monkeypatch.setenv("PORT", "8081")
        monkeypatch.setenv("DB_DSN", "mysql://appuser:apppass@db:3306/auto_sender")
        monkeypatch.setenv("REDIS_ADDR", "redis:6379")
        monkeypatch.setenv("WEBHOOK_URL", "https://webhook.site/abc")
        monkeypatch.setenv("WEBHOOK_AUTH_KEY", "INS.me1x9uMcyYGlhKKQVPoc.bO3j9aZwRTOcA2Ywo")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        s = load_settings(config_file("port: 9000\n"))

        assert s.port == 8081
        assert s.database.url == "mysql://appuser:apppass@db:3306/auto_sender"
        assert s.database.store_backend == "sql"
        assert s.cache.redis_url == "redis://redis:6379"
        assert s.delivery.webhook_url == "https://webhook.site/abc"
        assert s.delivery.auth_key.startswith("INS.")
        assert s.log_level == "DEBUG"

    def test_redis_url_with_scheme_kept(self, monkeypatch, tmp_path):
        monkeypatch.setenv("REDIS_ADDR", "rediss://secure:6380/1")
        s = load_settings(str(tmp_path / "absent.yaml"))
        assert s.cache.redis_url == "rediss://secure:6380/1"


def test_get_settings_caches_until_reset(config_file, monkeypatch):
    monkeypatch.setenv("AUTO_SENDER_CONFIG", config_file("port: 7071\n"))
    first = get_settings()
    assert get_settings() is first
    reset_settings()
    assert get_settings() is not first
