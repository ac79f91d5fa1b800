"""
Tests for environment settings (ip_osint/config.py)
"""
from ip_osint.config import Settings


class TestSettings:

    def test_defaults(self, monkeypatch):
        for name in ("CDP_HOST", "CDP_PORT", "REDIS_URL", "OSINT_PREFIX", "COMMAND_TIMEOUT"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings.from_env()

        assert settings.http_url == "http://127.0.0.1:9222"
        assert settings.redis_url == "redis://127.0.0.1:6379"
        assert settings.key_prefix == "osint"
        assert settings.command_timeout == 30.0
        assert settings.navigate_fallback == Settings().navigate_fallback

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("CDP_HOST", "10.0.0.5")
        monkeypatch.setenv("CDP_PORT", "9333")
        monkeypatch.setenv("OSINT_PREFIX", "osint-staging")
        monkeypatch.setenv("LOAD_SETTLE", "0.5")

        settings = Settings.from_env()

        assert settings.http_url == "http://10.0.0.5:9333"
        assert settings.key_prefix == "osint-staging"
        assert settings.load_settle == 0.5
