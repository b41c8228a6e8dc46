"""
Tests for basecore settings.
"""

import pytest

from basecore.settings import ConfigurationError, Settings, get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("RESIDENCY_BACKEND", raising=False)
        settings = Settings(_env_file=None)

        assert settings.RESIDENCY_BACKEND == "stub"
        assert settings.API_TIMEOUT_MS == 10_000
        assert settings.API_RETRY == 1
        assert settings.API_RETRY_DELAY_MS == 500

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("RESIDENCY_BACKEND", "supabase")
        monkeypatch.setenv("SUPABASE_URL", "https://demo.supabase.co")
        monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")

        settings = get_settings()

        assert settings.RESIDENCY_BACKEND == "supabase"
        assert settings.require_supabase() == ("https://demo.supabase.co", "anon")

    def test_missing_supabase_config(self):
        settings = Settings(_env_file=None, SUPABASE_URL="https://demo.supabase.co", SUPABASE_ANON_KEY="")

        with pytest.raises(ConfigurationError, match="SUPABASE_ANON_KEY"):
            settings.require_supabase()

    def test_unknown_backend_rejected(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None, RESIDENCY_BACKEND="firebase")
