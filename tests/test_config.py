"""
Test the application settings.
"""

import pytest
from pydantic import ValidationError

from app.config import Settings, get_settings, settings


class TestSettings:
    """Settings defaults and validation."""

    def test_defaults(self):
        config = Settings(_env_file=None)

        assert config.POLL_INTERVAL_SECONDS == 2.0
        assert config.MAX_POLL_ATTEMPTS == 60
        assert config.MAX_CONVERSION_ATTEMPTS == 2
        assert config.RETRY_DELAY_SECONDS == 0.5
        assert config.MAX_FILES == 5
        assert config.MAX_FILE_SIZE == 50 * 1024 * 1024
        assert config.ALLOWED_EXTENSIONS == [".pdf"]

    def test_get_settings_returns_singleton(self):
        assert get_settings() is settings

    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, ENVIRONMENT="prod")

    def test_log_level_normalized(self):
        assert Settings(_env_file=None, LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_urls_normalized(self):
        config = Settings(_env_file=None, API_BASE_URL="https://vendor.test/", SUPABASE_URL="https://auth.test/")
        assert config.API_BASE_URL == "https://vendor.test"
        assert config.SUPABASE_URL == "https://auth.test"

    def test_extensions_normalized(self):
        assert Settings(_env_file=None, ALLOWED_EXTENSIONS=["PDF", ".Pdf"]).ALLOWED_EXTENSIONS == [".pdf", ".pdf"]

    @pytest.mark.parametrize(
        "overrides",
        [{"MAX_POLL_ATTEMPTS": 0}, {"MAX_CONVERSION_ATTEMPTS": 0}, {"RETRY_DELAY_SECONDS": -1}, {"MAX_FILE_SIZE": 0}],
    )
    def test_invalid_knobs(self, overrides):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, **overrides)

    def test_payment_values_must_differ(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, PAYMENT_REPORT_KARTA="same", PAYMENT_REPORT_DJAM="same")

    def test_configured_flags(self):
        config = Settings(_env_file=None, API_BASE_URL="https://vendor.test", API_KEY="k")
        assert config.vendor_configured
        assert not config.auth_configured

    def test_production_requires_services(self):
        config = Settings(_env_file=None, ENVIRONMENT="production", API_KEY="k")
        with pytest.raises(RuntimeError, match="API_BASE_URL"):
            config.check_production_ready()

    def test_production_ready(self):
        config = Settings(
            _env_file=None,
            ENVIRONMENT="production",
            API_BASE_URL="https://vendor.test",
            API_KEY="k",
            PAYMENT_REPORT_KARTA="vk",
            PAYMENT_REPORT_DJAM="vd",
            SUPABASE_URL="https://auth.test",
            SUPABASE_ANON_KEY="anon",
        )
        config.check_production_ready()
