"""
Configuration settings for the PDF → ASYCUDA XML portal.

This module handles environment variables, application settings,
and configuration validation using Pydantic Settings.
"""

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

APP_DIR = Path(__file__).resolve().parent


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    All settings can be overridden using environment variables
    with the same name (case-insensitive).
    """

    # Application settings
    APP_NAME: str = "PDF → ASYCUDA XML Portal"
    VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Server settings
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # CORS settings
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:8000"]
    ALLOWED_HOSTS: list[str] = ["*"]

    # Logging settings
    LOG_LEVEL: str = "INFO"

    # Web UI settings
    TEMPLATES_DIR: str = str(APP_DIR / "templates")
    STATIC_DIR: str = str(APP_DIR / "static")

    # Conversion service (vendor) settings
    API_BASE_URL: str = ""
    API_KEY: str = ""
    PAYMENT_REPORT_KARTA: str = ""
    PAYMENT_REPORT_DJAM: str = ""
    VENDOR_EXCHANGE_RATE_FIELD: str = "taux_douane"
    VENDOR_PAYMENT_REPORT_FIELD: str = "rapport_paiement"
    REQUEST_TIMEOUT: float = 120.0  # 2 minutes

    # Orchestrator settings
    POLL_INTERVAL_SECONDS: float = 2.0
    MAX_POLL_ATTEMPTS: int = 60  # 60 * 2s = 2 minutes
    MAX_CONVERSION_ATTEMPTS: int = 2  # initial attempt + 1 automatic retry
    RETRY_DELAY_SECONDS: float = 0.5

    # File upload settings
    MAX_FILES: int = 5
    MAX_FILE_SIZE: int = 50 * 1024 * 1024  # 50MB
    ALLOWED_EXTENSIONS: list[str] = [".pdf"]
    ALLOWED_CONTENT_TYPES: list[str] = ["application/pdf"]

    # Authentication provider settings
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    SESSION_COOKIE_NAME: str = "sb-access-token"
    SESSION_MAX_AGE: int = 60 * 60 * 24 * 7  # 1 week

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment setting."""
        allowed_envs = ["development", "staging", "production"]
        if v not in allowed_envs:
            raise ValueError(f"ENVIRONMENT must be one of {allowed_envs}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level setting."""
        allowed_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed_levels:
            raise ValueError(f"LOG_LEVEL must be one of {allowed_levels}")
        return v.upper()

    @field_validator("API_BASE_URL", "SUPABASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize base URLs so paths can be appended directly."""
        return v.rstrip("/")

    @field_validator("MAX_FILE_SIZE")
    @classmethod
    def validate_max_file_size(cls, v: int) -> int:
        """Validate maximum file size."""
        if v <= 0:
            raise ValueError("MAX_FILE_SIZE must be positive")
        if v > 500 * 1024 * 1024:  # 500MB
            raise ValueError("MAX_FILE_SIZE cannot exceed 500MB")
        return v

    @field_validator("MAX_FILES", "MAX_POLL_ATTEMPTS", "MAX_CONVERSION_ATTEMPTS")
    @classmethod
    def validate_positive_count(cls, v: int, info) -> int:
        """Validate counters that must allow at least one iteration."""
        if v < 1:
            raise ValueError(f"{info.field_name} must be at least 1")
        return v

    @field_validator("POLL_INTERVAL_SECONDS", "RETRY_DELAY_SECONDS", "REQUEST_TIMEOUT")
    @classmethod
    def validate_non_negative_delay(cls, v: float, info) -> float:
        """Validate delays and timeouts."""
        if v < 0:
            raise ValueError(f"{info.field_name} must not be negative")
        return v

    @field_validator("ALLOWED_EXTENSIONS")
    @classmethod
    def validate_extensions(cls, v: list[str]) -> list[str]:
        """Normalize extensions so they start with a dot."""
        if not v:
            raise ValueError("At least one extension must be allowed")
        return [ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in v]

    @field_validator("PAYMENT_REPORT_DJAM")
    @classmethod
    def validate_payment_reports(cls, v: str, info) -> str:
        """Both payment-report labels must not map to the same vendor value."""
        karta = info.data.get("PAYMENT_REPORT_KARTA", "")
        if v and karta and v == karta:
            raise ValueError("PAYMENT_REPORT_KARTA and PAYMENT_REPORT_DJAM must differ")
        return v

    @property
    def vendor_configured(self) -> bool:
        """Whether the conversion service can be reached."""
        return bool(self.API_BASE_URL and self.API_KEY)

    @property
    def auth_configured(self) -> bool:
        """Whether the authentication provider can be reached."""
        return bool(self.SUPABASE_URL and self.SUPABASE_ANON_KEY)

    def check_production_ready(self) -> None:
        """
        Refuse to start in production without vendor and auth settings.

        Raises:
            RuntimeError: If a required production setting is missing
        """
        if self.ENVIRONMENT != "production":
            return
        missing = [
            name
            for name in (
                "API_BASE_URL",
                "API_KEY",
                "PAYMENT_REPORT_KARTA",
                "PAYMENT_REPORT_DJAM",
                "SUPABASE_URL",
                "SUPABASE_ANON_KEY",
            )
            if not getattr(self, name)
        ]
        if missing:
            raise RuntimeError(
                f"Missing required settings in production: {', '.join(missing)}"
            )

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Create settings instance
settings = Settings()


def get_settings() -> Settings:
    """
    Get application settings.

    Returns:
        Settings: Application settings instance
    """
    return settings


# Example .env for production:
#   ENVIRONMENT=production
#   DEBUG=false
#   LOG_LEVEL=WARNING
#   API_BASE_URL=https://converter.example.com
#   API_KEY=...
#   PAYMENT_REPORT_KARTA=...
#   PAYMENT_REPORT_DJAM=...
#   SUPABASE_URL=https://<project>.supabase.co
#   SUPABASE_ANON_KEY=...
