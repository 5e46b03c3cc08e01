"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"
    VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str

    # Academy portal (used for login_url and notification links)
    FRONTEND_URL: str = "http://localhost:3000"

    # Outbound email (Resend)
    RESEND_API_KEY: str = ""
    EMAIL_FROM: str = ""
    EMAIL_SEND_TIMEOUT_SECONDS: float = 20.0

    # Template fallbacks
    DEFAULT_RECIPIENT_NAME: str = "Student"

    # Internal scheduled endpoints (cron jobs)
    INTERNAL_SECRET: str = ""  # Secret for /internal/scheduled/* endpoints
    INACTIVITY_SCAN_BATCH_SIZE: int = 500

    @property
    def frontend_base_url(self) -> str:
        """FRONTEND_URL without a trailing slash."""
        return self.FRONTEND_URL.rstrip("/")

    def academy_url(self, org_slug: str) -> str:
        """Tenant-scoped entry URL of the academy portal."""
        return f"{self.frontend_base_url}/academy/{org_slug}"


settings = Settings()
