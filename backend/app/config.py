"""Application configuration via environment variables."""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings loaded from .env or environment."""

    DATABASE_URL: str = "sqlite:///./addon_schedules.db"
    CORS_ORIGINS: str = "http://localhost:3000"
    LOG_LEVEL: str = "INFO"

    # Outbound email (empty host = log-only delivery)
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    SMTP_FROM_EMAIL: str = "noreply@example.com"
    SMTP_FROM_NAME: str = "Addon Services"

    # Delivery retries: backoff is 2^attempts minutes
    NOTIFY_MAX_ATTEMPTS: int = 5

    # Dates in notification bodies are rendered in this zone
    DISPLAY_TIMEZONE: str = "Asia/Kolkata"

    ADMIN_ROLES: str = "admin,superadmin"

    class Config:
        env_file = ".env"

    @property
    def admin_roles(self) -> frozenset[str]:
        return frozenset(r.strip() for r in self.ADMIN_ROLES.split(",") if r.strip())


settings = Settings()
