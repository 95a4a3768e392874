"""Application settings and environment configuration."""

from typing import Optional
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[2]
ENV_FILE = BASE_DIR / ".env"


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    app_name: str = "GrowthConnect"
    environment: str = "dev"  # 'dev' or 'prod'
    log_level: str = "INFO"

    # Database
    database_url: str = "postgresql://localhost/growthconnect"
    db_pool_size: int = 10
    db_max_overflow: int = 20
    db_pool_timeout: int = 30
    db_pool_recycle: int = 1800
    db_pool_pre_ping: bool = True
    db_connect_timeout: int = 10

    # OAuth flow
    oauth_callback_url: str = "http://localhost:8080/oauth/callback"
    oauth_fallback_redirect_url: str = "https://agent-growth-automator.com/dashboard/integrations"
    oauth_allowed_origins: list[str] = [
        "https://www.agent-growth-automator.com",
        "https://agent-growth-automator.com",
        "https://agent-growth-automator.lovable.app",
    ]
    # Any https sub-domain of these is trusted (preview deployments).
    oauth_trusted_domain_suffixes: list[str] = ["lovable.app", "lovableproject.com"]
    oauth_dev_origins: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
        "http://localhost:8080",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:8080",
    ]
    oauth_state_secret: Optional[str] = None
    oauth_state_ttl_seconds: int = 600
    oauth_http_timeout_seconds: float = 20.0
    oauth_init_rate_limit: str = "20/minute"
    token_encryption_key: Optional[str] = None

    # Provider client credentials
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    meta_app_id: Optional[str] = None
    meta_app_secret: Optional[str] = None

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment.lower() == "dev"

    def oauth_config_audit(self) -> dict:
        """Return startup OAuth configuration audit metadata for logging."""
        return {
            "environment": self.environment,
            "callback_url": self.oauth_callback_url,
            "allowed_origins": list(self.oauth_allowed_origins),
            "trusted_domain_suffixes": list(self.oauth_trusted_domain_suffixes),
            "state_secret_configured": bool(self.oauth_state_secret),
            "encryption_key_configured": bool(self.token_encryption_key),
            "google_configured": bool(self.google_client_id and self.google_client_secret),
            "meta_configured": bool(self.meta_app_id and self.meta_app_secret),
        }


settings = Settings()
