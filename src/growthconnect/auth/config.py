"""Supabase Auth configuration."""

from functools import lru_cache
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[3]
ENV_FILE = BASE_DIR / ".env"


class AuthSettings(BaseSettings):
    """Supabase Auth settings from environment variables."""

    supabase_url: str
    """Supabase project URL (e.g., https://xxx.supabase.co)"""

    jwt_algorithm: str = "ES256"
    """JWT algorithm used by Supabase"""

    jwt_audience: str = "authenticated"
    """JWT audience claim expected by Supabase"""

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def jwks_url(self) -> str:
        """JWKS endpoint URL for fetching public keys."""
        return f"{self.supabase_url}/auth/v1/.well-known/jwks.json"


@lru_cache(maxsize=1)
def get_auth_settings() -> AuthSettings:
    """Get cached auth settings.

    Raises:
        ValidationError: If SUPABASE_URL is missing
    """
    return AuthSettings()
