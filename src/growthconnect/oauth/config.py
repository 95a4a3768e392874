"""Injected configuration for the OAuth connection flow."""

from __future__ import annotations

from dataclasses import dataclass, field

from growthconnect.settings import Settings


@dataclass(frozen=True)
class ClientCredentials:
    client_id: str
    client_secret: str


@dataclass(frozen=True)
class OAuthConfig:
    """Secrets and policy for the nonce manager and token exchange service.

    Built once from ``Settings`` at the edge of the application and passed to
    the components explicitly, so tests can run with fake secrets.
    """

    state_secret: str
    encryption_key: str
    callback_url: str
    fallback_redirect_url: str
    allowed_origins: tuple[str, ...] = ()
    trusted_domain_suffixes: tuple[str, ...] = ()
    dev_origins: tuple[str, ...] = ()
    allow_dev_origins: bool = False
    state_ttl_seconds: int = 600
    http_timeout_seconds: float = 20.0
    client_credentials: dict[str, ClientCredentials] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> "OAuthConfig":
        credentials: dict[str, ClientCredentials] = {}
        if settings.google_client_id and settings.google_client_secret:
            credentials["google"] = ClientCredentials(settings.google_client_id, settings.google_client_secret)
        if settings.meta_app_id and settings.meta_app_secret:
            credentials["meta"] = ClientCredentials(settings.meta_app_id, settings.meta_app_secret)
        return cls(
            state_secret=str(settings.oauth_state_secret or ""),
            encryption_key=str(settings.token_encryption_key or ""),
            callback_url=settings.oauth_callback_url,
            fallback_redirect_url=settings.oauth_fallback_redirect_url,
            allowed_origins=tuple(settings.oauth_allowed_origins),
            trusted_domain_suffixes=tuple(settings.oauth_trusted_domain_suffixes),
            dev_origins=tuple(settings.oauth_dev_origins),
            allow_dev_origins=settings.is_development,
            state_ttl_seconds=settings.oauth_state_ttl_seconds,
            http_timeout_seconds=settings.oauth_http_timeout_seconds,
            client_credentials=credentials,
        )

    def credentials_for(self, family: str) -> ClientCredentials | None:
        return self.client_credentials.get(family)
