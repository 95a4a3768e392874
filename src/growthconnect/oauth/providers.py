"""Supported OAuth providers and validated provider response shapes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from growthconnect.oauth.exceptions import TokenExchangeError, UnsupportedProviderError

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

META_GRAPH_VERSION = "v19.0"
META_AUTH_URL = f"https://www.facebook.com/{META_GRAPH_VERSION}/dialog/oauth"
META_TOKEN_URL = f"https://graph.facebook.com/{META_GRAPH_VERSION}/oauth/access_token"
META_USERINFO_URL = f"https://graph.facebook.com/{META_GRAPH_VERSION}/me?fields=id,name,email"

_GOOGLE_IDENTITY_SCOPES = ("openid", "email", "profile")
_GOOGLE_AUTHORIZE_PARAMS = {
    "access_type": "offline",  # refresh token
    "prompt": "consent",
    "include_granted_scopes": "true",
}


@dataclass(frozen=True)
class ProviderSpec:
    """Endpoints and scopes for one connectable provider."""

    name: str
    family: str  # which client credentials to use: "google" or "meta"
    authorize_url: str
    token_url: str
    identity_url: str
    scopes: tuple[str, ...]
    scope_separator: str = " "
    authorize_params: dict[str, str] = field(default_factory=dict)


def _google(name: str, *product_scopes: str) -> ProviderSpec:
    return ProviderSpec(
        name=name,
        family="google",
        authorize_url=GOOGLE_AUTH_URL,
        token_url=GOOGLE_TOKEN_URL,
        identity_url=GOOGLE_USERINFO_URL,
        scopes=tuple(product_scopes) + _GOOGLE_IDENTITY_SCOPES,
        authorize_params=dict(_GOOGLE_AUTHORIZE_PARAMS),
    )


PROVIDERS: dict[str, ProviderSpec] = {
    "google": _google("google"),
    "google_analytics": _google(
        "google_analytics",
        "https://www.googleapis.com/auth/analytics.readonly",
    ),
    "google_search_console": _google(
        "google_search_console",
        "https://www.googleapis.com/auth/webmasters.readonly",
    ),
    "google_ads": _google(
        "google_ads",
        "https://www.googleapis.com/auth/adwords",
    ),
    "youtube": _google(
        "youtube",
        "https://www.googleapis.com/auth/youtube.readonly",
        "https://www.googleapis.com/auth/yt-analytics.readonly",
    ),
    "google_combined": _google(
        "google_combined",
        "https://www.googleapis.com/auth/analytics.readonly",
        "https://www.googleapis.com/auth/webmasters.readonly",
    ),
    "meta": ProviderSpec(
        name="meta",
        family="meta",
        authorize_url=META_AUTH_URL,
        token_url=META_TOKEN_URL,
        identity_url=META_USERINFO_URL,
        scopes=(
            "email",
            "pages_show_list",
            "pages_read_engagement",
            "instagram_basic",
            "instagram_manage_insights",
            "ads_read",
        ),
        scope_separator=",",
    ),
}

PROVIDER_ALIASES = {
    "ga4": "google_analytics",
    "google-analytics": "google_analytics",
    "gsc": "google_search_console",
    "search_console": "google_search_console",
    "google-ads": "google_ads",
    "facebook": "meta",
    "instagram": "meta",
}


def normalize_provider_type(value: str | None) -> str:
    provider = str(value or "").strip().lower()
    provider = PROVIDER_ALIASES.get(provider, provider)
    if provider not in PROVIDERS:
        raise ValueError("Invalid provider type")
    return provider


def get_provider(value: str | None) -> ProviderSpec:
    try:
        return PROVIDERS[normalize_provider_type(value)]
    except ValueError:
        raise UnsupportedProviderError(f"Unsupported provider: {value}")


def build_authorization_url(spec: ProviderSpec, client_id: str, redirect_uri: str, state: str) -> str:
    params = {
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "response_type": "code",
        "scope": spec.scope_separator.join(spec.scopes),
        "state": state,
    }
    params.update(spec.authorize_params)
    return f"{spec.authorize_url}?{urlencode(params)}"


# Upper bound on a token lifetime in seconds (about three years).
MAX_EXPIRES_IN = 10**8


class TokenResponse(BaseModel):
    """Token endpoint payload; only ``access_token`` is required."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(min_length=1)
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    scope: Optional[str] = None
    token_type: Optional[str] = None

    @field_validator("refresh_token", "scope", "token_type", mode="before")
    @classmethod
    def _blank_to_none(cls, value):
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    @field_validator("expires_in")
    @classmethod
    def _clamp_expires_in(cls, value):
        if value is None or value <= 0:
            return None
        return min(value, MAX_EXPIRES_IN)

    @property
    def scopes(self) -> list[str]:
        if not self.scope:
            return []
        return [item for item in self.scope.replace(",", " ").split() if item]

    @classmethod
    def parse_payload(cls, payload) -> "TokenResponse":
        if not isinstance(payload, dict):
            raise TokenExchangeError("Token endpoint returned a non-object payload")
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            raise TokenExchangeError(f"Token endpoint payload invalid: {exc.error_count()} error(s)") from exc


class AccountIdentity(BaseModel):
    """Minimal account identity from the provider's user-info endpoint."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None

    @property
    def account_id(self) -> str:
        return self.id or self.email or "unknown"

    @property
    def account_name(self) -> str:
        return self.email or self.name or "unknown"
