"""Provider registry, authorization URLs and the token endpoint client."""

from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from growthconnect.oauth.client import ProviderClient
from growthconnect.oauth.config import ClientCredentials
from growthconnect.oauth.exceptions import TokenExchangeError, UnsupportedProviderError
from growthconnect.oauth.providers import (
    MAX_EXPIRES_IN,
    PROVIDERS,
    AccountIdentity,
    TokenResponse,
    build_authorization_url,
    get_provider,
    normalize_provider_type,
)

from conftest import CALLBACK_URL

CREDENTIALS = ClientCredentials("client-id", "client-secret")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("google_analytics", "google_analytics"),
        (" GA4 ", "google_analytics"),
        ("gsc", "google_search_console"),
        ("facebook", "meta"),
        ("instagram", "meta"),
        ("YouTube", "youtube"),
    ],
)
def test_normalize_provider_type(raw, expected):
    assert normalize_provider_type(raw) == expected


@pytest.mark.parametrize("raw", ["", None, "dropbox", "tiktok"])
def test_unknown_provider_rejected(raw):
    with pytest.raises(UnsupportedProviderError):
        get_provider(raw)


def test_google_providers_request_identity_scopes_and_offline_access():
    for spec in PROVIDERS.values():
        if spec.family != "google":
            continue
        assert {"openid", "email", "profile"} <= set(spec.scopes)
        assert spec.authorize_params["access_type"] == "offline"
        assert spec.authorize_params["prompt"] == "consent"


def test_google_authorization_url():
    spec = get_provider("google_combined")

    url = build_authorization_url(spec, "client-id", CALLBACK_URL, "signed-state")

    parsed = urlsplit(url)
    params = {key: values[0] for key, values in parse_qs(parsed.query).items()}
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == spec.authorize_url
    assert params["client_id"] == "client-id"
    assert params["redirect_uri"] == CALLBACK_URL
    assert params["response_type"] == "code"
    assert params["state"] == "signed-state"
    assert "https://www.googleapis.com/auth/analytics.readonly" in params["scope"].split(" ")
    assert "https://www.googleapis.com/auth/webmasters.readonly" in params["scope"].split(" ")


def test_meta_authorization_url_uses_comma_scopes():
    spec = get_provider("meta")

    url = build_authorization_url(spec, "app-id", CALLBACK_URL, "s")

    scope = parse_qs(urlsplit(url).query)["scope"][0]
    assert "," in scope and " " not in scope
    assert "access_type" not in url


def test_token_response_requires_access_token():
    with pytest.raises(TokenExchangeError):
        TokenResponse.parse_payload({"refresh_token": "r"})
    with pytest.raises(TokenExchangeError):
        TokenResponse.parse_payload({"access_token": ""})
    with pytest.raises(TokenExchangeError):
        TokenResponse.parse_payload(["not", "an", "object"])


def test_token_response_optional_fields():
    tokens = TokenResponse.parse_payload({"access_token": "a", "refresh_token": " ", "scope": "a,b c"})

    assert tokens.refresh_token is None
    assert tokens.expires_in is None
    assert tokens.scopes == ["a", "b", "c"]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(3600, 3600), ("3600", 3600), (0, None), (-5, None), (10**12, MAX_EXPIRES_IN)],
)
def test_token_response_clamps_expires_in(raw, expected):
    assert TokenResponse.parse_payload({"access_token": "a", "expires_in": raw}).expires_in == expected


def test_account_identity_fallbacks():
    assert AccountIdentity.model_validate({"id": 42}).account_id == "42"
    assert AccountIdentity.model_validate({"email": "a@example.com"}).account_name == "a@example.com"
    assert AccountIdentity.model_validate({"name": "Page"}).account_name == "Page"
    assert AccountIdentity.model_validate({}).account_id == "unknown"


def _client(handler):
    return ProviderClient(timeout=5.0, transport=httpx.MockTransport(handler))


def test_exchange_code_posts_form_and_parses_tokens():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["form"] = {key: values[0] for key, values in parse_qs(request.content.decode()).items()}
        return httpx.Response(200, json={"access_token": "at", "refresh_token": "rt", "expires_in": 3600})

    spec = get_provider("google_analytics")
    tokens = _client(handler).exchange_code(spec, CREDENTIALS, "auth-code", CALLBACK_URL)

    assert seen["url"] == spec.token_url
    assert seen["form"] == {
        "code": "auth-code",
        "grant_type": "authorization_code",
        "client_id": "client-id",
        "client_secret": "client-secret",
        "redirect_uri": CALLBACK_URL,
    }
    assert tokens.access_token == "at"
    assert tokens.refresh_token == "rt"
    assert tokens.expires_in == 3600


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(400, json={"error": "invalid_grant"}),
        httpx.Response(500, text="upstream down"),
        httpx.Response(200, text="<html>not json</html>"),
        httpx.Response(200, json={"token_type": "Bearer"}),
    ],
)
def test_exchange_code_failures(response):
    client = _client(lambda request: response)

    with pytest.raises(TokenExchangeError):
        client.exchange_code(get_provider("google"), CREDENTIALS, "code", CALLBACK_URL)


def test_exchange_code_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(TokenExchangeError):
        _client(handler).exchange_code(get_provider("meta"), CREDENTIALS, "code", CALLBACK_URL)


def test_fetch_identity_sends_bearer_token():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json={"id": "987", "name": "Acme Page"})

    identity = _client(handler).fetch_identity(get_provider("meta"), "access-123")

    assert seen["auth"] == "Bearer access-123"
    assert identity.account_id == "987"
    assert identity.account_name == "Acme Page"


def test_fetch_identity_failure_returns_none():
    client = _client(lambda request: httpx.Response(401, json={"error": "unauthorized"}))

    assert client.fetch_identity(get_provider("google"), "access-123") is None
