"""Redirect URL allow-listing and callback redirect construction."""

from __future__ import annotations

import re
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from growthconnect.oauth.config import OAuthConfig
from growthconnect.oauth.exceptions import InvalidRedirectError

_DEFAULT_PORTS = {"http": 80, "https": 443}
_SUBDOMAIN_LABEL = re.compile(r"^[a-z0-9](?:[a-z0-9-]*[a-z0-9])?$")
_FORBIDDEN_CHARS = re.compile(r"[\s\\\x00-\x1f\x7f]")


def normalize_origin(url: str | None) -> str | None:
    """Return ``scheme://host[:port]`` for an absolute http(s) URL, else None."""
    candidate = str(url or "").strip()
    if not candidate or _FORBIDDEN_CHARS.search(candidate):
        return None
    parsed = urlsplit(candidate)
    scheme = parsed.scheme.lower()
    if scheme not in _DEFAULT_PORTS:
        return None
    try:
        host = parsed.hostname
        port = parsed.port
    except ValueError:
        return None
    if not host:
        return None
    if port and port != _DEFAULT_PORTS[scheme]:
        return f"{scheme}://{host}:{port}"
    return f"{scheme}://{host}"


def _matches_trusted_suffix(origin: str, suffixes: tuple[str, ...]) -> bool:
    parsed = urlsplit(origin)
    if parsed.scheme != "https" or parsed.port:
        return False
    host = parsed.hostname or ""
    for suffix in suffixes:
        clean_suffix = suffix.strip().lower().lstrip(".")
        if not clean_suffix or not host.endswith("." + clean_suffix):
            continue
        label = host[: -(len(clean_suffix) + 1)]
        if _SUBDOMAIN_LABEL.match(label):
            return True
    return False


def is_allowed_origin(origin: str | None, config: OAuthConfig) -> bool:
    """Check an origin against exact matches, dev origins and trusted suffixes."""
    normalized = normalize_origin(origin)
    if not normalized:
        return False
    allowed = {normalize_origin(item) for item in config.allowed_origins}
    if normalized in allowed:
        return True
    if config.allow_dev_origins and normalized in {normalize_origin(item) for item in config.dev_origins}:
        return True
    return _matches_trusted_suffix(normalized, config.trusted_domain_suffixes)


def validate_redirect_url(redirect_url: str | None, config: OAuthConfig) -> str:
    """Return the redirect URL if it points at an allow-listed origin."""
    candidate = str(redirect_url or "").strip()
    if not candidate:
        raise InvalidRedirectError("redirect_url is required")
    parsed = urlsplit(candidate)
    if parsed.username is not None or parsed.password is not None:
        raise InvalidRedirectError("redirect_url must not carry credentials")
    origin = normalize_origin(candidate)
    if not origin:
        raise InvalidRedirectError("redirect_url must be an absolute http(s) URL")
    if not is_allowed_origin(origin, config):
        raise InvalidRedirectError(f"redirect origin not allowed: {origin}")
    return candidate


def append_query_params(url: str, params: dict[str, str]) -> str:
    """Append query params to a URL, replacing keys that already exist."""
    parsed = urlsplit(url)
    existing = dict(parse_qsl(parsed.query, keep_blank_values=True))
    for key, value in params.items():
        existing[str(key)] = str(value)
    query = urlencode(existing)
    return urlunsplit((parsed.scheme, parsed.netloc, parsed.path, query, parsed.fragment))


def build_success_redirect(redirect_url: str, provider: str) -> str:
    return append_query_params(redirect_url, {"oauth": "success", "provider": provider})


def build_error_redirect(error_type: str, config: OAuthConfig, redirect_url: str | None = None) -> str:
    """Build the error redirect, falling back when the bound URL is not trusted."""
    target = config.fallback_redirect_url
    if redirect_url:
        try:
            target = validate_redirect_url(redirect_url, config)
        except InvalidRedirectError:
            target = config.fallback_redirect_url
    return append_query_params(target, {"oauth": "error", "error_type": error_type})
