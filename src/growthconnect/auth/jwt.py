"""Supabase access-token verification against the project JWKS."""

import logging
import threading
import time
from typing import Any, Dict, Optional

import httpx
from jose import JWTError, jwt

from growthconnect.auth.config import AuthSettings, get_auth_settings

logger = logging.getLogger(__name__)

_JWKS_TTL_SECONDS = 24 * 60 * 60


class JwksCache:
    """Process-wide JWKS document cache. Refetches after ``ttl_seconds``."""

    def __init__(self, ttl_seconds: int = _JWKS_TTL_SECONDS):
        self.ttl_seconds = ttl_seconds
        self._keys: Optional[Dict[str, Any]] = None
        self._fetched_at = 0.0
        self._lock = threading.Lock()

    def get(self, settings: AuthSettings) -> Dict[str, Any]:
        with self._lock:
            if self._keys and time.monotonic() - self._fetched_at < self.ttl_seconds:
                return self._keys
            try:
                with httpx.Client(timeout=10.0) as client:
                    response = client.get(settings.jwks_url)
                    response.raise_for_status()
                    keys = response.json()
            except (httpx.HTTPError, ValueError) as exc:
                logger.error("JWKS fetch failed for %s: %s", settings.jwks_url, exc)
                raise JWTError("Unable to load signing keys") from exc
            self._keys = keys
            self._fetched_at = time.monotonic()
            return keys


jwks_cache = JwksCache()


def verify_supabase_jwt(token: str, settings: Optional[AuthSettings] = None) -> Dict[str, Any]:
    """Verify signature, expiry and audience of a Supabase access token.

    python-jose picks the signing key from the JWKS by the token's ``kid``.

    Raises:
        JWTError: If the token cannot be verified
    """
    settings = settings or get_auth_settings()
    keys = jwks_cache.get(settings)
    try:
        return jwt.decode(
            token,
            keys,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except JWTError as exc:
        raise JWTError(f"JWT verification failed: {exc}") from exc


def get_user_id_from_token(token: str) -> str:
    """Return the ``sub`` claim of a verified token."""
    claims = verify_supabase_jwt(token)
    user_id = claims.get("sub")
    if not user_id:
        raise JWTError("JWT has no subject")
    return str(user_id)
