"""Database-backed OAuth state store for CSRF and replay protection.

Each initiation creates a random nonce bound to a workspace, user, provider
and return URL. The ``state`` parameter sent to the provider carries the
nonce plus an HMAC over the bound context. On callback the nonce is burned
with a single conditional UPDATE, so two concurrent callbacks carrying the
same state cannot both succeed. The nonce row is the source of truth; the
signature only detects tampering with the state token itself.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from growthconnect.metadata import OAuthStateNonce, utcnow
from growthconnect.oauth.config import OAuthConfig
from growthconnect.oauth.exceptions import (
    InvalidStateError,
    OAuthConfigError,
    ReplayDetectedError,
    StateExpiredError,
)
from growthconnect.oauth.redirects import validate_redirect_url

logger = logging.getLogger(__name__)

_MAX_STATE_LENGTH = 1024


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class StateContext:
    """Context bound to a consumed nonce."""

    workspace_id: str
    user_id: str
    provider: str
    redirect_url: str


def encode_state(nonce: str, signature: str) -> str:
    payload = json.dumps({"nonce": nonce, "sig": signature}, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")


def decode_state(signed_state: str | None) -> tuple[str, str]:
    """Split a state token into ``(nonce, signature)``."""
    candidate = str(signed_state or "").strip()
    if not candidate or len(candidate) > _MAX_STATE_LENGTH:
        raise InvalidStateError("State is empty or too long")
    padded = candidate + "=" * (-len(candidate) % 4)
    try:
        payload = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise InvalidStateError("State is not valid base64 JSON") from exc
    if not isinstance(payload, dict):
        raise InvalidStateError("State payload is not an object")
    nonce = payload.get("nonce")
    signature = payload.get("sig")
    if not isinstance(nonce, str) or not nonce or not isinstance(signature, str) or not signature:
        raise InvalidStateError("State payload is missing nonce or signature")
    return nonce, signature


class NonceStateManager:
    """Create and consume single-use OAuth state tokens.

    Both operations commit their own transaction: the nonce must be durable
    before the user leaves for the provider, and the ``used_at`` transition
    must be durable before any network call made on its behalf.
    """

    def __init__(
        self,
        db: Session,
        config: OAuthConfig,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.config = config
        self.clock = clock or utcnow

    def _now(self) -> datetime:
        return as_utc(self.clock())

    def _sign(
        self,
        *,
        nonce: str,
        workspace_id: str,
        provider: str,
        redirect_url: str,
        user_id: str,
        issued_at: datetime,
    ) -> str:
        if not self.config.state_secret:
            raise OAuthConfigError("OAuth state secret is not configured")
        canonical = json.dumps(
            {
                "nonce": nonce,
                "workspace_id": workspace_id,
                "provider": provider,
                "redirect_url": redirect_url,
                "user_id": user_id,
                "timestamp": int(as_utc(issued_at).timestamp()),
            },
            sort_keys=True,
            separators=(",", ":"),
        )
        return hmac.new(
            self.config.state_secret.encode("utf-8"),
            canonical.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()

    def create_state(
        self,
        workspace_id: str,
        user_id: str,
        provider: str,
        redirect_url: str,
        ttl: Optional[timedelta] = None,
    ) -> str:
        """Persist a new nonce and return the signed state token."""
        validated_url = validate_redirect_url(redirect_url, self.config)
        try:
            workspace_uuid = uuid.UUID(str(workspace_id))
        except ValueError:
            raise ValueError(f"Invalid workspace_id: {workspace_id}")
        clean_user_id = str(user_id or "").strip()
        if not clean_user_id:
            raise ValueError("user_id is required")

        lifetime = ttl if ttl is not None else timedelta(seconds=self.config.state_ttl_seconds)
        now = self._now()
        nonce = secrets.token_urlsafe(32)
        signature = self._sign(
            nonce=nonce,
            workspace_id=str(workspace_uuid),
            provider=provider,
            redirect_url=validated_url,
            user_id=clean_user_id,
            issued_at=now,
        )
        self.db.add(
            OAuthStateNonce(
                nonce=nonce,
                workspace_id=workspace_uuid,
                user_id=clean_user_id,
                provider=provider,
                redirect_url=validated_url,
                hmac_signature=signature,
                created_at=now,
                expires_at=now + lifetime,
                used_at=None,
            )
        )
        self.db.commit()
        return encode_state(nonce, signature)

    def consume(self, signed_state: str | None) -> StateContext:
        """Burn the nonce behind ``signed_state`` and return its bound context.

        A state is usable up to and including ``expires_at``. Database errors
        while claiming the nonce surface as ``InvalidStateError``.
        """
        nonce, signature = decode_state(signed_state)
        now = self._now()

        try:
            claimed, row = self._claim(nonce, now)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("OAuth state lookup failed: nonce=%s", nonce)
            raise InvalidStateError("OAuth state could not be verified") from exc
        if row is None:
            raise InvalidStateError("Unknown OAuth state nonce")

        if not claimed:
            if now > as_utc(row.expires_at):
                raise StateExpiredError("OAuth state expired")
            logger.warning(
                "OAuth state replay detected: nonce=%s workspace_id=%s user_id=%s provider=%s first_used_at=%s",
                nonce,
                row.workspace_id,
                row.user_id,
                row.provider,
                row.used_at,
            )
            raise ReplayDetectedError("OAuth state already used")

        expected = self._sign(
            nonce=row.nonce,
            workspace_id=str(row.workspace_id),
            provider=row.provider,
            redirect_url=row.redirect_url,
            user_id=row.user_id,
            issued_at=row.created_at,
        )
        if not hmac.compare_digest(expected, signature):
            logger.warning(
                "OAuth state signature mismatch: nonce=%s workspace_id=%s provider=%s",
                nonce,
                row.workspace_id,
                row.provider,
            )
            raise InvalidStateError("OAuth state signature mismatch")

        return StateContext(
            workspace_id=str(row.workspace_id),
            user_id=row.user_id,
            provider=row.provider,
            redirect_url=row.redirect_url,
        )

    def _claim(self, nonce: str, now: datetime) -> tuple[bool, Optional[OAuthStateNonce]]:
        result = self.db.execute(
            update(OAuthStateNonce)
            .where(
                OAuthStateNonce.nonce == nonce,
                OAuthStateNonce.used_at.is_(None),
                OAuthStateNonce.expires_at >= now,
            )
            .values(used_at=now)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        row = self.db.execute(
            select(OAuthStateNonce).where(OAuthStateNonce.nonce == nonce)
        ).scalar_one_or_none()
        return result.rowcount == 1, row

    def purge_expired(self, older_than: timedelta = timedelta(days=7)) -> int:
        """Delete nonces that expired more than ``older_than`` ago."""
        cutoff = self._now() - older_than
        result = self.db.execute(
            delete(OAuthStateNonce)
            .where(OAuthStateNonce.expires_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount or 0
