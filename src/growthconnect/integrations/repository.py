"""Workspace provider integration repository (metadata + encrypted tokens)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional
import uuid

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified

from growthconnect.metadata import Integration, OAuthToken
from growthconnect.oauth.crypto import TokenCipher
from growthconnect.oauth.providers import normalize_provider_type

logger = logging.getLogger(__name__)

STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"


def _as_uuid(value: Any, field_name: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise ValueError(f"Invalid {field_name}: {exc}")


def normalize_scopes(raw_value: Any) -> list[str]:
    if raw_value is None:
        return []
    if isinstance(raw_value, str):
        raw_value = raw_value.replace(",", " ").split()
    if not isinstance(raw_value, (list, tuple)):
        return []
    normalized: list[str] = []
    seen: set[str] = set()
    for item in raw_value:
        scope = str(item or "").strip()
        if not scope or scope in seen:
            continue
        seen.add(scope)
        normalized.append(scope)
    return normalized


@dataclass
class IntegrationRecord:
    """Metadata-only view of an integration row."""

    id: str
    workspace_id: str
    provider: str
    status: str
    account_id: Optional[str]
    account_name: Optional[str]
    scopes: list[str]
    expires_at: Optional[datetime]
    last_sync_at: Optional[datetime]
    metadata: dict[str, Any]

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE


@dataclass(frozen=True)
class DecryptedTokens:
    access_token: str
    refresh_token: Optional[str]


class IntegrationRepository:
    """CRUD repository for integrations and their encrypted tokens.

    Methods flush but never commit; callers own the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def _record_from_row(self, row: Integration) -> IntegrationRecord:
        return IntegrationRecord(
            id=str(row.id),
            workspace_id=str(row.workspace_id),
            provider=str(row.provider),
            status=str(row.status),
            account_id=row.account_id,
            account_name=row.account_name,
            scopes=normalize_scopes(row.scopes),
            expires_at=row.expires_at,
            last_sync_at=row.last_sync_at,
            metadata=dict(row.metadata_json or {}),
        )

    def _get_row(self, workspace_id: Any, provider: str) -> Optional[Integration]:
        return (
            self.db.query(Integration)
            .filter(
                Integration.workspace_id == _as_uuid(workspace_id, "workspace_id"),
                Integration.provider == normalize_provider_type(provider),
            )
            .first()
        )

    def get_integration(
        self,
        workspace_id: Any,
        provider: str,
        *,
        active_only: bool = False,
    ) -> Optional[IntegrationRecord]:
        row = self._get_row(workspace_id, provider)
        if row is None:
            return None
        if active_only and row.status != STATUS_ACTIVE:
            return None
        return self._record_from_row(row)

    def list_integrations(self, workspace_id: Any) -> list[IntegrationRecord]:
        rows = (
            self.db.query(Integration)
            .filter(Integration.workspace_id == _as_uuid(workspace_id, "workspace_id"))
            .order_by(Integration.provider.asc())
            .all()
        )
        return [self._record_from_row(row) for row in rows]

    def upsert_integration(
        self,
        workspace_id: Any,
        provider: str,
        *,
        account_id: Optional[str],
        account_name: Optional[str],
        scopes: Any,
        expires_at: Optional[datetime],
        last_sync_at: Optional[datetime],
        metadata_patch: Optional[dict[str, Any]] = None,
        status: str = STATUS_ACTIVE,
    ) -> IntegrationRecord:
        """Create or update the single integration for ``(workspace_id, provider)``."""
        normalized = normalize_provider_type(provider)
        row = self._get_row(workspace_id, normalized)
        if row is None:
            candidate = Integration(
                workspace_id=_as_uuid(workspace_id, "workspace_id"),
                provider=normalized,
                metadata_json={},
            )
            try:
                with self.db.begin_nested():
                    self.db.add(candidate)
                    self.db.flush()
                row = candidate
            except IntegrityError:
                # A concurrent callback inserted the same (workspace, provider) first.
                row = self._get_row(workspace_id, normalized)
                if row is None:
                    raise
                logger.info(
                    "Integration insert lost race, updating existing row: workspace_id=%s provider=%s",
                    workspace_id,
                    normalized,
                )

        row.status = status
        row.account_id = account_id
        row.account_name = account_name
        row.scopes = normalize_scopes(scopes)
        row.expires_at = expires_at
        row.last_sync_at = last_sync_at

        metadata = dict(row.metadata_json or {})
        for key, value in (metadata_patch or {}).items():
            metadata[str(key)] = value
        row.metadata_json = metadata
        flag_modified(row, "metadata_json")

        self.db.flush()
        return self._record_from_row(row)

    def replace_tokens(
        self,
        integration_id: Any,
        cipher: TokenCipher,
        *,
        access_token: str,
        refresh_token: Optional[str] = None,
    ) -> None:
        """Delete every token row for the integration, then insert a fresh one."""
        integration_uuid = _as_uuid(integration_id, "integration_id")
        access = cipher.encrypt(access_token)
        refresh = cipher.encrypt(refresh_token) if refresh_token else None

        self.db.execute(
            delete(OAuthToken)
            .where(OAuthToken.integration_id == integration_uuid)
            .execution_options(synchronize_session=False)
        )
        self.db.add(
            OAuthToken(
                integration_id=integration_uuid,
                access_token_encrypted=access.ciphertext,
                access_token_iv=access.iv,
                refresh_token_encrypted=refresh.ciphertext if refresh else None,
                refresh_token_iv=refresh.iv if refresh else None,
            )
        )
        self.db.flush()

    def load_tokens(self, integration_id: Any, cipher: TokenCipher) -> Optional[DecryptedTokens]:
        """Decrypt the current tokens for downstream sync jobs."""
        row = (
            self.db.query(OAuthToken)
            .filter(OAuthToken.integration_id == _as_uuid(integration_id, "integration_id"))
            .order_by(OAuthToken.created_at.desc())
            .first()
        )
        if row is None:
            return None
        refresh_token = None
        if row.refresh_token_encrypted and row.refresh_token_iv:
            refresh_token = cipher.decrypt(row.refresh_token_encrypted, row.refresh_token_iv)
        return DecryptedTokens(
            access_token=cipher.decrypt(row.access_token_encrypted, row.access_token_iv),
            refresh_token=refresh_token,
        )

    def deactivate(self, workspace_id: Any, provider: str) -> bool:
        """Mark an integration inactive and drop its tokens."""
        row = self._get_row(workspace_id, provider)
        if row is None:
            return False
        row.status = STATUS_INACTIVE
        self.db.execute(
            delete(OAuthToken)
            .where(OAuthToken.integration_id == row.id)
            .execution_options(synchronize_session=False)
        )
        self.db.flush()
        return True
