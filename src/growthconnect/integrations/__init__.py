"""Integrations package."""

from .repository import (
    STATUS_ACTIVE,
    STATUS_INACTIVE,
    DecryptedTokens,
    IntegrationRecord,
    IntegrationRepository,
    normalize_scopes,
)

__all__ = [
    "STATUS_ACTIVE",
    "STATUS_INACTIVE",
    "DecryptedTokens",
    "IntegrationRecord",
    "IntegrationRepository",
    "normalize_scopes",
]
