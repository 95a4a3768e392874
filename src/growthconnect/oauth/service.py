"""OAuth initiation and callback handling.

``OAuthService.handle_callback`` is the callback boundary: whatever happens,
it returns a redirect instruction. Errors are classified into ``error_type``
flags for the dashboard and logged server-side with their detail.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from growthconnect.integrations import IntegrationRepository
from growthconnect.metadata import utcnow
from growthconnect.oauth.client import ProviderClient
from growthconnect.oauth.config import OAuthConfig
from growthconnect.oauth.crypto import TokenCipher
from growthconnect.oauth.exceptions import (
    InvalidRedirectError,
    MissingParamsError,
    OAuthConfigError,
    OAuthDeniedError,
    OAuthFlowError,
    TokenExchangeError,
    TokenSaveError,
)
from growthconnect.oauth.providers import build_authorization_url, get_provider
from growthconnect.oauth.redirects import (
    build_error_redirect,
    build_success_redirect,
    validate_redirect_url,
)
from growthconnect.oauth.state import NonceStateManager, StateContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthorizationRequest:
    auth_url: str
    provider: str
    scopes: list[str]


@dataclass(frozen=True)
class RedirectInstruction:
    location: str
    outcome: str  # "success" | "error"
    error_type: Optional[str] = None
    status_code: int = 302


class OAuthService:
    """Runs the authorization-code flow for a workspace integration."""

    def __init__(
        self,
        db: Session,
        config: OAuthConfig,
        *,
        provider_client: Optional[ProviderClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.config = config
        self.clock = clock or utcnow
        self.state_manager = NonceStateManager(db, config, clock=self.clock)
        self.provider_client = provider_client or ProviderClient(timeout=config.http_timeout_seconds)
        self.integrations = IntegrationRepository(db)

    def initiate(
        self,
        workspace_id: str,
        user_id: str,
        provider: str,
        redirect_url: str,
    ) -> AuthorizationRequest:
        """Create a signed state and the provider authorization URL."""
        spec = get_provider(provider)
        credentials = self.config.credentials_for(spec.family)
        if credentials is None:
            raise OAuthConfigError(f"Client credentials for {spec.family} are not configured")
        if not self.config.state_secret:
            raise OAuthConfigError("OAuth state secret is not configured")

        state = self.state_manager.create_state(
            workspace_id=workspace_id,
            user_id=user_id,
            provider=spec.name,
            redirect_url=redirect_url,
        )
        logger.info("OAuth init for %s, workspace %s", spec.name, workspace_id)
        return AuthorizationRequest(
            auth_url=build_authorization_url(spec, credentials.client_id, self.config.callback_url, state),
            provider=spec.name,
            scopes=list(spec.scopes),
        )

    def _error(self, exc: OAuthFlowError, redirect_url: Optional[str] = None) -> RedirectInstruction:
        return RedirectInstruction(
            location=build_error_redirect(exc.error_type, self.config, redirect_url),
            outcome="error",
            error_type=exc.error_type,
        )

    def handle_callback(
        self,
        code: Optional[str],
        state: Optional[str],
        error: Optional[str] = None,
    ) -> RedirectInstruction:
        """Complete the flow for a provider redirect. Always returns a redirect."""
        context: Optional[StateContext] = None
        try:
            if error:
                # Burn the nonce so a denied state cannot be replayed later.
                if state:
                    try:
                        context = self.state_manager.consume(state)
                    except OAuthFlowError as exc:
                        logger.info("Denied callback carried unusable state: %s", exc.error_type)
                raise OAuthDeniedError(f"Provider reported error: {error}")

            if not code or not state:
                raise MissingParamsError("Callback requires code and state")

            context = self.state_manager.consume(state)
            return self._complete(code, context)
        except OAuthFlowError as exc:
            self._log_failure(exc, context)
            # Until the state is consumed the bound URL is untrusted.
            return self._error(exc, context.redirect_url if context else None)
        except Exception:
            logger.exception(
                "Unexpected OAuth callback failure: workspace_id=%s provider=%s",
                context.workspace_id if context else None,
                context.provider if context else None,
            )
            # Persistence failures are already TokenSaveError; anything else
            # stopped the flow before credentials were stored.
            return self._error(
                TokenExchangeError("unexpected failure"),
                context.redirect_url if context else None,
            )

    def _complete(self, code: str, context: StateContext) -> RedirectInstruction:
        redirect_url = validate_redirect_url(context.redirect_url, self.config)
        spec = get_provider(context.provider)
        credentials = self.config.credentials_for(spec.family)
        if credentials is None or not self.config.encryption_key:
            raise OAuthConfigError(f"OAuth is not fully configured for {spec.name}")
        cipher = TokenCipher(self.config.encryption_key)

        tokens = self.provider_client.exchange_code(spec, credentials, code, self.config.callback_url)
        logger.info("Token exchange successful for provider: %s", spec.name)

        identity = self.provider_client.fetch_identity(spec, tokens.access_token)
        now = self.clock()
        expires_at = now + timedelta(seconds=tokens.expires_in) if tokens.expires_in else None

        try:
            record = self.integrations.upsert_integration(
                context.workspace_id,
                spec.name,
                account_id=identity.account_id if identity else "unknown",
                account_name=identity.account_name if identity else "unknown",
                scopes=tokens.scopes,
                expires_at=expires_at,
                last_sync_at=now,
                metadata_patch={
                    "token_type": tokens.token_type,
                    "connected_at": now.isoformat(),
                    "connected_by": context.user_id,
                },
            )
            self.integrations.replace_tokens(
                record.id,
                cipher,
                access_token=tokens.access_token,
                refresh_token=tokens.refresh_token,
            )
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            logger.critical(
                "Failed to save integration after successful token exchange: workspace_id=%s provider=%s error=%s",
                context.workspace_id,
                spec.name,
                type(exc).__name__,
            )
            raise TokenSaveError("Integration or token persistence failed") from exc

        logger.info("Integration %s saved for workspace %s", spec.name, context.workspace_id)
        return RedirectInstruction(
            location=build_success_redirect(redirect_url, spec.name),
            outcome="success",
        )

    def _log_failure(self, exc: OAuthFlowError, context: Optional[StateContext]) -> None:
        if isinstance(exc, TokenSaveError):
            return  # logged at the failure site
        workspace_id = context.workspace_id if context else None
        provider = context.provider if context else None
        if isinstance(exc, (OAuthConfigError, InvalidRedirectError)):
            logger.error("OAuth callback %s: %s (workspace_id=%s provider=%s)", exc.error_type, exc, workspace_id, provider)
        else:
            logger.warning("OAuth callback %s: %s (workspace_id=%s provider=%s)", exc.error_type, exc, workspace_id, provider)
