"""HTTP calls to provider token and identity endpoints."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from growthconnect.oauth.config import ClientCredentials
from growthconnect.oauth.exceptions import TokenExchangeError
from growthconnect.oauth.providers import AccountIdentity, ProviderSpec, TokenResponse

logger = logging.getLogger(__name__)


class ProviderClient:
    """Thin wrapper over ``httpx.Client`` for the authorization-code grant.

    A failed exchange is terminal: the code is single-use at the provider, so
    nothing here retries.
    """

    def __init__(self, timeout: float = 20.0, transport: Optional[httpx.BaseTransport] = None):
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(timeout=self.timeout, transport=self.transport)

    def exchange_code(
        self,
        spec: ProviderSpec,
        credentials: ClientCredentials,
        code: str,
        redirect_uri: str,
    ) -> TokenResponse:
        try:
            with self._client() as client:
                response = client.post(
                    spec.token_url,
                    data={
                        "code": code,
                        "grant_type": "authorization_code",
                        "client_id": credentials.client_id,
                        "client_secret": credentials.client_secret,
                        "redirect_uri": redirect_uri,
                    },
                    headers={"Accept": "application/json"},
                )
        except httpx.TimeoutException as exc:
            raise TokenExchangeError(f"Token exchange timed out for {spec.name}") from exc
        except httpx.HTTPError as exc:
            raise TokenExchangeError(f"Token exchange request failed for {spec.name}: {exc}") from exc

        if response.status_code != 200:
            # Provider error bodies can echo request data; log status only.
            logger.error("Token exchange failed for %s: HTTP %s", spec.name, response.status_code)
            raise TokenExchangeError(f"Token endpoint returned HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise TokenExchangeError("Token endpoint returned non-JSON body") from exc
        return TokenResponse.parse_payload(payload)

    def fetch_identity(self, spec: ProviderSpec, access_token: str) -> AccountIdentity | None:
        """Fetch the connected account's identity; failures return None."""
        try:
            with self._client() as client:
                response = client.get(
                    spec.identity_url,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
            if response.status_code != 200:
                logger.warning("Identity fetch for %s returned HTTP %s", spec.name, response.status_code)
                return None
            payload = response.json()
            if not isinstance(payload, dict):
                logger.warning("Identity fetch for %s returned a non-object payload", spec.name)
                return None
            return AccountIdentity.model_validate(payload)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Identity fetch for %s failed: %s", spec.name, exc)
            return None
