"""Router for OAuth initiation and the provider callback."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from growthconnect.auth.dependencies import check_workspace_permission, get_current_user_id
from growthconnect.auth.permissions import CONNECT_INTEGRATIONS
from growthconnect.database import get_db
from growthconnect.oauth.config import OAuthConfig
from growthconnect.oauth.exceptions import (
    InvalidRedirectError,
    OAuthConfigError,
    UnsupportedProviderError,
)
from growthconnect.oauth.service import OAuthService
from growthconnect.ratelimit import OAUTH_INIT_LIMIT, limiter
from growthconnect.settings import settings

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/oauth",
    tags=["oauth"]
)


class OAuthInitRequest(BaseModel):
    workspace_id: str = Field(..., min_length=1)
    provider: str = Field(..., min_length=1)
    redirect_url: str = Field(..., min_length=1)


class OAuthInitResponse(BaseModel):
    success: bool = True
    auth_url: str
    provider: str
    scopes: list[str]


def get_oauth_config() -> OAuthConfig:
    return OAuthConfig.from_settings(settings)


def get_oauth_service(
    db: Session = Depends(get_db),
    config: OAuthConfig = Depends(get_oauth_config),
) -> OAuthService:
    return OAuthService(db, config)


@router.post("/init", response_model=OAuthInitResponse)
@limiter.limit(OAUTH_INIT_LIMIT)
def oauth_init(
    request: Request,
    body: OAuthInitRequest,
    user_id: str = Depends(get_current_user_id),
    service: OAuthService = Depends(get_oauth_service),
):
    """Start an OAuth connection and return the provider authorization URL.

    The dashboard navigates the browser to ``auth_url``; the provider later
    sends the user back to ``/oauth/callback`` with the signed state.
    """
    check_workspace_permission(service.db, user_id, body.workspace_id, CONNECT_INTEGRATIONS)

    try:
        authorization = service.initiate(
            workspace_id=body.workspace_id,
            user_id=user_id,
            provider=body.provider,
            redirect_url=body.redirect_url,
        )
    except UnsupportedProviderError:
        raise HTTPException(status_code=400, detail=f"Unsupported provider: {body.provider}")
    except InvalidRedirectError:
        logger.warning("Rejected OAuth redirect_url for workspace %s", body.workspace_id)
        raise HTTPException(status_code=400, detail="redirect_url is not an allowed origin")
    except OAuthConfigError as exc:
        logger.error("OAuth init misconfigured: %s", exc)
        raise HTTPException(status_code=503, detail="OAuth is not configured for this provider")

    return OAuthInitResponse(
        auth_url=authorization.auth_url,
        provider=authorization.provider,
        scopes=authorization.scopes,
    )


@router.get("/callback")
def oauth_callback(
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    service: OAuthService = Depends(get_oauth_service),
):
    """Provider redirect target. Always answers with a 302 to the dashboard."""
    instruction = service.handle_callback(code=code, state=state, error=error)
    return RedirectResponse(instruction.location, status_code=instruction.status_code)
