"""FastAPI dependencies for authentication."""

import logging
import uuid
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, status
from jose import JWTError
from sqlalchemy.orm import Session

from growthconnect.auth.jwt import get_user_id_from_token
from growthconnect.auth.permissions import get_membership, has_permission
from growthconnect.database import get_db

logger = logging.getLogger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user_id(
    authorization: Optional[str] = Header(None),
) -> str:
    """Return the Supabase user id from the ``Authorization: Bearer`` header.

    Raises:
        HTTPException 401: Missing, malformed, invalid or expired token
    """
    if not authorization:
        raise _unauthorized("Authorization header required")

    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Invalid authorization header format")

    try:
        return get_user_id_from_token(token.strip())
    except JWTError:
        raise _unauthorized("Invalid or expired token")


def check_workspace_permission(db: Session, user_id: str, workspace_id: str, permission: str) -> uuid.UUID:
    """Return the workspace UUID if ``user_id`` holds ``permission`` there.

    Unknown workspaces and non-members get the same 403.

    Raises:
        HTTPException 400: workspace_id is not a UUID
        HTTPException 403: User lacks the permission in this workspace
    """
    try:
        workspace_uuid = uuid.UUID(str(workspace_id))
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid workspace_id")

    membership = get_membership(db, user_id, workspace_uuid)
    if not has_permission(membership, permission):
        logger.warning(
            "Workspace access denied: user_id=%s workspace_id=%s permission=%s",
            user_id,
            workspace_id,
            permission,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"No {permission} access to workspace {workspace_id}",
        )
    return workspace_uuid


def require_workspace_permission(permission: str) -> Callable:
    """Dependency factory for routes with a ``{workspace_id}`` path parameter.

    Usage:
        @router.get("/{workspace_id}")
        def handler(
            workspace_id: str,
            user_id: str = Depends(require_workspace_permission(VIEW_INTEGRATIONS)),
        ):
            ...
    """
    def check_access(
        workspace_id: str,
        user_id: str = Depends(get_current_user_id),
        db: Session = Depends(get_db),
    ) -> str:
        check_workspace_permission(db, user_id, workspace_id, permission)
        return user_id

    return check_access
