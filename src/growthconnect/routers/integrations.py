"""Router for reading a workspace's connected integrations."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from growthconnect.auth.dependencies import require_workspace_permission
from growthconnect.auth.permissions import VIEW_INTEGRATIONS
from growthconnect.database import get_db
from growthconnect.integrations import IntegrationRepository

router = APIRouter(
    prefix="/integrations",
    tags=["integrations"]
)


@router.get("/{workspace_id}")
def list_workspace_integrations(
    workspace_id: str,
    _user_id: str = Depends(require_workspace_permission(VIEW_INTEGRATIONS)),
    db: Session = Depends(get_db),
):
    """List integration metadata for a workspace. Tokens are never returned."""
    records = IntegrationRepository(db).list_integrations(workspace_id)

    return {
        "workspace_id": workspace_id,
        "integrations": [
            {
                "provider": record.provider,
                "status": record.status,
                "account_id": record.account_id,
                "account_name": record.account_name,
                "scopes": record.scopes,
                "expires_at": record.expires_at.isoformat() if record.expires_at else None,
                "last_sync_at": record.last_sync_at.isoformat() if record.last_sync_at else None,
            }
            for record in records
        ],
    }
