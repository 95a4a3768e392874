"""Workspace roles and the permissions they grant."""

from typing import Optional

from sqlalchemy.orm import Session

from growthconnect.metadata import WorkspaceMember

CONNECT_INTEGRATIONS = "connect_integrations"
VIEW_INTEGRATIONS = "view_integrations"

ROLE_PERMISSIONS = {
    "owner": {CONNECT_INTEGRATIONS, VIEW_INTEGRATIONS},
    "admin": {CONNECT_INTEGRATIONS, VIEW_INTEGRATIONS},
    "member": {VIEW_INTEGRATIONS},
    "viewer": {VIEW_INTEGRATIONS},
}


def get_membership(db: Session, user_id: str, workspace_id) -> Optional[WorkspaceMember]:
    return db.query(WorkspaceMember).filter(
        WorkspaceMember.workspace_id == workspace_id,
        WorkspaceMember.user_id == user_id,
    ).first()


def has_permission(membership: Optional[WorkspaceMember], permission: str) -> bool:
    if membership is None:
        return False
    role = str(membership.role or "").strip().lower()
    return permission in ROLE_PERMISSIONS.get(role, set())
