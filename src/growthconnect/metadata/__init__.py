"""Database models for workspaces, OAuth state and provider integrations."""

from datetime import datetime, timezone
import uuid

from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Index, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def compile_jsonb_for_sqlite(element, compiler, **kw):
    return compiler.visit_JSON(element, **kw)


Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Workspace(Base):
    """Tenant workspace owning integrations."""

    __tablename__ = "workspaces"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    integrations = relationship("Integration", back_populates="workspace", cascade="all, delete-orphan")
    members = relationship("WorkspaceMember", back_populates="workspace", cascade="all, delete-orphan")


class WorkspaceMember(Base):
    """A Supabase user's role in a workspace."""

    __tablename__ = "workspace_members"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(255), nullable=False, index=True)  # Supabase auth.users.id
    role = Column(String(32), nullable=False, default="member")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    workspace = relationship("Workspace", back_populates="members")

    __table_args__ = (
        UniqueConstraint("workspace_id", "user_id", name="uq_workspace_members_workspace_user"),
    )


class OAuthStateNonce(Base):
    """Single-use OAuth state nonce bound to its initiation context.

    Rows are never updated except for the one-time transition of ``used_at``
    from NULL to a timestamp, and are retained after use for replay detection.
    """

    __tablename__ = "oauth_state_nonces"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    nonce = Column(String(128), nullable=False, unique=True)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(255), nullable=False)
    provider = Column(String(64), nullable=False)
    redirect_url = Column(Text, nullable=False)
    hmac_signature = Column(String(128), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_oauth_state_nonces_expires_at", "expires_at"),
    )


class Integration(Base):
    """Workspace-scoped provider connection. Holds no secret material."""

    __tablename__ = "integrations"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    workspace_id = Column(UUID(as_uuid=True), ForeignKey("workspaces.id", ondelete="CASCADE"), nullable=False)
    provider = Column(String(64), nullable=False)
    status = Column(String(32), nullable=False, default="inactive")
    account_id = Column(String(255), nullable=True)
    account_name = Column(String(255), nullable=True)
    scopes = Column(JSONB, nullable=False, default=list)
    expires_at = Column(DateTime(timezone=True), nullable=True)  # access-token expiry
    last_sync_at = Column(DateTime(timezone=True), nullable=True)
    metadata_json = Column("metadata", JSONB, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    workspace = relationship("Workspace", back_populates="integrations")
    tokens = relationship("OAuthToken", back_populates="integration", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint("workspace_id", "provider", name="uq_integrations_workspace_provider"),
    )


class OAuthToken(Base):
    """Encrypted provider credentials for an integration (ciphertext + IV only)."""

    __tablename__ = "oauth_tokens"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    integration_id = Column(
        UUID(as_uuid=True),
        ForeignKey("integrations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    access_token_encrypted = Column(Text, nullable=False)
    access_token_iv = Column(String(32), nullable=False)
    refresh_token_encrypted = Column(Text, nullable=True)
    refresh_token_iv = Column(String(32), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    integration = relationship("Integration", back_populates="tokens")
