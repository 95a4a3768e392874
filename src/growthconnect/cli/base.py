"""Base command class for shared CLI setup/teardown."""

import uuid
from typing import Optional

import click
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from growthconnect.database import get_engine_kwargs
from growthconnect.metadata import Workspace
from growthconnect.oauth.config import OAuthConfig
from growthconnect.settings import settings


class CliCommand:
    """Base class for all CLI commands with shared setup/teardown."""

    session_factory: Optional[sessionmaker] = None

    def __init__(self):
        self.engine = None
        self.Session = None
        self.db: Optional[Session] = None

    def setup_db(self):
        """Initialize database connection."""
        if self.session_factory is not None:
            self.Session = self.session_factory
        else:
            self.engine = create_engine(
                settings.database_url,
                **get_engine_kwargs(),
            )
            self.Session = sessionmaker(bind=self.engine)
        self.db = self.Session()

    def cleanup_db(self):
        """Close database connection."""
        if self.db:
            self.db.close()
        if self.engine is not None:
            self.engine.dispose()

    def oauth_config(self) -> OAuthConfig:
        return OAuthConfig.from_settings(settings)

    def load_workspace(self, workspace_id: str) -> Workspace:
        """Load a workspace row or fail the command."""
        if not self.db:
            raise click.ClickException("Database not initialized")
        try:
            row = self.db.get(Workspace, uuid.UUID(str(workspace_id)))
        except ValueError:
            raise click.ClickException(f"Invalid workspace id: {workspace_id}")
        if not row:
            raise click.ClickException(f"Workspace {workspace_id} not found in database")
        return row

    def run(self, **kwargs):
        """Execute command - override in subclasses."""
        raise NotImplementedError

    def __enter__(self):
        self.setup_db()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup_db()
