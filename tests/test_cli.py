"""CLI maintenance commands."""

from datetime import timedelta

import pytest
from click.testing import CliRunner
from sqlalchemy.orm import sessionmaker

from growthconnect.cli import cli
from growthconnect.cli.base import CliCommand
from growthconnect.integrations import IntegrationRepository
from growthconnect.metadata import OAuthStateNonce
from growthconnect.oauth.state import NonceStateManager

from conftest import DASHBOARD_URL


@pytest.fixture
def session_factory(test_db, monkeypatch):
    factory = sessionmaker(bind=test_db.get_bind())
    monkeypatch.setattr(CliCommand, "session_factory", factory)
    return factory


def test_commands_are_registered():
    result = CliRunner().invoke(cli, ["--help"])

    assert result.exit_code == 0
    assert "purge-nonces" in result.output
    assert "list-integrations" in result.output


def test_purge_nonces(test_db, oauth_config, workspace, clock, session_factory):
    manager = NonceStateManager(test_db, oauth_config, clock=lambda: clock() - timedelta(days=30))
    manager.create_state(str(workspace.id), "user-1", "google", DASHBOARD_URL)

    result = CliRunner().invoke(cli, ["purge-nonces", "--older-than-hours", "24"])

    assert result.exit_code == 0, result.output
    assert "Deleted 1 expired OAuth nonce(s)" in result.output
    assert test_db.query(OAuthStateNonce).count() == 0


def test_list_integrations(test_db, workspace, session_factory):
    IntegrationRepository(test_db).upsert_integration(
        workspace.id,
        "youtube",
        account_id="channel-1",
        account_name="Acme TV",
        scopes=["yt"],
        expires_at=None,
        last_sync_at=None,
    )
    test_db.commit()

    result = CliRunner().invoke(cli, ["list-integrations", "--workspace-id", str(workspace.id)])

    assert result.exit_code == 0, result.output
    assert "1 integration(s)" in result.output
    assert "youtube" in result.output
    assert "channel-1" in result.output


def test_list_integrations_unknown_workspace(session_factory):
    result = CliRunner().invoke(cli, ["list-integrations", "--workspace-id", "not-a-uuid"])

    assert result.exit_code != 0
    assert "Invalid workspace id" in result.output
