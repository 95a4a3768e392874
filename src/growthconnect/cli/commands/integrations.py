"""Inspect a workspace's provider integrations."""

import click

from growthconnect.cli.base import CliCommand
from growthconnect.integrations import IntegrationRepository


@click.command(name='list-integrations')
@click.option('--workspace-id', required=True, help='Workspace UUID')
def list_integrations_command(workspace_id: str):
    """List integrations for a workspace (metadata only, never tokens)."""
    ListIntegrationsCommand().run(workspace_id=workspace_id)


class ListIntegrationsCommand(CliCommand):

    def run(self, *, workspace_id: str):
        with self:
            workspace = self.load_workspace(workspace_id)
            records = IntegrationRepository(self.db).list_integrations(workspace.id)
            click.echo(f"Workspace {workspace.name} ({workspace.id}): {len(records)} integration(s)")
            for record in records:
                expires = record.expires_at.isoformat() if record.expires_at else "-"
                click.echo(
                    f"  {record.provider:<24} {record.status:<9} "
                    f"account={record.account_id or '-'} expires={expires}"
                )
        return records
