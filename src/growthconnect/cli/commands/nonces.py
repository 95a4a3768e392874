"""Housekeeping for consumed and expired OAuth state nonces."""

from datetime import timedelta

import click

from growthconnect.cli.base import CliCommand
from growthconnect.oauth.state import NonceStateManager


@click.command(name='purge-nonces')
@click.option('--older-than-hours', default=168, show_default=True, type=click.IntRange(min=0),
              help='Delete nonces whose expiry is older than this many hours')
def purge_nonces_command(older_than_hours: int):
    """Delete expired OAuth state nonces.

    Expired rows are already unusable; this only keeps the table small.
    """
    PurgeNoncesCommand().run(older_than_hours=older_than_hours)


class PurgeNoncesCommand(CliCommand):

    def run(self, *, older_than_hours: int) -> int:
        with self:
            manager = NonceStateManager(self.db, self.oauth_config())
            deleted = manager.purge_expired(older_than=timedelta(hours=older_than_hours))
        click.echo(f"Deleted {deleted} expired OAuth nonce(s)")
        return deleted
