"""GrowthConnect CLI entry point with lazy command registration."""

from __future__ import annotations

import click

_COMMANDS_REGISTERED = False


def _register_commands_once() -> None:
    global _COMMANDS_REGISTERED
    if _COMMANDS_REGISTERED:
        return

    from .commands import integrations, nonces

    cli.add_command(nonces.purge_nonces_command, name="purge-nonces")
    cli.add_command(integrations.list_integrations_command, name="list-integrations")

    _COMMANDS_REGISTERED = True


class _LazyCLIGroup(click.Group):
    def list_commands(self, ctx):
        _register_commands_once()
        return super().list_commands(ctx)

    def get_command(self, ctx, cmd_name):
        _register_commands_once()
        return super().get_command(ctx, cmd_name)


@click.group(cls=_LazyCLIGroup)
def cli():
    """GrowthConnect maintenance commands."""
    pass


if __name__ == "__main__":
    cli()
