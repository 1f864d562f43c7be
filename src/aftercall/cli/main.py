"""aftercall CLI entry point."""

import click


@click.group()
def cli():
    """aftercall: post-execution hooks CLI."""
    pass


# Register subcommand groups
from aftercall.cli.hooks_cmd import hooks  # noqa: E402

cli.add_command(hooks)
