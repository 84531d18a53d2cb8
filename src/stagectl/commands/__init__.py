"""Subcommand modules for stagectl.

Provides register_commands() which uses deferred imports to keep
``stagectl --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all standalone commands on the root CLI group."""
    from stagectl.commands.destroy import destroy
    from stagectl.commands.endpoint import endpoint
    from stagectl.commands.name import name
    from stagectl.commands.run import run

    cli.add_command(run)
    cli.add_command(name)
    cli.add_command(endpoint)
    cli.add_command(destroy)
