"""Root CLI group for stagectl with global flags and command registration."""

from __future__ import annotations

import click

from stagectl import __version__
from stagectl.commands import register_commands
from stagectl.commands._context import AppContext
from stagectl.config.settings import StageSettings


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="stagectl")
@click.option("--json", "json_output", is_flag=True, help="Structured JSON output.")
@click.option("-q", "--quiet", is_flag=True, help="Minimal output.")
@click.option("-v", "--verbose", is_flag=True, help="Detailed output with debug info.")
@click.option("--log-json", is_flag=True, help="Structured JSON log output to stderr.")
@click.option("-c", "--config", "config_path", default=None, help="Override config file path.")
@click.pass_context
def cli(
    ctx: click.Context,
    json_output: bool,
    quiet: bool,
    verbose: bool,
    log_json: bool,
    config_path: str | None,
) -> None:
    """stagectl — provision, test, deploy, and tear down a throwaway app."""
    ctx.ensure_object(dict)
    settings = StageSettings.from_cli(
        config_path=config_path,
        json_output=json_output,
        quiet=quiet,
        verbose=verbose,
        log_json=log_json,
    )
    ctx.obj = AppContext(settings)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


def main() -> None:
    """Console-script entry point."""
    cli()


register_commands(cli)
