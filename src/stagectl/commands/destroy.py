"""Command: tear down a leaked app environment by name."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from stagectl.commands._base import StageCommand

if TYPE_CHECKING:
    from stagectl.commands._context import AppContext


@click.command(
    cls=StageCommand,
    examples="""\
  stagectl destroy remix-arc-1a2b
  stagectl destroy remix-arc-1a2b --env production
  stagectl destroy remix-arc-1a2b --no-force --project-dir /tmp/remix-arc-1a2b""",
)
@click.argument("app_name")
@click.option(
    "--env",
    type=click.Choice(["staging", "production"]),
    default=None,
    help="Environment to destroy (default: config).",
)
@click.option(
    "--force/--no-force",
    default=None,
    help="Also remove backing storage (default: config).",
)
@click.option(
    "--project-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Run the deploy tool from this project directory.",
)
@click.pass_obj
def destroy(
    app: AppContext,
    app_name: str,
    env: str | None,
    force: bool | None,
    project_dir: Path | None,
) -> None:
    """Destroy APP_NAME and its cloud resources."""
    from stagectl.services.deploy import DeploymentManager, DestroyRequest

    deploy_cfg = app.settings.deploy
    request = DestroyRequest(
        appname=app_name,
        env=env or deploy_cfg.environment,
        force=deploy_cfg.force if force is None else force,
    )
    app.emit(DeploymentManager(app.settings).destroy(request, cwd=project_dir))
