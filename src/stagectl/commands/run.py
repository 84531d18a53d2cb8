"""Command: full provision → test → deploy → test → teardown lifecycle."""

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
  stagectl run
  stagectl run --template arc
  stagectl run --skip-deploy
  stagectl run --poll-attempts 10
  stagectl --json --log-json run --apps-dir /tmp/stage-apps""",
)
@click.option("--template", default=None, help="App template to scaffold (default: config).")
@click.option(
    "--apps-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Parent directory for the generated project (default: system temp).",
)
@click.option("--skip-deploy", is_flag=True, help="Stop after the local test pass.")
@click.option(
    "--poll-attempts",
    type=click.IntRange(min=1),
    default=None,
    help="Endpoint lookups before giving up (default: config).",
)
@click.pass_obj
def run(
    app: AppContext,
    template: str | None,
    apps_dir: Path | None,
    skip_deploy: bool,
    poll_attempts: int | None,
) -> None:
    """Provision, test, and deploy a throwaway app, then always destroy it."""
    from stagectl.services.orchestrator import run_lifecycle

    identity = app.new_identity(template=template, apps_dir=apps_dir)
    app.emit(
        run_lifecycle(
            identity,
            app.settings,
            plugins=app.plugins,
            skip_deploy=skip_deploy,
            poll_attempts=poll_attempts,
        )
    )
