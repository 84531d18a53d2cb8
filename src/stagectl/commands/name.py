"""Command: print a fresh run identity without side effects."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import click

from stagectl.commands._base import StageCommand
from stagectl.services.result import ServiceResult

if TYPE_CHECKING:
    from stagectl.commands._context import AppContext


@click.command(
    cls=StageCommand,
    examples="""\
  stagectl name
  stagectl name --template arc
  stagectl --json name""",
)
@click.option("--template", default=None, help="App template (default: config).")
@click.option(
    "--apps-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Parent directory for the generated project.",
)
@click.pass_obj
def name(app: AppContext, template: str | None, apps_dir: Path | None) -> None:
    """Show the app name, stack ID, and project directory a run would use."""
    identity = app.new_identity(template=template, apps_dir=apps_dir)
    app.emit(ServiceResult(ok=True, op="name", data=identity.model_dump(mode="json")))
