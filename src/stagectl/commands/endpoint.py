"""Command: look up a deployed stack's endpoint in the cloud inventory."""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from stagectl.commands._base import StageCommand
from stagectl.domain.errors import StageError
from stagectl.services.result import ServiceError, ServiceResult

if TYPE_CHECKING:
    from stagectl.commands._context import AppContext


@click.command(
    cls=StageCommand,
    examples="""\
  stagectl endpoint RemixArc1a2bStaging
  stagectl endpoint RemixArc1a2bStaging --attempts 5
  stagectl -q endpoint RemixArc1a2bStaging""",
)
@click.argument("stack_id")
@click.option(
    "--attempts",
    type=click.IntRange(min=1),
    default=1,
    show_default=True,
    help="Lookups before reporting not found.",
)
@click.pass_obj
def endpoint(app: AppContext, stack_id: str, attempts: int) -> None:
    """Resolve STACK_ID to its live API endpoint."""
    from stagectl.services.deploy import DeploymentManager

    try:
        record = DeploymentManager(app.settings).resolve_endpoint(stack_id, attempts=attempts)
    except StageError as exc:
        app.emit(
            ServiceResult(
                ok=False,
                op="endpoint",
                error=ServiceError(code=exc.code, message=exc.message, detail=exc.detail()),
            )
        )
        return
    app.emit(ServiceResult(ok=True, op="endpoint", data=record.model_dump()))
