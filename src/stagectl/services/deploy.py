"""Deployment manager — manifest rewrite, deploy, endpoint lookup, teardown.

``destroy`` is the one operation that never raises: teardown runs on every
exit path and its failure must not hide the run's own result.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from pydantic import BaseModel

from stagectl.domain.errors import (
    AmbiguousDeploymentError,
    CleanupFailure,
    NotFoundFailure,
    StageError,
)
from stagectl.domain.manifest import ArcManifest
from stagectl.infrastructure.filesystem import read_text_exact, write_text_atomic
from stagectl.infrastructure.inventory import ApiInventory
from stagectl.infrastructure.process import run_command
from stagectl.services.base import BaseService
from stagectl.services.result import ServiceError, ServiceResult
from stagectl.services.telemetry import timed

if TYPE_CHECKING:
    from stagectl.config.settings import StageSettings

logger = logging.getLogger(__name__)


class DeploymentRecord(BaseModel):
    """A deployed API gateway matched by stack name."""

    model_config = {"frozen": True}

    name: str
    endpoint: str
    api_id: str | None = None


class DestroyRequest(BaseModel):
    """Arguments for tearing down one app environment."""

    model_config = {"frozen": True}

    appname: str
    env: str = "staging"
    force: bool = True


class DeploymentManager(BaseService):
    """Owns every interaction with the deploy tool and the cloud inventory."""

    def __init__(
        self,
        settings: StageSettings,
        *,
        inventory: ApiInventory | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(settings)
        self._inventory = inventory or ApiInventory(settings.deploy.region)
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Manifest
    # ------------------------------------------------------------------

    def manifest_path(self, project_dir: Path) -> Path:
        return project_dir / self._settings.deploy.manifest

    @staticmethod
    def set_app_name(manifest_path: Path, app_name: str) -> ArcManifest:
        """Point the manifest's ``@app`` at *app_name*; nothing else changes."""
        manifest = ArcManifest.parse(read_text_exact(manifest_path))
        manifest.set_app(app_name)
        write_text_atomic(manifest_path, manifest.render())
        logger.debug("Set @app to %s in %s", app_name, manifest_path)
        return manifest

    # ------------------------------------------------------------------
    # Deploy
    # ------------------------------------------------------------------

    def deploy_command(self) -> list[str]:
        argv = [self._commands.npx, self._commands.deploy_cli, "deploy"]
        if self._settings.deploy.prune:
            argv.append("--prune")
        if self._settings.deploy.environment == "production":
            argv.append("--production")
        return argv

    def deploy(self, project_dir: Path) -> None:
        """Push the built project. Blocks until the deploy tool exits.

        Raises:
            ProcessFailure: The deploy tool exited non-zero.
        """
        run_command(
            self.deploy_command(),
            cwd=project_dir,
            stage="deploying",
            failure_message="Deployment failed",
        )
        logger.info("Deployed %s", project_dir)

    # ------------------------------------------------------------------
    # Endpoint resolution
    # ------------------------------------------------------------------

    def lookup(self, stack_id: str) -> DeploymentRecord | None:
        """One inventory query. None when no entry carries *stack_id*.

        Raises:
            AmbiguousDeploymentError: More than one entry matched.
            InventoryError: The inventory could not be queried.
        """
        matches = self._inventory.find_by_name(stack_id)
        if not matches:
            return None
        if len(matches) > 1:
            raise AmbiguousDeploymentError(stack_id, [str(m.get("ApiId", "?")) for m in matches])
        match = matches[0]
        endpoint = match.get("ApiEndpoint")
        if not endpoint:
            msg = f"Deployment {stack_id!r} has no ApiEndpoint"
            raise NotFoundFailure(msg, stack_id=stack_id)
        return DeploymentRecord(name=stack_id, endpoint=endpoint, api_id=match.get("ApiId"))

    def resolve_endpoint(self, stack_id: str, *, attempts: int | None = None) -> DeploymentRecord:
        """Poll the inventory until *stack_id* appears or the window closes.

        Absence is treated as the control plane catching up; only ambiguity
        and query errors stop the poll early.

        Raises:
            NotFoundFailure: No entry appeared within the window.
        """
        deploy_cfg = self._settings.deploy
        total = attempts if attempts is not None else deploy_cfg.poll_attempts
        for attempt in range(1, total + 1):
            with timed("inventory_lookup") as span:
                span.annotate("attempt", attempt)
                record = self.lookup(stack_id)
            if record is not None:
                logger.info("Resolved %s -> %s", stack_id, record.endpoint)
                return record
            logger.debug("Deployment %s not visible yet (attempt %d/%d)", stack_id, attempt, total)
            if attempt < total:
                self._sleep(deploy_cfg.poll_interval)
        raise NotFoundFailure(stack_id=stack_id)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def destroy_command(self, request: DestroyRequest) -> list[str]:
        argv = [
            self._commands.npx,
            "--yes",
            "--package",
            self._settings.project.deploy_tool_package,
            self._commands.deploy_cli,
            "destroy",
            "--app",
            request.appname,
            "--now",
        ]
        if request.force:
            argv.append("--force")
        if request.env == "production":
            argv.append("--production")
        return argv

    def destroy(self, request: DestroyRequest, *, cwd: Path | None = None) -> ServiceResult:
        """Tear down *request.appname*. Never raises.

        Runs from *cwd* when it exists (the project directory, so the locally
        installed deploy tool is used); otherwise from the current directory.
        """
        workdir = cwd if cwd is not None and cwd.is_dir() else Path.cwd()
        logger.info("Destroying app %s", request.appname)
        try:
            run_command(
                self.destroy_command(request),
                cwd=workdir,
                stage="destroying",
                failure_message=f"Destroying {request.appname} failed",
            )
        except StageError as exc:
            failure = CleanupFailure(exc.message)
            logger.error("Destroy failed for %s: %s", request.appname, exc.message)
            return ServiceResult(
                ok=False,
                op="destroy",
                data=request.model_dump(),
                error=ServiceError(
                    code=failure.code,
                    message=failure.message,
                    detail={**exc.detail(), **failure.detail()},
                ),
            )
        logger.info("Destroyed app %s", request.appname)
        return ServiceResult(ok=True, op="destroy", data=request.model_dump())
