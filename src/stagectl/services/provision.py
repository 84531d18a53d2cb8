"""Provisioner — materialize a project skeleton and inject the test harness.

The scaffolder runs first and alone. Only once ``package.json`` exists do
the three injection steps (harness directory copy, harness config copy,
``package.json`` edit) run concurrently; they are jointly awaited and any
failure among them fails the stage after all three have settled.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING, Any

from stagectl.domain.errors import ProvisionError
from stagectl.infrastructure.filesystem import copy_file, copy_tree
from stagectl.infrastructure.packages import (
    PACKAGE_JSON,
    add_dev_dependencies,
    add_scripts,
    update_package_config,
)
from stagectl.infrastructure.process import run_command
from stagectl.services.base import BaseService
from stagectl.services.telemetry import timed

if TYPE_CHECKING:
    from stagectl.domain.identity import RunIdentity

logger = logging.getLogger(__name__)

HARNESS_DIR_NAME = "cypress"
HARNESS_CONFIG_NAME = "cypress.json"
LOCAL_TEST_SCRIPT = "test:e2e:run"

_STAGE = "provisioning"


class Provisioner(BaseService):
    """Creates the disposable project on disk."""

    def scaffold_command(self, identity: RunIdentity) -> list[str]:
        """Scaffolder argv for *identity*."""
        project = self._settings.project
        return [
            self._commands.npx,
            "--yes",
            self._commands.scaffolder,
            str(identity.project_dir),
            "--template",
            identity.template,
            "--typescript" if project.typescript else "--no-typescript",
            "--install" if project.install_on_create else "--no-install",
        ]

    def provision(self, identity: RunIdentity) -> Path:
        """Create the skeleton for *identity* and return its directory.

        Raises:
            ProcessFailure: The scaffolder exited non-zero.
            ProvisionError: No skeleton was produced, or an injection failed.
        """
        project_dir = identity.project_dir
        if project_dir.exists() and any(project_dir.iterdir()):
            msg = f"Project directory {project_dir} already exists and is not empty"
            raise ProvisionError(msg, stage=_STAGE)
        project_dir.parent.mkdir(parents=True, exist_ok=True)

        with timed("scaffold"):
            run_command(
                self.scaffold_command(identity),
                cwd=project_dir.parent,
                stage=_STAGE,
                failure_message=f"Scaffolding template {identity.template!r} failed",
            )

        if not (project_dir / PACKAGE_JSON).is_file():
            msg = f"Scaffolder produced no {PACKAGE_JSON} in {project_dir}"
            raise ProvisionError(msg, stage=_STAGE)

        with timed("inject_harness"):
            self.inject_harness(project_dir)
        logger.info("Provisioned %s from template %s", project_dir, identity.template)
        return project_dir

    def inject_harness(self, project_dir: Path) -> None:
        """Run the three independent injection steps concurrently."""
        settings = self._settings
        with ThreadPoolExecutor(max_workers=3, thread_name_prefix="provision") as pool:
            futures: dict[str, Future[Any]] = {
                "harness directory": pool.submit(
                    copy_tree, settings.harness_dir, project_dir / HARNESS_DIR_NAME
                ),
                "harness config": pool.submit(
                    copy_file, settings.harness_config, project_dir / HARNESS_CONFIG_NAME
                ),
                PACKAGE_JSON: pool.submit(self._update_package_config, project_dir),
            }

        errors: list[str] = []
        for label, future in futures.items():
            exc = future.exception()
            if exc is not None:
                logger.debug("Injecting %s failed", label, exc_info=exc)
                errors.append(f"{label}: {exc}")
        if errors:
            raise ProvisionError("Harness injection failed: " + "; ".join(errors), stage=_STAGE)

    def _update_package_config(self, project_dir: Path) -> None:
        """Add the deploy tool and harness packages, plus the local test script.

        Both edits go through a single read-modify-write of ``package.json``.
        """
        project = self._settings.project
        e2e = self._settings.e2e
        dev_dependencies = {
            project.deploy_tool_package: project.deploy_tool_version,
            **e2e.harness_packages,
        }
        runner = "cypress run --headless" if e2e.headless else "cypress run --headed"
        scripts = {LOCAL_TEST_SCRIPT: f'start-server-and-test dev {e2e.dev_url} "{runner}"'}
        update_package_config(
            project_dir,
            add_dev_dependencies(dev_dependencies),
            add_scripts(scripts),
        )
