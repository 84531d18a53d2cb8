"""Build runner — install dependencies, then build, in the project directory."""

from __future__ import annotations

import logging
from pathlib import Path

from stagectl.infrastructure.process import run_command
from stagectl.services.base import BaseService
from stagectl.services.telemetry import timed

logger = logging.getLogger(__name__)

_STAGE = "building"


class BuildRunner(BaseService):
    """Two blocking npm invocations; either failing fails the stage."""

    def build(self, project_dir: Path) -> None:
        npm = self._commands.npm
        with timed("install"):
            run_command(
                [npm, "install"],
                cwd=project_dir,
                stage=_STAGE,
                failure_message="Dependency install failed",
            )
        with timed("build"):
            run_command(
                [npm, "run", "build"],
                cwd=project_dir,
                stage=_STAGE,
                failure_message="Build failed",
            )
        logger.info("Built %s", project_dir)
