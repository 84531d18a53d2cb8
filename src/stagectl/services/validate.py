"""Dependency validator — confirm every scoped package version is published.

A pure check: nothing in the project is modified. The orchestrator turns an
invalid result into a :class:`~stagectl.domain.errors.GateFailure` before
any build or deploy step runs.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field

from stagectl.domain.errors import ProcessFailure
from stagectl.infrastructure.packages import PACKAGE_JSON, declared_dependencies, read_package_config
from stagectl.infrastructure.process import run_command
from stagectl.services.base import BaseService

logger = logging.getLogger(__name__)


class ValidationResult(BaseModel):
    """Outcome of one validation pass."""

    model_config = {"frozen": True}

    valid: bool
    errors: list[str] = Field(default_factory=list)


class DependencyValidator(BaseService):
    """Checks scoped dependencies of a generated project against the registry."""

    def scoped_dependencies(self, project_dir: Path) -> dict[str, str]:
        """Dependencies whose names fall under a configured scope."""
        scopes = tuple(self._settings.project.validate_scopes)
        deps = declared_dependencies(read_package_config(project_dir))
        return {name: version for name, version in deps.items() if name.startswith(scopes)}

    def validate(self, project_dir: Path) -> ValidationResult:
        """Return ``valid=False`` with one message per unavailable package."""
        try:
            scoped = self.scoped_dependencies(project_dir)
        except FileNotFoundError:
            return ValidationResult(valid=False, errors=[f"No {PACKAGE_JSON} in {project_dir}"])
        except (ValueError, json.JSONDecodeError) as exc:
            return ValidationResult(valid=False, errors=[f"Unreadable {PACKAGE_JSON}: {exc}"])

        errors = [
            f"{name}@{version} is not available in the registry"
            for name, version in scoped.items()
            if not self._is_published(project_dir, name, version)
        ]
        logger.debug("Validated %d scoped package(s), %d error(s)", len(scoped), len(errors))
        return ValidationResult(valid=not errors, errors=errors)

    def _is_published(self, project_dir: Path, name: str, version: str) -> bool:
        try:
            completed = run_command(
                [self._commands.npm, "view", f"{name}@{version}", "version"],
                cwd=project_dir,
                stage="validating",
                capture=True,
            )
        except ProcessFailure as exc:
            logger.debug("npm view %s@%s failed: %s", name, version, exc)
            return False
        return bool(completed.stdout.strip())
