"""Stage error taxonomy.

Every failure raised by a service derives from :class:`StageError` so the
orchestrator can catch at a single boundary and still run teardown.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class StageError(Exception):
    """Base for all fatal stage failures."""

    code = "STAGE_FAILED"

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def detail(self) -> dict[str, Any]:
        """Structured payload for ``ServiceError.detail``."""
        return {"stage": self.stage} if self.stage else {}


class GateFailure(StageError):
    """Dependency validation rejected the generated project."""

    code = "VALIDATION_FAILED"

    def __init__(self, errors: Sequence[str], *, stage: str | None = "validating") -> None:
        self.errors = list(errors)
        super().__init__(
            f"Dependency validation failed with {len(self.errors)} error(s)",
            stage=stage,
        )

    def detail(self) -> dict[str, Any]:
        return {**super().detail(), "errors": self.errors}


class ProcessFailure(StageError):
    """An external command exited non-zero or could not be started."""

    code = "PROCESS_FAILED"

    def __init__(
        self,
        message: str,
        *,
        argv: Sequence[str] = (),
        returncode: int | None = None,
        stage: str | None = None,
    ) -> None:
        super().__init__(message, stage=stage)
        self.argv = list(argv)
        self.returncode = returncode

    def detail(self) -> dict[str, Any]:
        return {**super().detail(), "command": " ".join(self.argv), "returncode": self.returncode}


class ProvisionError(StageError):
    """The project skeleton could not be created or completed."""

    code = "PROVISION_FAILED"


class NotFoundFailure(StageError):
    """The deployed stack could not be located in the cloud inventory."""

    code = "DEPLOYMENT_NOT_FOUND"

    def __init__(
        self,
        message: str = "Deployment not found",
        *,
        stack_id: str | None = None,
        stage: str | None = "resolving_endpoint",
    ) -> None:
        super().__init__(message, stage=stage)
        self.stack_id = stack_id

    def detail(self) -> dict[str, Any]:
        return {**super().detail(), "stack_id": self.stack_id}


class AmbiguousDeploymentError(NotFoundFailure):
    """More than one inventory entry carries the run's stack name."""

    code = "DEPLOYMENT_AMBIGUOUS"

    def __init__(self, stack_id: str, api_ids: Sequence[str]) -> None:
        self.api_ids = list(api_ids)
        super().__init__(
            f"{len(self.api_ids)} deployments named {stack_id!r}; refusing to pick one",
            stack_id=stack_id,
        )

    def detail(self) -> dict[str, Any]:
        return {**super().detail(), "api_ids": self.api_ids}


class CleanupFailure(StageError):
    """Teardown failed. Logged, never allowed to change the exit code."""

    code = "CLEANUP_FAILED"

    def __init__(self, message: str, *, stage: str | None = "destroying") -> None:
        super().__init__(message, stage=stage)


class InventoryError(StageError):
    """The cloud inventory API could not be queried at all."""

    code = "INVENTORY_UNAVAILABLE"

    def __init__(self, message: str, *, stage: str | None = "resolving_endpoint") -> None:
        super().__init__(message, stage=stage)
