"""Pluggy hook specifications for run lifecycle events.

Hooks are dispatched synchronously from the orchestrator. A hook that
raises is logged and reported as a warning on the run result.
"""

from __future__ import annotations

from typing import Any

import pluggy

hookspec = pluggy.HookspecMarker("stagectl")


class StagectlHookSpec:
    """Hook specifications for the stagectl plugin system."""

    @hookspec
    def pre_stage(self, app_name: str, stage: str) -> None:
        """Called before a try-phase stage starts."""

    @hookspec
    def post_stage(
        self,
        app_name: str,
        stage: str,
        status: str,
        duration_ms: float,
    ) -> None:
        """Called after a try-phase stage finishes, successfully or not."""

    @hookspec
    def post_destroy(self, app_name: str, ok: bool) -> None:
        """Called after the teardown attempt."""

    @hookspec
    def post_run(
        self,
        app_name: str,
        exit_code: int,
        stages: list[dict[str, Any]],
    ) -> None:
        """Called once per run, after teardown."""
