"""Run lifecycle states, transition map, and outcome records.

Happy path::

    idle -> provisioning -> validating -> building -> testing_local
         -> deploying -> resolving_endpoint -> testing_remote -> succeeded

Any try-phase state may move to ``failed``. Both ``succeeded`` and
``failed`` move unconditionally to ``destroying`` and then ``done``.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class RunState(StrEnum):
    """States of the lifecycle state machine."""

    IDLE = "idle"
    PROVISIONING = "provisioning"
    VALIDATING = "validating"
    BUILDING = "building"
    TESTING_LOCAL = "testing_local"
    DEPLOYING = "deploying"
    RESOLVING_ENDPOINT = "resolving_endpoint"
    TESTING_REMOTE = "testing_remote"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    DESTROYING = "destroying"
    DONE = "done"


class StageStatus(StrEnum):
    """Per-stage result recorded in the run report."""

    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


# Try-phase stages in execution order.
TRY_STAGES: tuple[RunState, ...] = (
    RunState.PROVISIONING,
    RunState.VALIDATING,
    RunState.BUILDING,
    RunState.TESTING_LOCAL,
    RunState.DEPLOYING,
    RunState.RESOLVING_ENDPOINT,
    RunState.TESTING_REMOTE,
)

# Stages that touch the cloud; dropped by ``--skip-deploy``.
REMOTE_STAGES = frozenset(
    {RunState.DEPLOYING, RunState.RESOLVING_ENDPOINT, RunState.TESTING_REMOTE}
)


def _build_transitions() -> dict[str, list[str]]:
    transitions: dict[str, list[str]] = {}
    previous = RunState.IDLE
    for stage in TRY_STAGES:
        transitions[previous] = [stage, RunState.FAILED]
        previous = stage
    transitions[previous] = [RunState.SUCCEEDED, RunState.FAILED]
    # --skip-deploy ends the try-phase after the local test pass
    transitions[RunState.TESTING_LOCAL].append(RunState.SUCCEEDED)
    transitions[RunState.SUCCEEDED] = [RunState.DESTROYING]
    transitions[RunState.FAILED] = [RunState.DESTROYING]
    transitions[RunState.DESTROYING] = [RunState.DONE]
    transitions[RunState.DONE] = []
    return transitions


RUN_TRANSITIONS: dict[str, list[str]] = _build_transitions()


def is_valid_transition(current: str, target: str) -> bool:
    """Check if moving from *current* to *target* is allowed."""
    return target in RUN_TRANSITIONS.get(current, [])


class StageRecord(BaseModel):
    """Timing and status of one executed stage."""

    model_config = {"frozen": True}

    stage: str
    status: StageStatus
    duration_ms: float = 0.0
    detail: str | None = None


class RunOutcome(BaseModel):
    """Exit decision threaded from the try-phase into teardown. Set once."""

    model_config = {"frozen": True}

    exit_code: int = Field(ge=0, le=1)
    failed_stage: str | None = None
    error_code: str | None = None
    error_message: str | None = None
    error_detail: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class LifecycleMachine:
    """Tracks the current state and enforces the transition map.

    ``history`` keeps every visited state in order, which makes the
    exactly-once teardown property easy to assert.
    """

    def __init__(self) -> None:
        self.state: RunState = RunState.IDLE
        self.history: list[RunState] = [RunState.IDLE]

    def advance(self, target: RunState) -> None:
        if not is_valid_transition(self.state, target):
            msg = f"Invalid lifecycle transition {self.state} -> {target}"
            raise ValueError(msg)
        self.state = target
        self.history.append(target)

    def fail(self) -> None:
        """Move to ``failed`` from whatever try-phase state is current."""
        if self.state in (RunState.FAILED, RunState.DESTROYING, RunState.DONE):
            return
        if self.state is RunState.SUCCEEDED:
            msg = "Cannot fail a run that already succeeded"
            raise ValueError(msg)
        self.advance(RunState.FAILED)
