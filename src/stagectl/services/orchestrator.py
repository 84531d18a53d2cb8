"""LifecycleOrchestrator — one disposable environment, start to teardown.

Sequence::

    provision -> validate -> build -> test (dev server)
              -> deploy -> resolve endpoint -> test (deployed)

INVARIANT: Teardown runs exactly once per run, after the try-phase, on
every exit path (success, stage failure, validation gate, unexpected
error, interrupt). A teardown failure is logged and recorded as a warning;
it never changes the exit code decided by the try-phase.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from pydantic import BaseModel, Field

from stagectl.config.logging import run_context
from stagectl.domain.errors import GateFailure, StageError
from stagectl.domain.identity import RunIdentity
from stagectl.domain.lifecycle import (
    REMOTE_STAGES,
    TRY_STAGES,
    LifecycleMachine,
    RunOutcome,
    RunState,
    StageRecord,
    StageStatus,
)
from stagectl.services.build import BuildRunner
from stagectl.services.deploy import DeploymentManager, DeploymentRecord, DestroyRequest
from stagectl.services.e2e import E2ERunner
from stagectl.services.provision import Provisioner
from stagectl.services.result import ServiceError, ServiceResult
from stagectl.services.telemetry import timed, trace_result
from stagectl.services.validate import DependencyValidator

if TYPE_CHECKING:
    from stagectl.config.settings import StageSettings
    from stagectl.plugins.manager import PluginManager

log = structlog.get_logger(__name__)

_T = TypeVar("_T")


class RunReport(BaseModel):
    """Everything one run produced, ready to become a ServiceResult."""

    identity: RunIdentity
    outcome: RunOutcome
    stages: list[StageRecord] = Field(default_factory=list)
    states: list[str] = Field(default_factory=list)
    endpoint: str | None = None
    destroyed: bool = False
    warnings: list[str] = Field(default_factory=list)

    def to_result(self) -> ServiceResult:
        data: dict[str, Any] = {
            "app_name": self.identity.app_name,
            "stack_id": self.identity.stack_id,
            "project_dir": str(self.identity.project_dir),
            "exit_code": self.outcome.exit_code,
            "endpoint": self.endpoint,
            "destroyed": self.destroyed,
            "stages": [s.model_dump(mode="json") for s in self.stages],
        }
        error = None
        if not self.outcome.ok:
            error = ServiceError(
                code=self.outcome.error_code or "STAGE_FAILED",
                message=self.outcome.error_message or "Run failed",
                detail={"stage": self.outcome.failed_stage, **self.outcome.error_detail},
            )
        return ServiceResult(
            ok=self.outcome.ok,
            op="run",
            data=data,
            warnings=list(self.warnings),
            error=error,
        )


class LifecycleOrchestrator:
    """Runs every stage in order and guarantees a single teardown.

    Components default to the real implementations built from *settings*;
    tests pass stand-ins.
    """

    def __init__(
        self,
        identity: RunIdentity,
        settings: StageSettings,
        *,
        provisioner: Provisioner | None = None,
        validator: DependencyValidator | None = None,
        builder: BuildRunner | None = None,
        tester: E2ERunner | None = None,
        deployer: DeploymentManager | None = None,
        plugins: PluginManager | None = None,
        skip_deploy: bool = False,
        poll_attempts: int | None = None,
    ) -> None:
        self._identity = identity
        self._settings = settings
        self._provisioner = provisioner or Provisioner(settings)
        self._validator = validator or DependencyValidator(settings)
        self._builder = builder or BuildRunner(settings)
        self._tester = tester or E2ERunner(settings)
        self._deployer = deployer or DeploymentManager(settings)
        self._plugins = plugins
        self._skip_deploy = skip_deploy
        self._poll_attempts = poll_attempts

        self._machine = LifecycleMachine()
        self._stages: list[StageRecord] = []
        self._warnings: list[str] = []
        self._endpoint: str | None = None

    @property
    def machine(self) -> LifecycleMachine:
        return self._machine

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self) -> RunReport:
        """Execute the try-phase, then teardown. Returns the run report."""
        with run_context(self._identity):
            return self._run()

    def _run(self) -> RunReport:
        outcome: RunOutcome | None = None
        try:
            self._try_phase()
            self._machine.advance(RunState.SUCCEEDED)
            outcome = RunOutcome(exit_code=0)
        except Exception as exc:
            outcome = self._capture_failure(exc)
        finally:
            if outcome is None:
                # Interrupted (KeyboardInterrupt, SystemExit): still tear down.
                self._machine.fail()
            destroyed = self._destroy_phase()

        self._dispatch(
            "post_run",
            app_name=self._identity.app_name,
            exit_code=outcome.exit_code,
            stages=[s.model_dump(mode="json") for s in self._stages],
        )
        report = RunReport(
            identity=self._identity,
            outcome=outcome,
            stages=list(self._stages),
            states=[str(s) for s in self._machine.history],
            endpoint=self._endpoint,
            destroyed=destroyed,
            warnings=list(self._warnings),
        )
        log.info("run.finished", exit_code=outcome.exit_code, destroyed=destroyed)
        return report

    # ------------------------------------------------------------------
    # Try-phase
    # ------------------------------------------------------------------

    def _try_phase(self) -> None:
        identity = self._identity
        project_dir = identity.project_dir

        self._run_stage(RunState.PROVISIONING, lambda: self._provisioner.provision(identity))
        self._run_stage(RunState.VALIDATING, lambda: self._validate_gate(project_dir))
        self._run_stage(RunState.BUILDING, lambda: self._builder.build(project_dir))
        self._run_stage(
            RunState.TESTING_LOCAL,
            lambda: self._tester.run_tests(
                project_dir, self._settings.e2e.dev_url, dev_server=True
            ),
        )

        if self._skip_deploy:
            for stage in TRY_STAGES:
                if stage in REMOTE_STAGES:
                    self._stages.append(StageRecord(stage=str(stage), status=StageStatus.SKIPPED))
            return

        self._run_stage(RunState.DEPLOYING, lambda: self._deploy(project_dir))
        record: DeploymentRecord = self._run_stage(
            RunState.RESOLVING_ENDPOINT,
            lambda: self._deployer.resolve_endpoint(
                identity.stack_id, attempts=self._poll_attempts
            ),
        )
        self._endpoint = record.endpoint
        self._run_stage(
            RunState.TESTING_REMOTE,
            lambda: self._tester.run_tests(project_dir, record.endpoint, dev_server=False),
        )

    def _validate_gate(self, project_dir: Path) -> None:
        result = self._validator.validate(project_dir)
        if result.valid:
            return
        for error in result.errors:
            log.error("validation.error", error=error)
        raise GateFailure(result.errors)

    def _deploy(self, project_dir: Path) -> None:
        self._deployer.set_app_name(
            self._deployer.manifest_path(project_dir), self._identity.app_name
        )
        self._deployer.deploy(project_dir)

    def _run_stage(self, stage: RunState, action: Callable[[], _T]) -> _T:
        """Advance the machine into *stage*, run *action*, record the result."""
        self._machine.advance(stage)
        self._dispatch("pre_stage", app_name=self._identity.app_name, stage=str(stage))
        log.info("stage.started", stage=str(stage))
        status = StageStatus.FAILED
        detail: str | None = None
        with timed(str(stage)) as span:
            try:
                value = action()
                status = StageStatus.OK
                return value
            except StageError as exc:
                detail = exc.message
                if exc.stage is None:
                    exc.stage = str(stage)
                raise
            except Exception as exc:
                detail = str(exc)
                raise
            finally:
                span.close()
                duration_ms = round(span.duration_ms, 2)
                self._stages.append(
                    StageRecord(
                        stage=str(stage),
                        status=status,
                        duration_ms=duration_ms,
                        detail=detail,
                    )
                )
                log.info(
                    "stage.finished",
                    stage=str(stage),
                    status=str(status),
                    duration_ms=duration_ms,
                )
                self._dispatch(
                    "post_stage",
                    app_name=self._identity.app_name,
                    stage=str(stage),
                    status=str(status),
                    duration_ms=duration_ms,
                )

    def _capture_failure(self, exc: Exception) -> RunOutcome:
        """Turn the first try-phase failure into the run's outcome."""
        failed_stage = self._machine.state
        self._machine.fail()
        if isinstance(exc, StageError):
            stage = exc.stage or str(failed_stage)
            code, message, detail = exc.code, exc.message, exc.detail()
            log.error("run.failed", stage=stage, code=code, error=message)
        else:
            stage = str(failed_stage)
            code, message, detail = "UNEXPECTED_ERROR", f"{type(exc).__name__}: {exc}", {}
            log.exception("run.failed", stage=stage, code=code, error=message)
        detail.pop("stage", None)
        return RunOutcome(
            exit_code=1,
            failed_stage=stage,
            error_code=code,
            error_message=message,
            error_detail=detail,
        )

    # ------------------------------------------------------------------
    # Always-phase
    # ------------------------------------------------------------------

    def _destroy_phase(self) -> bool:
        """Tear the environment down. Returns whether teardown succeeded."""
        self._machine.advance(RunState.DESTROYING)
        identity = self._identity
        request = DestroyRequest(
            appname=identity.app_name,
            env=identity.environment,
            force=self._settings.deploy.force,
        )
        ok = False
        with timed(str(RunState.DESTROYING)) as span:
            try:
                result = self._deployer.destroy(request, cwd=identity.project_dir)
                ok = result.ok
                if not ok:
                    message = result.error.message if result.error else "unknown error"
                    self._warnings.append(f"Teardown of {identity.app_name} failed: {message}")
            except Exception as exc:
                log.exception("destroy.crashed", error=str(exc))
                self._warnings.append(f"Teardown of {identity.app_name} crashed: {exc}")
            finally:
                self._machine.advance(RunState.DONE)
                span.annotate("destroyed", ok)
        log.info("destroy.finished", ok=ok, duration_ms=round(span.duration_ms, 2))
        self._dispatch("post_destroy", app_name=identity.app_name, ok=ok)
        return ok

    # ------------------------------------------------------------------
    # Plugin events
    # ------------------------------------------------------------------

    def _dispatch(self, hook_name: str, **payload: Any) -> None:
        """Call a plugin hook. No-op without plugins.

        INVARIANT: Plugin failures are warnings, never errors.
        """
        if self._plugins is None:
            return
        if not self._plugins.notify(hook_name, **payload):
            self._warnings.append(f"Plugin hook {hook_name} failed")


@trace_result("run")
def run_lifecycle(identity: RunIdentity, settings: StageSettings, **options: Any) -> ServiceResult:
    """Run one full lifecycle for *identity* and return the ``run`` result."""
    return LifecycleOrchestrator(identity, settings, **options).run().to_result()
