"""Tests for LifecycleOrchestrator — stage order and single teardown."""

from __future__ import annotations

from itertools import count
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock, call, patch

import pluggy
import pytest
import structlog

from stagectl.config.settings import StageSettings
from stagectl.domain.errors import NotFoundFailure, ProcessFailure, ProvisionError
from stagectl.domain.identity import RunIdentity
from stagectl.domain.lifecycle import RunState
from stagectl.plugins.manager import PluginManager
from stagectl.services.build import BuildRunner
from stagectl.services.deploy import DeploymentManager, DeploymentRecord, DestroyRequest
from stagectl.services.e2e import E2ERunner
from stagectl.services.orchestrator import LifecycleOrchestrator, run_lifecycle
from stagectl.services.provision import Provisioner
from stagectl.services.result import ServiceError, ServiceResult
from stagectl.services.telemetry import enable_tracing
from stagectl.services.validate import DependencyValidator, ValidationResult

hookimpl = pluggy.HookimplMarker("stagectl")

ENDPOINT = "https://abc123.execute-api.us-west-2.amazonaws.com"


# ---------------------------------------------------------------------------
# Stand-in components
# ---------------------------------------------------------------------------


def _components(identity: RunIdentity) -> dict[str, MagicMock]:
    provisioner = MagicMock(spec=Provisioner)
    provisioner.provision.return_value = identity.project_dir
    validator = MagicMock(spec=DependencyValidator)
    validator.validate.return_value = ValidationResult(valid=True)
    builder = MagicMock(spec=BuildRunner)
    tester = MagicMock(spec=E2ERunner)
    deployer = MagicMock(spec=DeploymentManager)
    deployer.manifest_path.side_effect = lambda project_dir: project_dir / "app.arc"
    deployer.resolve_endpoint.return_value = DeploymentRecord(
        name=identity.stack_id, endpoint=ENDPOINT, api_id="abc123"
    )
    deployer.destroy.return_value = ServiceResult(ok=True, op="destroy")
    return {
        "provisioner": provisioner,
        "validator": validator,
        "builder": builder,
        "tester": tester,
        "deployer": deployer,
    }


def _fail_tests(*, dev_server_fails: bool) -> Any:
    def run_tests(project_dir: Path, base_url: str, *, dev_server: bool, **_: Any) -> None:
        if dev_server is dev_server_fails:
            mode = "development" if dev_server else "production"
            raise ProcessFailure(f"E2E tests failed in {mode}")

    return run_tests


def _inject_failure(parts: dict[str, MagicMock], stage: str) -> None:
    if stage == "provisioning":
        parts["provisioner"].provision.side_effect = ProvisionError("no skeleton")
    elif stage == "validating":
        parts["validator"].validate.return_value = ValidationResult(
            valid=False, errors=["@remix-run/react@9.9.9 is not available in the registry"]
        )
    elif stage == "building":
        parts["builder"].build.side_effect = ProcessFailure("Build failed", stage="building")
    elif stage == "testing_local":
        parts["tester"].run_tests.side_effect = _fail_tests(dev_server_fails=True)
    elif stage == "deploying":
        parts["deployer"].deploy.side_effect = ProcessFailure("Deployment failed")
    elif stage == "resolving_endpoint":
        parts["deployer"].resolve_endpoint.side_effect = NotFoundFailure(stack_id="X")
    elif stage == "testing_remote":
        parts["tester"].run_tests.side_effect = _fail_tests(dev_server_fails=False)


class RecordingPlugin:
    """Plugin that records all hook calls."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []

    @hookimpl
    def pre_stage(self, app_name: str, stage: str) -> None:
        self.calls.append(("pre_stage", {"stage": stage}))

    @hookimpl
    def post_stage(self, app_name: str, stage: str, status: str, duration_ms: float) -> None:
        self.calls.append(("post_stage", {"stage": stage, "status": status}))

    @hookimpl
    def post_destroy(self, app_name: str, ok: bool) -> None:
        self.calls.append(("post_destroy", {"ok": ok}))

    @hookimpl
    def post_run(self, app_name: str, exit_code: int, stages: list[dict[str, Any]]) -> None:
        self.calls.append(("post_run", {"exit_code": exit_code, "stages": len(stages)}))


class FailingPlugin:
    """Plugin whose every hook raises."""

    @hookimpl
    def post_stage(self, app_name: str, stage: str, status: str, duration_ms: float) -> None:
        raise RuntimeError("plugin exploded")


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestHappyPath:
    def test_all_stages_in_order(self, identity: RunIdentity, settings: StageSettings) -> None:
        parts = _components(identity)
        report = LifecycleOrchestrator(identity, settings, **parts).run()

        assert report.outcome.exit_code == 0
        assert report.endpoint == ENDPOINT
        assert report.destroyed is True
        assert [s.stage for s in report.stages] == [
            "provisioning",
            "validating",
            "building",
            "testing_local",
            "deploying",
            "resolving_endpoint",
            "testing_remote",
        ]
        assert all(s.status == "ok" for s in report.stages)
        assert report.states[-3:] == ["succeeded", "destroying", "done"]

    def test_components_receive_identity(
        self, identity: RunIdentity, settings: StageSettings
    ) -> None:
        parts = _components(identity)
        LifecycleOrchestrator(identity, settings, **parts, poll_attempts=2).run()
        project_dir = identity.project_dir

        parts["provisioner"].provision.assert_called_once_with(identity)
        parts["validator"].validate.assert_called_once_with(project_dir)
        parts["builder"].build.assert_called_once_with(project_dir)
        parts["deployer"].set_app_name.assert_called_once_with(
            project_dir / "app.arc", identity.app_name
        )
        parts["deployer"].deploy.assert_called_once_with(project_dir)
        parts["deployer"].resolve_endpoint.assert_called_once_with(identity.stack_id, attempts=2)
        assert parts["tester"].run_tests.call_args_list == [
            call(project_dir, "http://localhost:3333", dev_server=True),
            call(project_dir, ENDPOINT, dev_server=False),
        ]
        parts["deployer"].destroy.assert_called_once_with(
            DestroyRequest(appname=identity.app_name, env="staging", force=True),
            cwd=project_dir,
        )

    def test_result_payload(self, identity: RunIdentity, settings: StageSettings) -> None:
        result = run_lifecycle(identity, settings, **_components(identity))
        assert result.ok
        assert result.op == "run"
        assert result.error is None
        assert result.data["app_name"] == identity.app_name
        assert result.data["stack_id"] == identity.stack_id
        assert result.data["exit_code"] == 0
        assert result.data["endpoint"] == ENDPOINT
        assert len(result.data["stages"]) == 7


class TestFailures:
    @pytest.mark.parametrize(
        "stage",
        [
            "provisioning",
            "validating",
            "building",
            "testing_local",
            "deploying",
            "resolving_endpoint",
            "testing_remote",
        ],
    )
    def test_any_stage_failure_destroys_once_and_exits_1(
        self, stage: str, identity: RunIdentity, settings: StageSettings
    ) -> None:
        parts = _components(identity)
        _inject_failure(parts, stage)
        orchestrator = LifecycleOrchestrator(identity, settings, **parts)
        report = orchestrator.run()

        assert report.outcome.exit_code == 1
        assert report.outcome.failed_stage == stage
        assert parts["deployer"].destroy.call_count == 1
        assert orchestrator.machine.history.count(RunState.DESTROYING) == 1
        assert report.states[-3:] == ["failed", "destroying", "done"]
        assert report.stages[-1].stage == stage
        assert report.stages[-1].status == "failed"

    def test_later_stages_not_run(self, identity: RunIdentity, settings: StageSettings) -> None:
        parts = _components(identity)
        _inject_failure(parts, "building")
        LifecycleOrchestrator(identity, settings, **parts).run()
        parts["tester"].run_tests.assert_not_called()
        parts["deployer"].deploy.assert_not_called()

    def test_gate_failure_reports_errors(
        self, identity: RunIdentity, settings: StageSettings
    ) -> None:
        parts = _components(identity)
        _inject_failure(parts, "validating")
        result = run_lifecycle(identity, settings, **parts)

        assert not result.ok
        assert result.error is not None
        assert result.error.code == "VALIDATION_FAILED"
        assert result.error.detail["stage"] == "validating"
        assert result.error.detail["errors"] == [
            "@remix-run/react@9.9.9 is not available in the registry"
        ]
        parts["builder"].build.assert_not_called()
        parts["deployer"].destroy.assert_called_once()

    def test_stage_is_filled_in_when_error_has_none(
        self, identity: RunIdentity, settings: StageSettings
    ) -> None:
        parts = _components(identity)
        _inject_failure(parts, "deploying")
        result = run_lifecycle(identity, settings, **parts)
        assert result.error is not None
        assert result.error.code == "PROCESS_FAILED"
        assert result.error.message == "Deployment failed"
        assert result.error.detail["stage"] == "deploying"

    def test_unexpected_exception(self, identity: RunIdentity, settings: StageSettings) -> None:
        parts = _components(identity)
        parts["builder"].build.side_effect = RuntimeError("disk on fire")
        result = run_lifecycle(identity, settings, **parts)

        assert not result.ok
        assert result.error is not None
        assert result.error.code == "UNEXPECTED_ERROR"
        assert "disk on fire" in result.error.message
        assert result.error.detail["stage"] == "building"
        parts["deployer"].destroy.assert_called_once()

    def test_interrupt_still_destroys(
        self, identity: RunIdentity, settings: StageSettings
    ) -> None:
        parts = _components(identity)
        parts["builder"].build.side_effect = KeyboardInterrupt
        orchestrator = LifecycleOrchestrator(identity, settings, **parts)
        with pytest.raises(KeyboardInterrupt):
            orchestrator.run()
        parts["deployer"].destroy.assert_called_once()
        assert orchestrator.machine.state == RunState.DONE


class TestTeardown:
    def test_destroy_failure_keeps_success_exit_code(
        self, identity: RunIdentity, settings: StageSettings
    ) -> None:
        parts = _components(identity)
        parts["deployer"].destroy.return_value = ServiceResult(
            ok=False,
            op="destroy",
            error=ServiceError(code="CLEANUP_FAILED", message="stack busy"),
        )
        report = LifecycleOrchestrator(identity, settings, **parts).run()

        assert report.outcome.exit_code == 0
        assert report.destroyed is False
        assert report.warnings == [f"Teardown of {identity.app_name} failed: stack busy"]

    def test_destroy_crash_keeps_failure_exit_code(
        self, identity: RunIdentity, settings: StageSettings
    ) -> None:
        parts = _components(identity)
        _inject_failure(parts, "building")
        parts["deployer"].destroy.side_effect = RuntimeError("boom")
        report = LifecycleOrchestrator(identity, settings, **parts).run()

        assert report.outcome.exit_code == 1
        assert report.outcome.error_code == "PROCESS_FAILED"
        assert report.destroyed is False
        assert "crashed" in report.warnings[0]
        assert report.states[-1] == "done"

    def test_force_follows_config(self, identity: RunIdentity, config_root: Path) -> None:
        settings = StageSettings.from_cli(config_root=config_root, deploy={"force": False})
        parts = _components(identity)
        LifecycleOrchestrator(identity, settings, **parts).run()
        request = parts["deployer"].destroy.call_args.args[0]
        assert request.force is False


class TestSkipDeploy:
    def test_remote_stages_skipped(self, identity: RunIdentity, settings: StageSettings) -> None:
        parts = _components(identity)
        report = LifecycleOrchestrator(identity, settings, **parts, skip_deploy=True).run()

        assert report.outcome.exit_code == 0
        assert report.endpoint is None
        parts["deployer"].deploy.assert_not_called()
        parts["deployer"].resolve_endpoint.assert_not_called()
        parts["deployer"].destroy.assert_called_once()
        assert [(s.stage, s.status) for s in report.stages[-3:]] == [
            ("deploying", "skipped"),
            ("resolving_endpoint", "skipped"),
            ("testing_remote", "skipped"),
        ]


class TestPlugins:
    def test_hooks_fire_in_order(self, identity: RunIdentity, settings: StageSettings) -> None:
        plugins = PluginManager()
        recorder = RecordingPlugin()
        plugins.register(recorder)
        parts = _components(identity)
        LifecycleOrchestrator(identity, settings, **parts, plugins=plugins).run()

        names = [name for name, _ in recorder.calls]
        assert names[:2] == ["pre_stage", "post_stage"]
        assert names.count("pre_stage") == 7
        assert names[-2:] == ["post_destroy", "post_run"]
        assert recorder.calls[-1][1] == {"exit_code": 0, "stages": 7}

    def test_failed_stage_reported_to_plugins(
        self, identity: RunIdentity, settings: StageSettings
    ) -> None:
        plugins = PluginManager()
        recorder = RecordingPlugin()
        plugins.register(recorder)
        parts = _components(identity)
        _inject_failure(parts, "building")
        LifecycleOrchestrator(identity, settings, **parts, plugins=plugins).run()

        post_stages = [payload for name, payload in recorder.calls if name == "post_stage"]
        assert post_stages[-1] == {"stage": "building", "status": "failed"}
        assert recorder.calls[-1][1]["exit_code"] == 1

    def test_plugin_failure_is_a_warning(
        self, identity: RunIdentity, settings: StageSettings
    ) -> None:
        plugins = PluginManager()
        plugins.register(FailingPlugin())
        parts = _components(identity)
        report = LifecycleOrchestrator(identity, settings, **parts, plugins=plugins).run()

        assert report.outcome.exit_code == 0
        assert report.warnings.count("Plugin hook post_stage failed") == 7


class TestTiming:
    def test_stage_durations_come_from_stage_spans(
        self, identity: RunIdentity, settings: StageSettings
    ) -> None:
        clock = count(start=0.0, step=0.5)
        with patch("stagectl.services.telemetry.time.perf_counter", side_effect=clock):
            report = LifecycleOrchestrator(identity, settings, **_components(identity)).run()
        assert [s.duration_ms for s in report.stages] == [500.0] * 7

    def test_verbose_trace_follows_run_states(
        self, identity: RunIdentity, settings: StageSettings
    ) -> None:
        enable_tracing()
        result = run_lifecycle(identity, settings, **_components(identity))
        assert result.meta is not None
        trace = result.meta["trace"]
        assert trace["name"] == "run"
        assert [child["name"] for child in trace["children"]] == [
            "provisioning",
            "validating",
            "building",
            "testing_local",
            "deploying",
            "resolving_endpoint",
            "testing_remote",
            "destroying",
        ]
        assert trace["children"][-1]["annotations"] == {"destroyed": True}


class TestRunContext:
    def test_stage_logs_carry_run_identity(
        self, identity: RunIdentity, settings: StageSettings
    ) -> None:
        seen: dict[str, Any] = {}
        parts = _components(identity)
        parts["builder"].build.side_effect = lambda project_dir: seen.update(
            structlog.contextvars.get_contextvars()
        )
        LifecycleOrchestrator(identity, settings, **parts).run()

        assert seen["app_name"] == identity.app_name
        assert seen["stack_id"] == identity.stack_id
        assert seen["environment"] == "staging"
        assert "app_name" not in structlog.contextvars.get_contextvars()
