"""Shared pytest fixtures and test helpers for stagectl tests."""

from __future__ import annotations

import json
import logging
from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
from click.testing import CliRunner

from stagectl.config.settings import StageSettings
from stagectl.domain.identity import RunIdentity
from stagectl.services.telemetry import disable_tracing

ARC_MANIFEST = """\
@app
arc-template

@http

@static

# keep the bucket private
@aws
region us-west-2
"""


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host configuration out of every test."""
    monkeypatch.delenv("STAGECTL_CONFIG", raising=False)
    monkeypatch.delenv("GITHUB_SHA", raising=False)


@pytest.fixture
def config_root(tmp_path: Path) -> Path:
    """Directory standing in for the one holding ``stagectl.toml``."""
    root = tmp_path / "config"
    root.mkdir()
    return root


@pytest.fixture
def settings(config_root: Path) -> StageSettings:
    """Default settings rooted at *config_root*."""
    return StageSettings.from_cli(config_root=config_root)


@pytest.fixture
def harness(config_root: Path) -> Path:
    """Test-harness fixtures at their default location under *config_root*."""
    harness_root = config_root / "e2e"
    (harness_root / "cypress" / "integration").mkdir(parents=True)
    (harness_root / "cypress" / "integration" / "smoke.spec.js").write_text(
        'describe("smoke", () => {});\n', encoding="utf-8"
    )
    (harness_root / "cypress.json").write_text('{"video": false}\n', encoding="utf-8")
    return harness_root


@pytest.fixture
def identity(tmp_path: Path) -> RunIdentity:
    """A fixed-revision identity whose project lives under ``tmp_path/apps``."""
    return RunIdentity.create("arc", apps_dir=tmp_path / "apps", revision="0123456789abcdef")


@pytest.fixture
def project_dir(identity: RunIdentity) -> Path:
    """A minimal generated project for *identity*."""
    write_skeleton(identity.project_dir)
    return identity.project_dir


# ---------------------------------------------------------------------------
# Shared test helpers
# ---------------------------------------------------------------------------


def write_skeleton(
    project_dir: Path,
    *,
    dependencies: dict[str, str] | None = None,
    dev_dependencies: dict[str, str] | None = None,
    manifest: str = ARC_MANIFEST,
) -> Path:
    """Write what the scaffolder would leave behind for the arc template."""
    project_dir.mkdir(parents=True, exist_ok=True)
    config: dict[str, Any] = {
        "name": "remix-template-arc",
        "private": True,
        "scripts": {"build": "remix build", "dev": "remix dev"},
        "dependencies": dependencies
        if dependencies is not None
        else {"@remix-run/architect": "1.0.0", "@remix-run/react": "1.0.0", "react": "17.0.2"},
        "devDependencies": dev_dependencies
        if dev_dependencies is not None
        else {"@remix-run/dev": "1.0.0", "typescript": "4.5.0"},
    }
    (project_dir / "package.json").write_text(json.dumps(config, indent=2) + "\n", "utf-8")
    (project_dir / "app.arc").write_text(manifest, encoding="utf-8")
    return project_dir


@pytest.fixture(autouse=True)
def _restore_logging() -> Generator[None]:
    """Restore logger and tracing state after each test."""
    root = logging.getLogger()
    original_handlers = root.handlers[:]
    original_level = root.level
    stage = logging.getLogger("stagectl")
    stage_level = stage.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    stage.setLevel(stage_level)
    disable_tracing()
