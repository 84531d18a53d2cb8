"""Pydantic configuration models with code-baked defaults.

Sparse TOML contract: defaults baked here, stagectl.toml only contains overrides.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field


class ProjectConfig(BaseModel):
    """[project] section — scaffolding and validation."""

    model_config = {"frozen": True}

    template: str = "arc"
    typescript: bool = True
    install_on_create: bool = False
    app_prefix: str = "remix"
    apps_dir: Path | None = None
    harness_dir: Path | None = None
    harness_config: Path | None = None
    validate_scopes: list[str] = Field(default_factory=lambda: ["@remix-run/"])
    deploy_tool_package: str = "@architect/architect"
    deploy_tool_version: str = "latest"


class DeployConfig(BaseModel):
    """[deploy] section — deploy, endpoint lookup, and teardown."""

    model_config = {"frozen": True}

    environment: str = "staging"
    region: str = "us-west-2"
    manifest: str = "app.arc"
    prune: bool = True
    force: bool = True
    poll_attempts: int = Field(default=5, ge=1)
    poll_interval: float = Field(default=3.0, ge=0.0)


class E2EConfig(BaseModel):
    """[e2e] section — end-to-end test runner."""

    model_config = {"frozen": True}

    dev_url: str = "http://localhost:3333"
    headless: bool = True
    harness_packages: dict[str, str] = Field(
        default_factory=lambda: {"cypress": "latest", "start-server-and-test": "latest"}
    )


class CommandsConfig(BaseModel):
    """[commands] section — external executables."""

    model_config = {"frozen": True}

    npm: str = "npm"
    npx: str = "npx"
    scaffolder: str = "create-remix@latest"
    deploy_cli: str = "arc"

