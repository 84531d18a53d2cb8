"""Unified settings — CLI flags, env vars, and TOML config in one object.

Priority chain (highest to lowest):
  1. Init kwargs  — CLI flags passed by Click
  2. Env vars     — ``STAGECTL_*`` prefix
  3. TOML file    — ``stagectl.toml`` discovered via walk-up
  4. Code defaults — baked into the section models

Uses Pydantic Settings v2 with a custom :class:`TomlSettingsSource` that
reuses the walk-up discovery from :mod:`stagectl.config.discovery`.
"""

from __future__ import annotations

import threading
import tomllib
from pathlib import Path
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from stagectl.config.discovery import find_config
from stagectl.config.models import CommandsConfig, DeployConfig, E2EConfig, ProjectConfig

HARNESS_DIRNAME = "e2e"


class TomlSettingsSource(PydanticBaseSettingsSource):
    """Read settings from a ``stagectl.toml`` file discovered via walk-up."""

    def __init__(self, settings_cls: type[BaseSettings], toml_path: Path | None) -> None:
        super().__init__(settings_cls)
        self._data: dict[str, Any] = {}
        if toml_path and toml_path.is_file():
            raw = toml_path.read_text(encoding="utf-8")
            try:
                self._data = tomllib.loads(raw)
            except tomllib.TOMLDecodeError as exc:
                import click

                msg = f"Invalid TOML in {toml_path}: {exc}"
                raise click.ClickException(msg) from exc

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Return ``(value, field_name, value_is_complex)``."""
        val = self._data.get(field_name)
        return val, field_name, field_name in self._data

    def __call__(self) -> dict[str, Any]:
        """Return the full TOML data dict for Pydantic to merge."""
        return self._data


# Thread-local storage for TOML path during construction.
_tls = threading.local()


class StageSettings(BaseSettings):
    """Unified settings for the stagectl CLI.

    Merges CLI flags, environment variables, TOML config sections, and
    code-baked defaults into a single frozen object stored in
    ``click.Context.obj``.

    Attributes:
        config_root: Directory holding ``stagectl.toml`` (or CWD if none).
            Relative harness paths resolve against it.
        config_path: The TOML file in effect, or None.
    """

    model_config = {
        "frozen": True,
        "env_prefix": "STAGECTL_",
        "env_nested_delimiter": "__",
    }

    config_root: Path = Field(default_factory=Path.cwd)
    config_path: Path | None = None

    # --- CLI flags ---
    json_output: bool = False
    quiet: bool = False
    verbose: bool = False
    log_json: bool = False

    # --- TOML sections ---
    project: ProjectConfig = Field(default_factory=ProjectConfig)
    deploy: DeployConfig = Field(default_factory=DeployConfig)
    e2e: E2EConfig = Field(default_factory=E2EConfig)
    commands: CommandsConfig = Field(default_factory=CommandsConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert TOML source between env vars and defaults."""
        toml_path = getattr(_tls, "toml_path", None)
        return (
            init_settings,
            env_settings,
            TomlSettingsSource(settings_cls, toml_path),
        )

    @classmethod
    def from_cli(
        cls,
        *,
        config_path: str | None = None,
        config_root: Path | None = None,
        **cli_flags: Any,
    ) -> StageSettings:
        """Construct settings from CLI invocation.

        Discovers ``stagectl.toml`` via walk-up (or explicit *config_path*)
        and merges CLI flags as highest-priority overrides.
        """
        toml_path: Path | None = None
        if config_path:
            p = Path(config_path)
            if p.is_file():
                toml_path = p
        else:
            toml_path = find_config(config_root)

        resolved_root = config_root
        if resolved_root is None:
            resolved_root = toml_path.parent if toml_path else Path.cwd()

        _tls.toml_path = toml_path
        try:
            return cls(
                config_root=resolved_root,
                config_path=toml_path,
                **cli_flags,
            )
        finally:
            _tls.toml_path = None

    # --- Derived paths ---

    @property
    def harness_dir(self) -> Path:
        """Test-harness fixture directory copied into each project."""
        return self._resolve(self.project.harness_dir, Path(HARNESS_DIRNAME) / "cypress")

    @property
    def harness_config(self) -> Path:
        """Test-harness config file copied into each project."""
        return self._resolve(self.project.harness_config, Path(HARNESS_DIRNAME) / "cypress.json")

    def _resolve(self, configured: Path | None, default: Path) -> Path:
        path = configured if configured is not None else default
        return path if path.is_absolute() else self.config_root / path
