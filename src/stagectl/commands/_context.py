"""AppContext — shared Click context for all commands.

Created once by the root CLI group and flows to all subcommands via
``@click.pass_obj``. Provides lazy plugin loading and centralized result
emission (stdout/stderr routing + exit codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from stagectl.output.formatters import OutputSettings, format_result

if TYPE_CHECKING:
    from pathlib import Path

    from stagectl.config.settings import StageSettings
    from stagectl.domain.identity import RunIdentity
    from stagectl.plugins.manager import PluginManager
    from stagectl.services.result import ServiceResult


class AppContext:
    """Shared context flowing through Click's command hierarchy.

    Plugins are discovered lazily so ``--help`` and ``--version`` never
    import third-party plugin code.
    """

    def __init__(self, settings: StageSettings) -> None:
        self.settings = settings
        self._plugins: PluginManager | None = None

        from stagectl.config.logging import configure_logging

        configure_logging(
            verbose=settings.verbose, quiet=settings.quiet, log_json=settings.log_json
        )

        if settings.verbose:
            from stagectl.services.telemetry import enable_tracing

            enable_tracing()

    @property
    def plugins(self) -> PluginManager:
        """The plugin manager (entry points loaded on first access)."""
        if self._plugins is None:
            from stagectl.plugins.manager import PluginManager

            self._plugins = PluginManager()
            self._plugins.load_entry_points()
        return self._plugins

    def new_identity(
        self,
        *,
        template: str | None = None,
        apps_dir: Path | None = None,
    ) -> RunIdentity:
        """Derive a fresh run identity, CLI overrides first, then config."""
        from stagectl.domain.identity import RunIdentity

        project = self.settings.project
        return RunIdentity.create(
            template or project.template,
            prefix=project.app_prefix,
            apps_dir=apps_dir or project.apps_dir,
            environment=self.settings.deploy.environment,
        )

    def emit(self, result: ServiceResult) -> None:
        """Format and output a ServiceResult with correct exit semantics.

        * Success (``result.ok``): writes to stdout, returns normally.
          Warnings go to stderr so they don't pollute piped output.
        * Failure: writes to stderr, exits with code 1.
        """
        settings = OutputSettings(
            json_output=self.settings.json_output,
            quiet=self.settings.quiet,
            verbose=self.settings.verbose,
        )
        output = format_result(result, settings=settings)
        click.echo(output, err=not result.ok)
        # In JSON mode, warnings are already in the serialized payload.
        if not settings.json_output:
            for warning in result.warnings:
                click.echo(f"WARNING: {warning}", err=True)
        if not result.ok:
            raise SystemExit(1)
