"""BaseService — shared foundation for stage components.

Every component receives the frozen :class:`StageSettings` at construction
time and reads its section from it. Components hold no per-run state; the
:class:`~stagectl.domain.identity.RunIdentity` is passed to each call.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stagectl.config.models import CommandsConfig
    from stagectl.config.settings import StageSettings


class BaseService:
    """Base for stage components.

    Usage::

        class BuildRunner(BaseService):
            def build(self, project_dir: Path) -> None:
                run_command([self._commands.npm, "install"], cwd=project_dir)
    """

    def __init__(self, settings: StageSettings) -> None:
        self._settings = settings

    @property
    def _commands(self) -> CommandsConfig:
        return self._settings.commands
