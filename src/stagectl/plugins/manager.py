"""Plugin loading and stage event delivery.

Plugins are pip-installed packages exposing an entry point in the
``stagectl.plugins`` group; each implements any of the hooks in
:class:`~stagectl.plugins.hookspecs.StagectlHookSpec`.
"""

from __future__ import annotations

import logging
from typing import Any

import pluggy

from stagectl.plugins.hookspecs import StagectlHookSpec

PROJECT_NAME = "stagectl"
ENTRY_POINT_GROUP = "stagectl.plugins"

logger = logging.getLogger(__name__)


class PluginManager:
    """Loads stage plugins and delivers lifecycle events to them."""

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(StagectlHookSpec)

    def load_entry_points(self) -> list[str]:
        """Register every installed ``stagectl.plugins`` entry point.

        Returns the names of all registered plugins.
        """
        count = self._pm.load_setuptools_entrypoints(ENTRY_POINT_GROUP)
        logger.debug("Loaded %d plugin(s) from entry points", count)
        return self.names()

    def register(self, plugin: object, name: str | None = None) -> None:
        self._pm.register(plugin, name=name or plugin.__class__.__name__)

    def unregister(self, plugin: object) -> None:
        self._pm.unregister(plugin)

    @property
    def hook(self) -> pluggy.HookRelay:
        return self._pm.hook

    def names(self) -> list[str]:
        return [self._pm.get_name(p) or p.__class__.__name__ for p in self._pm.get_plugins()]

    def notify(self, hook_name: str, **payload: Any) -> bool:
        """Deliver one lifecycle event to every plugin implementing *hook_name*.

        A raising plugin is logged; the event is reported as undelivered by
        returning False instead of propagating.
        """
        try:
            getattr(self._pm.hook, hook_name)(**payload)
        except Exception:
            logger.warning("Plugin hook %s failed", hook_name, exc_info=True)
            return False
        return True
